"""Fits, evaluates, explains and persists treekit models on a small mixed-type dataset.

Shown here:

- Declaring per-column ``feature_types`` (inferred from a polars DataFrame).
- Missing values (``None``) in both numeric and categorical columns.
- Cost-complexity pruning with ``ccp_alpha``.
- Extracting IF/THEN rules from a fitted tree.
- Saving a model with ``to_json`` and restoring it with ``from_json``.
- Comparing a single tree to a random forest with the metrics module.
"""

import polars as pl

from treekit import DecisionTreeClassifier, RandomForestClassifier, extract_rules
from treekit.datasets import from_dataframe, train_test_split
from treekit.metrics import accuracy_score, confusion_matrix, f1_score

df_customers = pl.DataFrame({
    "age": [22, 35, 47, None, 52, 23, 40, 60, 33, 28, 45, 38, 58, 26, 31, 49],
    "plan": ["basic", "pro", "pro", "basic", None, "basic", "team", "team",
             "pro", "basic", "team", "pro", "team", "basic", None, "pro"],
    "monthly_spend": [10.0, 55.0, 80.0, 12.0, 95.0, 8.0, 60.0, 120.0,
                      40.0, 15.0, 70.0, 50.0, 110.0, 9.0, 30.0, 85.0],
    "churned": ["yes", "no", "no", "yes", "no", "yes", "no", "no",
                "no", "yes", "no", "no", "no", "yes", "yes", "no"],
})  # fmt: skip
dataset = from_dataframe(df_customers, target="churned")
print(f"Features: {dict(zip(dataset.feature_names, dataset.feature_types, strict=True))}")

X_train, X_test, y_train, y_test = train_test_split(dataset.X, dataset.y, test_size=0.25, random_state=7)

# Single pruned tree
tree = DecisionTreeClassifier(feature_types=dataset.feature_types, ccp_alpha=0.02, random_state=0)
tree.fit(X_train, y_train)
tree_predictions = tree.predict(X_test)
print(f"\nTree accuracy: {accuracy_score(y_test, tree_predictions):.2f}")
print(f"Tree F1 (churned=yes): {f1_score(y_test, tree_predictions, positive_label='yes'):.2f}")
print(f"Confusion matrix (yes, no):\n{confusion_matrix(y_test, tree_predictions, labels=['yes', 'no'])}")

print("\nRules:")
for rule in extract_rules(tree, dataset.feature_names):
    print(f"  {rule}")

print("\nFeature importances:")
for name, importance in zip(dataset.feature_names, tree.get_feature_importances(), strict=True):
    print(f"  {name}: {importance:.3f}")

# Random forest over the same data
forest = RandomForestClassifier(
    n_estimators=25,
    feature_types=dataset.feature_types,
    max_features="sqrt",
    random_state=0,
)
forest.fit(X_train, y_train)
print(f"\nForest accuracy: {accuracy_score(y_test, forest.predict(X_test)):.2f}")
print(f"Forest probabilities {forest.classes_}:\n{forest.predict_proba(X_test)}")

# Persistence round trip
restored = DecisionTreeClassifier.from_json(tree.to_json())
assert restored.predict(X_test) == tree_predictions
print(f"\nRestored tree predicts identically: {restored.predict(X_test)}")
