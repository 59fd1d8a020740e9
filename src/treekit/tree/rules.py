"""Root-to-leaf rule extraction from fitted trees."""

from __future__ import annotations

import operator
from collections.abc import Callable, Sequence
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, model_validator

from treekit.exceptions import MalformedTreeError
from treekit.tree.estimators import BaseDecisionTree, DecisionTreeClassifier
from treekit.tree.node import Label, Node
from treekit.tree.prediction import most_probable_label

__all__ = ["ClassificationRule", "Predicate", "RegressionRule", "TreeRule", "extract_rules"]

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type PredicateOp = Literal["<=", ">", "in", "not in"]

type CategoryValue = bool | int | float | str

# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


class Predicate(BaseModel):
    """A single boolean condition on one feature.

    Represents a test such as `age <= 30.5` or `color in {blue, red}`; a rule
    holds the predicates along the path from the root to its leaf.

    Attributes:
        variable (str): Feature name the condition applies to.
        operator (PredicateOp): `"<="` / `">"` for numeric splits, `"in"` /
            `"not in"` for categorical splits.
        value (float | frozenset[CategoryValue]): Threshold, or the categories
            routed left by the split.

    Examples:
        >>> p = Predicate(variable="age", operator="<=", value=30.5)
        >>> str(p)
        'age <= 30.5'
        >>> p.eval(18)
        True
        >>> Predicate(variable="color", operator="not in", value=frozenset({"red"})).eval("blue")
        True
    """

    variable: str = Field(description="Feature name the condition applies to, e.g. 'age'.")
    operator: PredicateOp = Field(
        description="Comparison operator: '<=' or '>' for thresholds, 'in' or 'not in' for category sets.",
    )
    value: float | frozenset[CategoryValue] = Field(
        description="Threshold for numeric tests, or the set of categories routed left.",
    )

    @model_validator(mode="after")
    def _validate_operator_value_compatibility(self) -> Predicate:
        """Validate that the operator and value type are compatible.

        Returns:
            Predicate: The validated model instance.

        Raises:
            ValueError: If a membership operator is used with a threshold, or a
                threshold operator with a category set.
        """
        is_set = isinstance(self.value, frozenset)
        if self.operator in _MEMBERSHIP_OPS and not is_set:
            raise ValueError(f"Membership operator '{self.operator}' requires a set of categories")
        if self.operator in _THRESHOLD_OPS and is_set:
            raise ValueError(f"Threshold operator '{self.operator}' cannot compare against a set")
        return self

    def __str__(self) -> str:
        """Return a human-readable representation of this predicate.

        Returns:
            str: E.g. `"color in {blue, red}"` or `"age > 30.5"`.
        """
        if isinstance(self.value, frozenset):
            listed = ", ".join(str(v) for v in sorted(self.value, key=lambda v: (type(v).__name__, v)))
            return f"{self.variable} {self.operator} {{{listed}}}"
        return f"{self.variable} {self.operator} {self.value}"

    def eval(self, x: Any) -> bool:
        """Evaluate this predicate against a feature value.

        Args:
            x (Any): The feature value to test.

        Returns:
            bool: `True` if the predicate holds for `x`.
        """
        if isinstance(self.value, frozenset):
            return (x in self.value) == (self.operator == "in")
        return _THRESHOLD_OPS[self.operator](float(x), self.value)


class ClassificationRule(BaseModel):
    """A decision rule ending in a classification leaf.

    Attributes:
        task_type (Literal["classification"]): Discriminator; always `"classification"`.
        predicates (list[Predicate]): Conditions from root to leaf; empty for a
            single-leaf tree.
        prediction (Any): Predicted label at the leaf.
        samples (int): Training samples that reached the leaf.
        confidence (float): Probability of the predicted label at the leaf.

    Examples:
        >>> rule = ClassificationRule(
        ...     task_type="classification",
        ...     predicates=[Predicate(variable="x", operator="<=", value=2.5)],
        ...     prediction="A",
        ...     samples=2,
        ...     confidence=1.0,
        ... )
        >>> str(rule)
        'IF x <= 2.5 THEN A (confidence=1.0, samples=2)'
    """

    task_type: Literal["classification"] = Field(description='Discriminator field. Always "classification".')
    predicates: list[Predicate] = Field(description="Predicates along the path from root to this leaf.")
    prediction: Any = Field(description="Predicted label for samples reaching this leaf.")
    samples: int = Field(ge=0, description="Number of training samples that reached this leaf.")
    confidence: float = Field(ge=0.0, le=1.0, description="Probability of the predicted label at this leaf.")

    def __str__(self) -> str:
        """Return the rule as an IF/THEN sentence.

        Returns:
            str: The rule text.
        """
        condition = _join_predicates(self.predicates)
        return f"IF {condition} THEN {self.prediction} (confidence={self.confidence}, samples={self.samples})"


class RegressionRule(BaseModel):
    """A decision rule ending in a regression leaf.

    Attributes:
        task_type (Literal["regression"]): Discriminator; always `"regression"`.
        predicates (list[Predicate]): Conditions from root to leaf; empty for a
            single-leaf tree.
        prediction (float): Mean target at the leaf.
        samples (int): Training samples that reached the leaf.
        impurity (float): Leaf impurity under the tree's criterion.
    """

    task_type: Literal["regression"] = Field(description='Discriminator field. Always "regression".')
    predicates: list[Predicate] = Field(description="Predicates along the path from root to this leaf.")
    prediction: float = Field(description="Mean target value for samples reaching this leaf.")
    samples: int = Field(ge=0, description="Number of training samples that reached this leaf.")
    impurity: float = Field(ge=0.0, description="Leaf impurity under the tree's criterion.")

    def __str__(self) -> str:
        """Return the rule as an IF/THEN sentence.

        Returns:
            str: The rule text.
        """
        condition = _join_predicates(self.predicates)
        return f"IF {condition} THEN {self.prediction} (impurity={self.impurity}, samples={self.samples})"


# Use this alias when accepting a rule of either task type
type TreeRule = Annotated[ClassificationRule | RegressionRule, Field(discriminator="task_type")]

# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def extract_rules(
    estimator: BaseDecisionTree,
    feature_names: Sequence[str] | None = None,
) -> list[ClassificationRule] | list[RegressionRule]:
    """Return one rule per leaf of a fitted tree, in left-to-right leaf order.

    Samples missing a split feature follow the larger child at prediction
    time; rules describe only the non-missing tests.

    Args:
        estimator (BaseDecisionTree): A fitted tree estimator.
        feature_names (Sequence[str] | None): Name of every feature column;
            defaults to `x0, x1, ...`.

    Returns:
        list[ClassificationRule] | list[RegressionRule]: The leaf rules.

    Raises:
        NotFittedError: If the estimator is not fitted.
        ValueError: If `feature_names` does not name every feature.

    Examples:
        >>> model = DecisionTreeClassifier().fit([[1.0], [2.0], [3.0], [4.0]], ["A", "A", "B", "B"])
        >>> [str(rule) for rule in extract_rules(model, ["x"])]
        ['IF x <= 2.5 THEN A (confidence=1.0, samples=2)', 'IF x > 2.5 THEN B (confidence=1.0, samples=2)']
    """
    root = estimator.tree_
    n_features = len(estimator.feature_types_)
    if feature_names is None:
        names = [f"x{i}" for i in range(n_features)]
    else:
        names = list(feature_names)
        if len(names) != n_features:
            raise ValueError(f"Expected {n_features} feature names, got {len(names)}")

    classes = estimator.classes_ if isinstance(estimator, DecisionTreeClassifier) else None
    return _collect_rules(root, names=names, classes=classes)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

_THRESHOLD_OPS: dict[str, Callable[[float, float], bool]] = {"<=": operator.le, ">": operator.gt}

_MEMBERSHIP_OPS = frozenset({"in", "not in"})


def _join_predicates(predicates: Sequence[Predicate]) -> str:
    return " AND ".join(str(p) for p in predicates) if predicates else "TRUE"


def _collect_rules(
    root: Node,
    *,
    names: Sequence[str],
    classes: Sequence[Label] | None,
) -> list[Any]:
    """Walk the tree depth-first and build one rule per leaf.

    Args:
        root (Node): Root of the tree.
        names (Sequence[str]): Feature names.
        classes (Sequence[Label] | None): Sorted labels for classification.

    Returns:
        list[Any]: Leaf rules in left-to-right order.

    Raises:
        MalformedTreeError: If a split tests a feature outside `names`.
    """
    rules: list[Any] = []
    pending: list[tuple[Node, list[Predicate]]] = [(root, [])]
    while pending:
        node, path_predicates = pending.pop()
        if node.is_terminal or node.feature_index is None:
            rules.append(_build_leaf_rule(node, classes=classes, path_predicates=path_predicates))
            continue
        if not 0 <= node.feature_index < len(names):
            raise MalformedTreeError(f"Feature index {node.feature_index} is out of bounds for {len(names)} features")

        name = names[node.feature_index]
        if node.left_categories is not None:
            categories = frozenset(node.left_categories)
            left_predicate = Predicate(variable=name, operator="in", value=categories)
            right_predicate = Predicate(variable=name, operator="not in", value=categories)
        elif node.threshold is not None:
            left_predicate = Predicate(variable=name, operator="<=", value=node.threshold)
            right_predicate = Predicate(variable=name, operator=">", value=node.threshold)
        else:
            rules.append(_build_leaf_rule(node, classes=classes, path_predicates=path_predicates))
            continue

        # Right first so the left leaves come out first
        pending.append((node.right, [*path_predicates, right_predicate]))  # type: ignore[arg-type]
        pending.append((node.left, [*path_predicates, left_predicate]))  # type: ignore[arg-type]
    return rules


def _build_leaf_rule(
    node: Node,
    *,
    classes: Sequence[Label] | None,
    path_predicates: list[Predicate],
) -> ClassificationRule | RegressionRule:
    """Construct the rule of a leaf from its cached value.

    Args:
        node (Node): The leaf (or an internal node treated as one).
        classes (Sequence[Label] | None): Sorted labels for classification.
        path_predicates (list[Predicate]): Predicates from root to leaf.

    Returns:
        ClassificationRule | RegressionRule: The constructed rule.
    """
    if classes is not None and isinstance(node.value, dict):
        prediction = most_probable_label(node.value, classes)
        return ClassificationRule(
            task_type="classification",
            predicates=path_predicates,
            prediction=prediction,
            samples=node.samples,
            confidence=round(node.value.get(prediction, 0.0), 4),
        )
    return RegressionRule(
        task_type="regression",
        predicates=path_predicates,
        prediction=round(float(node.value), 4),  # type: ignore[arg-type]
        samples=node.samples,
        impurity=round(node.impurity, 4),
    )
