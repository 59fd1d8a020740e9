"""Tests for predicates, leaf rules and rule extraction."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError
from pytest_check import check

from treekit import DecisionTreeClassifier, DecisionTreeRegressor, NotFittedError
from treekit.tree.rules import ClassificationRule, Predicate, RegressionRule, TreeRule, extract_rules


class TestPredicate:
    """Tests for `Predicate`."""

    @pytest.mark.parametrize(
        ("operator", "x", "expected"),
        [("<=", 2.5, True), ("<=", 3, False), (">", 3, True), (">", 2.5, False)],
        ids=["le-equal", "le-above", "gt-above", "gt-equal"],
    )
    def test_threshold_eval(self, operator: str, x: float, expected: bool) -> None:
        """Threshold predicates compare numerically.

        Args:
            operator (str): Threshold operator.
            x (float): Feature value.
            expected (bool): Expected outcome.
        """
        # Arrange
        predicate = Predicate(variable="x", operator=operator, value=2.5)  # type: ignore[arg-type]

        # Act & Assert
        assert predicate.eval(x) is expected

    def test_membership_eval(self) -> None:
        """`in` and `not in` are complementary."""
        # Arrange
        categories = frozenset({"red", "blue"})
        inside = Predicate(variable="color", operator="in", value=categories)
        outside = Predicate(variable="color", operator="not in", value=categories)

        # Act & Assert
        with check:
            assert inside.eval("red") and not outside.eval("red")
        with check:
            assert outside.eval("green") and not inside.eval("green")

    def test_str_sorts_categories(self) -> None:
        """Category sets are rendered in sorted order."""
        # Arrange
        predicate = Predicate(variable="color", operator="in", value=frozenset({"red", "blue"}))

        # Act & Assert
        assert str(predicate) == "color in {blue, red}"

    @pytest.mark.parametrize(
        ("operator", "value"),
        [("in", 1.0), ("not in", 2.0), ("<=", frozenset({"a"})), (">", frozenset({"a"}))],
        ids=["in-threshold", "not-in-threshold", "le-set", "gt-set"],
    )
    def test_operator_value_mismatch(self, operator: str, value: object) -> None:
        """Membership operators need a set and threshold operators a number.

        Args:
            operator (str): Operator under test.
            value (object): Incompatible value.
        """
        # Act & Assert
        with pytest.raises(ValidationError):
            Predicate(variable="x", operator=operator, value=value)  # type: ignore[arg-type]


class TestRuleModels:
    """Tests for the rule models."""

    def test_regression_rule_str(self) -> None:
        """Regression rules report impurity instead of confidence."""
        # Arrange
        rule = RegressionRule(
            task_type="regression",
            predicates=[Predicate(variable="x", operator=">", value=2.5)],
            prediction=5.0,
            samples=2,
            impurity=0.0,
        )

        # Act & Assert
        assert str(rule) == "IF x > 2.5 THEN 5.0 (impurity=0.0, samples=2)"

    def test_confidence_is_bounded(self) -> None:
        """Confidence outside [0, 1] is rejected."""
        # Act & Assert
        with pytest.raises(ValidationError):
            ClassificationRule(task_type="classification", predicates=[], prediction="A", samples=1, confidence=1.5)

    def test_discriminated_union(self) -> None:
        """`TreeRule` picks the model from `task_type`."""
        # Arrange
        adapter = TypeAdapter(TreeRule)

        # Act
        rule = adapter.validate_python(
            {"task_type": "regression", "predicates": [], "prediction": 1.0, "samples": 3, "impurity": 0.5}
        )

        # Assert
        assert isinstance(rule, RegressionRule)


class TestExtractRules:
    """Tests for `extract_rules`."""

    def test_numeric_classifier(self) -> None:
        """A stump yields one rule per leaf, left to right."""
        # Arrange
        model = DecisionTreeClassifier().fit([[1.0], [2.0], [3.0], [4.0]], ["A", "A", "B", "B"])

        # Act
        rules = extract_rules(model, ["x"])

        # Assert
        assert [str(rule) for rule in rules] == [
            "IF x <= 2.5 THEN A (confidence=1.0, samples=2)",
            "IF x > 2.5 THEN B (confidence=1.0, samples=2)",
        ]

    def test_default_feature_names(self) -> None:
        """Features are named x0, x1, ... when no names are given."""
        # Arrange
        model = DecisionTreeRegressor().fit([[0.0, 1.0], [0.0, 2.0], [0.0, 3.0], [0.0, 4.0]], [1.0, 1.0, 5.0, 5.0])

        # Act
        rules = extract_rules(model)

        # Assert
        with check:
            assert [rule.predicates[0].variable for rule in rules] == ["x1", "x1"]
        with check:
            assert [rule.prediction for rule in rules] == [1.0, 5.0]
        with check:
            assert all(isinstance(rule, RegressionRule) for rule in rules)

    def test_categorical_split(self) -> None:
        """Categorical splits produce complementary `in` / `not in` predicates."""
        # Arrange
        X = [["a"], ["a"], ["b"], ["b"]]
        model = DecisionTreeClassifier(feature_types=["categorical"]).fit(X, ["x", "x", "y", "y"])

        # Act
        left, right = extract_rules(model, ["letter"])

        # Assert
        left_predicate = left.predicates[0]
        with check:
            assert (left_predicate.operator, right.predicates[0].operator) == ("in", "not in")
        with check:
            assert left_predicate.value == right.predicates[0].value
        with check:
            assert left.prediction == ("x" if left_predicate.eval("a") else "y")

    def test_single_leaf_tree(self) -> None:
        """A tree without splits has one unconditional rule."""
        # Arrange
        model = DecisionTreeClassifier(max_depth=0).fit([[0.0]] * 4, ["b", "a", "b", "b"])

        # Act
        (rule,) = extract_rules(model)

        # Assert
        assert str(rule) == "IF TRUE THEN b (confidence=0.75, samples=4)"

    def test_rules_agree_with_predict(self) -> None:
        """Each training sample satisfies exactly one rule, which predicts the model's label."""
        # Arrange
        X = [[1.0, "red"], [2.0, "blue"], [3.0, "red"], [4.0, "green"], [5.0, "blue"], [6.0, "green"]]
        model = DecisionTreeClassifier(feature_types=["numerical", "categorical"]).fit(X, [0, 1, 0, 1, 1, 0])
        rules = extract_rules(model, ["size", "color"])
        index_of = {"size": 0, "color": 1}

        # Act
        matches = [
            [rule for rule in rules if all(p.eval(row[index_of[p.variable]]) for p in rule.predicates)] for row in X
        ]

        # Assert
        with check:
            assert all(len(matched) == 1 for matched in matches)
        with check:
            assert [matched[0].prediction for matched in matches] == model.predict(X)

    def test_wrong_number_of_names(self) -> None:
        """Every feature must be named."""
        # Arrange
        model = DecisionTreeRegressor().fit([[0.0], [1.0]], [0.0, 1.0])

        # Act & Assert
        with pytest.raises(ValueError, match="Expected 1 feature names, got 2"):
            extract_rules(model, ["a", "b"])

    def test_unfitted_estimator(self) -> None:
        """Rules cannot be extracted before fit."""
        # Act & Assert
        with pytest.raises(NotFittedError):
            extract_rules(DecisionTreeClassifier())
