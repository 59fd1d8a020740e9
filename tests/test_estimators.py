"""Tests for DecisionTreeClassifier and DecisionTreeRegressor."""

from __future__ import annotations

import math

import numpy as np
import polars as pl
import pytest
from pydantic import ValidationError
from pytest_check import check

from treekit import DecisionTreeClassifier, DecisionTreeRegressor, NotFittedError
from treekit.exceptions import (
    ConfigurationError,
    EmptyDatasetError,
    FeatureTypesMismatchError,
    InconsistentRowLengthError,
    NonNumericFeatureError,
    SampleCountMismatchError,
)
from treekit.tree.rules import extract_rules


def _make_step_classifier(**kwargs: object) -> DecisionTreeClassifier:
    """Fit a classifier on four samples separable at x = 2.5.

    Args:
        **kwargs (object): Hyperparameters forwarded to the classifier.

    Returns:
        DecisionTreeClassifier: The fitted classifier.
    """
    return DecisionTreeClassifier(**kwargs).fit([[1.0], [2.0], [3.0], [4.0]], ["A", "A", "B", "B"])


class TestClassifierFit:
    """Tests for fitting and predicting with the classifier."""

    def test_threshold_split_separates_classes(self) -> None:
        """Six samples with a clean boundary are split once and predicted correctly."""
        # Arrange
        X = [[10], [12], [15], [18], [20], [22]]
        y = ["A", "A", "A", "B", "B", "B"]

        # Act
        model = DecisionTreeClassifier(max_depth=2).fit(X, y)

        # Assert
        with check:
            assert model.predict([[9], [21]]) == ["A", "B"]
        with check:
            assert model.tree_.threshold == pytest.approx(16.5)
        with check:
            assert model.get_depth() == 1
        with check:
            assert model.get_n_leaves() == 2

    def test_categorical_split_is_pure_at_depth_one(self) -> None:
        """A two-category feature perfectly separating the labels yields two pure leaves."""
        # Arrange
        X = [["A"], ["B"], ["A"], ["B"]]
        y = [0, 1, 0, 1]

        # Act
        model = DecisionTreeClassifier(feature_types=["categorical"]).fit(X, y)
        root = model.tree_

        # Assert
        with check:
            assert root.left_categories == frozenset({"A"})
        with check:
            assert root.left is not None and root.left.impurity == 0.0
        with check:
            assert root.right is not None and root.right.impurity == 0.0
        with check:
            assert model.predict([["A"], ["B"]]) == [0, 1]

    def test_multi_category_split_groups_by_class_share(self) -> None:
        """Categories with the same class mix end up on the same side."""
        # Arrange
        X = [["red"], ["green"], ["blue"], ["red"], ["green"], ["blue"]]
        y = ["yes", "no", "yes", "yes", "no", "yes"]

        # Act
        model = DecisionTreeClassifier(feature_types=["categorical"]).fit(X, y)

        # Assert
        with check:
            assert model.tree_.left_categories == frozenset({"red", "blue"})
        with check:
            assert model.predict([["blue"], ["green"]]) == ["yes", "no"]
        with check:
            assert model.predict([["purple"]]) == ["no"], "Unseen categories should follow the right branch"

    def test_mixed_numeric_and_categorical_features(self) -> None:
        """Numeric and categorical columns can be used together."""
        # Arrange
        X = [[25, "city"], [32, "city"], [47, "rural"], [51, "rural"], [38, "city"], [29, "rural"]]
        y = ["buy", "buy", "skip", "skip", "buy", "skip"]

        # Act
        model = DecisionTreeClassifier(feature_types=["numerical", "categorical"]).fit(X, y)

        # Assert
        with check:
            assert model.predict(X) == y
        with check:
            assert model.tree_.feature_index == 1, "The categorical column separates the classes perfectly"

    def test_numeric_labels_keep_their_type(self) -> None:
        """Integer labels are predicted as Python ints, also from numpy input."""
        # Arrange
        X = np.array([[1.0], [2.0], [3.0], [4.0]])
        y = np.array([0, 0, 1, 1])

        # Act
        model = DecisionTreeClassifier().fit(X, y)
        predictions = model.predict(np.array([[1.0], [4.0]]))

        # Assert
        with check:
            assert predictions == [0, 1]
        with check:
            assert all(type(label) is int for label in predictions)
        with check:
            assert model.classes_ == [0, 1]

    def test_polars_input(self) -> None:
        """A polars DataFrame and Series are accepted for X and y."""
        # Arrange
        X = pl.DataFrame({"x": [1.0, 2.0, 3.0, 4.0]})
        y = pl.Series("label", ["A", "A", "B", "B"])

        # Act
        model = DecisionTreeClassifier().fit(X, y)

        # Assert
        assert model.predict(pl.DataFrame({"x": [0.0, 9.0]})) == ["A", "B"]

    def test_predict_proba_columns_follow_sorted_classes(self) -> None:
        """Probability columns are ordered like `classes_`."""
        # Arrange
        model = DecisionTreeClassifier(max_depth=0).fit([[1.0], [2.0], [3.0], [4.0]], ["b", "a", "b", "b"])

        # Act
        probabilities = model.predict_proba([[0.0]])

        # Assert
        with check:
            assert model.classes_ == ["a", "b"]
        with check:
            assert probabilities.shape == (1, 2)
        with check:
            assert probabilities[0].tolist() == pytest.approx([0.25, 0.75])
        with check:
            assert model.predict([[0.0]]) == ["b"]

    def test_predict_empty_input(self) -> None:
        """Predicting zero samples returns empty results."""
        # Arrange
        model = _make_step_classifier()

        # Act & Assert
        with check:
            assert model.predict([]) == []
        with check:
            assert model.predict_proba([]).shape == (0, 2)

    def test_refit_replaces_previous_tree(self) -> None:
        """A second fit discards the classes and tree of the first."""
        # Arrange
        model = _make_step_classifier()

        # Act
        model.fit([[1.0], [2.0]], ["x", "y"])

        # Assert
        with check:
            assert model.classes_ == ["x", "y"]
        with check:
            assert model.predict([[1.0]]) == ["x"]


class TestMissingValues:
    """Tests for routing samples with missing feature values."""

    def test_missing_value_follows_larger_child(self) -> None:
        """A missing training sample joins the side with more non-missing samples."""
        # Arrange
        X = [[1.0], [2.0], [3.0], [4.0], [5.0], [None]]
        y = ["A", "A", "B", "B", "B", "B"]

        # Act
        model = DecisionTreeClassifier().fit(X, y)
        root = model.tree_

        # Assert
        with check:
            assert root.threshold == pytest.approx(2.5)
        with check:
            assert root.right is not None and root.right.samples == 4
        with check:
            assert model.predict([[None], [math.nan]]) == ["B", "B"]

    def test_missing_value_goes_left_on_tie(self) -> None:
        """With equally large sides the missing training sample goes left."""
        # Arrange
        X = [[1.0], [2.0], [3.0], [4.0], [None]]
        y = ["A", "A", "B", "B", "A"]

        # Act
        model = DecisionTreeClassifier().fit(X, y)
        root = model.tree_

        # Assert
        with check:
            assert root.left is not None and root.left.samples == 3
        with check:
            assert root.right is not None and root.right.samples == 2
        with check:
            assert model.predict([[None]]) == ["A"]

    def test_missing_categorical_value(self) -> None:
        """None in a categorical column is treated as missing, not as a category."""
        # Arrange
        X = [["a"], ["a"], ["a"], ["b"], ["b"], [None]]
        y = [1, 1, 1, 0, 0, 1]

        # Act
        model = DecisionTreeClassifier(feature_types=["categorical"]).fit(X, y)

        # Assert
        with check:
            assert model.tree_.left_categories == frozenset({"a"})
        with check:
            assert model.predict([[None]]) == [1]


class TestStoppingRules:
    """Tests for the hyperparameters that stop tree growth."""

    def test_max_depth_zero_gives_single_leaf(self) -> None:
        """max_depth=0 predicts the majority label everywhere."""
        # Act
        model = DecisionTreeClassifier(max_depth=0).fit([[1.0], [2.0], [3.0]], ["A", "B", "B"])

        # Assert
        with check:
            assert model.get_depth() == 0
        with check:
            assert model.predict([[1.0]]) == ["B"]

    @pytest.mark.parametrize(
        ("min_impurity_decrease", "expected_leaves"),
        [(0.0, 2), (0.49, 2), (0.5, 1)],
        ids=["default", "below-gain", "equal-to-gain"],
    )
    def test_min_impurity_decrease_requires_strictly_greater_gain(
        self, min_impurity_decrease: float, expected_leaves: int
    ) -> None:
        """A split whose gain equals the threshold is rejected.

        Args:
            min_impurity_decrease (float): Threshold under test.
            expected_leaves (int): Leaves of the fitted tree.
        """
        # Act
        model = _make_step_classifier(min_impurity_decrease=min_impurity_decrease)

        # Assert
        assert model.get_n_leaves() == expected_leaves

    def test_rejected_split_still_credits_importance(self) -> None:
        """The best split's gain is credited before the gain threshold rejects it."""
        # Act
        model = _make_step_classifier(min_impurity_decrease=0.5)

        # Assert
        with check:
            assert model.get_n_leaves() == 1
        with check:
            assert model.get_feature_importances().tolist() == [1.0]

    def test_min_samples_leaf_blocks_small_children(self) -> None:
        """No leaf holds fewer than min_samples_leaf samples."""
        # Arrange
        X = [[float(i)] for i in range(10)]
        y = ["A"] + ["B"] * 9

        # Act
        model = DecisionTreeClassifier(min_samples_leaf=3).fit(X, y)

        # Assert
        leaves = [node for node in model.tree_.iter_nodes() if node.is_leaf]
        assert min(leaf.samples for leaf in leaves) >= 3

    def test_min_samples_split_blocks_small_nodes(self) -> None:
        """A node with fewer samples than min_samples_split stays a leaf."""
        # Act
        model = _make_step_classifier(min_samples_split=5)

        # Assert
        assert model.get_n_leaves() == 1


class TestPruning:
    """Tests for cost-complexity pruning through the estimator."""

    @staticmethod
    def _fit(ccp_alpha: float) -> DecisionTreeRegressor:
        X = [[float(i)] for i in range(1, 9)]
        y = [0.0, 0.0, 1.0, 1.0, 10.0, 10.0, 11.0, 11.0]
        return DecisionTreeRegressor(ccp_alpha=ccp_alpha).fit(X, y)

    @pytest.mark.parametrize(
        ("ccp_alpha", "expected_leaves"),
        [(0.0, 4), (0.5, 4), (1.5, 2), (150.0, 2), (250.0, 1)],
        ids=["no-pruning", "below-weakest-link", "collapse-lower-level", "keep-root-split", "collapse-root"],
    )
    def test_leaf_counts(self, ccp_alpha: float, expected_leaves: int) -> None:
        """Subtrees collapse once their effective alpha is at most ccp_alpha.

        Args:
            ccp_alpha (float): Pruning strength.
            expected_leaves (int): Leaves after pruning.
        """
        # Act
        model = self._fit(ccp_alpha)

        # Assert
        assert model.get_n_leaves() == expected_leaves

    def test_increasing_alpha_never_adds_leaves(self) -> None:
        """Leaf counts are non-increasing in ccp_alpha."""
        # Act
        leaf_counts = [self._fit(alpha).get_n_leaves() for alpha in [0.0, 0.25, 1.0, 10.0, 100.0, 1000.0]]

        # Assert
        assert leaf_counts == sorted(leaf_counts, reverse=True)

    def test_pruned_node_predicts_its_mean(self) -> None:
        """A collapsed subtree predicts the mean of its training samples."""
        # Act
        model = self._fit(1.5)

        # Assert
        assert model.predict([[1.0], [8.0]]).tolist() == pytest.approx([0.5, 10.5])


class TestRegressor:
    """Tests for fitting and predicting with the regressor."""

    def test_predictions_are_monotone_on_linear_data(self) -> None:
        """Predictions stay inside the training range and follow the trend."""
        # Arrange
        X = [[1], [2], [3], [4], [5]]
        y = [10, 20, 30, 40, 50]

        # Act
        model = DecisionTreeRegressor().fit(X, y)
        low, mid, high = model.predict([[1], [2.5], [5]]).tolist()

        # Assert
        with check:
            assert 10 < mid < 40
        with check:
            assert low < high

    def test_predict_returns_float_array(self) -> None:
        """Predictions are a float64 numpy array."""
        # Act
        predictions = DecisionTreeRegressor().fit([[0.0], [1.0]], [1, 3]).predict([[0.0], [1.0]])

        # Assert
        with check:
            assert isinstance(predictions, np.ndarray)
        with check:
            assert predictions.dtype == np.float64
        with check:
            assert predictions.tolist() == [1.0, 3.0]

    def test_mae_criterion(self) -> None:
        """The MAE criterion finds the same boundary on step data."""
        # Act
        model = DecisionTreeRegressor(criterion="mae").fit([[1.0], [2.0], [3.0], [4.0]], [1.0, 1.0, 5.0, 5.0])

        # Assert
        with check:
            assert model.tree_.threshold == pytest.approx(2.5)
        with check:
            assert model.predict([[0.0], [9.0]]).tolist() == [1.0, 5.0]


class TestFeatureImportances:
    """Tests for `get_feature_importances`."""

    def test_importances_sum_to_one_after_a_split(self) -> None:
        """Only the informative feature receives importance."""
        # Arrange
        X = [[1.0, 7.0], [2.0, 7.0], [3.0, 7.0], [4.0, 7.0]]

        # Act
        importances = DecisionTreeClassifier().fit(X, ["A", "A", "B", "B"]).get_feature_importances()

        # Assert
        with check:
            assert importances.sum() == pytest.approx(1.0)
        with check:
            assert importances.tolist() == [1.0, 0.0]

    def test_pure_tree_has_zero_importances(self) -> None:
        """A single pure leaf credits nothing."""
        # Act
        importances = DecisionTreeClassifier().fit([[1.0, 2.0], [3.0, 4.0]], ["A", "A"]).get_feature_importances()

        # Assert
        assert importances.tolist() == [0.0, 0.0]

    def test_importances_are_a_copy(self) -> None:
        """Mutating the returned array does not change the model."""
        # Arrange
        model = _make_step_classifier()

        # Act
        model.get_feature_importances()[0] = 42.0

        # Assert
        assert model.get_feature_importances().tolist() == [1.0]


class TestFeatureSubsampling:
    """Tests for `max_features` and `random_state`."""

    def test_equal_seeds_give_equal_trees(self) -> None:
        """Two fits with the same seed produce identical trees."""
        # Arrange
        rng = np.random.default_rng(0)
        X = rng.normal(size=(40, 6))
        y = (X[:, 0] + X[:, 3] > 0).astype(int)

        # Act
        first = DecisionTreeClassifier(max_features="sqrt", random_state=11).fit(X, y)
        second = DecisionTreeClassifier(max_features="sqrt", random_state=11).fit(X, y)

        # Assert
        assert first.to_json() == second.to_json()

    def test_max_features_one_still_fits(self) -> None:
        """A single feature per split is enough to separate the classes eventually."""
        # Arrange
        X = [[1.0, 0.0], [2.0, 0.0], [3.0, 1.0], [4.0, 1.0]]

        # Act
        model = DecisionTreeClassifier(max_features=1, random_state=3).fit(X, ["A", "A", "B", "B"])

        # Assert
        assert model.predict(X) == ["A", "A", "B", "B"]


class TestConfigurationErrors:
    """Tests for invalid training inputs and hyperparameters."""

    @pytest.mark.parametrize(
        ("X", "y", "kwargs", "error"),
        [
            ([[1.0], [2.0]], ["A"], {}, SampleCountMismatchError),
            ([], [], {}, EmptyDatasetError),
            ([[1.0, 2.0], [3.0]], ["A", "B"], {}, InconsistentRowLengthError),
            ([[1.0, 2.0]], ["A"], {"feature_types": ["numerical"]}, FeatureTypesMismatchError),
            ([[1.0], ["tall"]], ["A", "B"], {}, NonNumericFeatureError),
        ],
        ids=["length-mismatch", "empty", "ragged-rows", "feature-types-mismatch", "non-numeric-value"],
    )
    def test_fit_rejects_invalid_data(
        self,
        X: list[list[float]],
        y: list[str],
        kwargs: dict[str, object],
        error: type[ConfigurationError],
    ) -> None:
        """Malformed training data raises a ConfigurationError subclass.

        Args:
            X (list[list[float]]): Samples.
            y (list[str]): Targets.
            kwargs (dict[str, object]): Hyperparameters.
            error (type[ConfigurationError]): Expected exception.
        """
        # Act & Assert
        with pytest.raises(error):
            DecisionTreeClassifier(**kwargs).fit(X, y)  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"min_samples_split": 1},
            {"min_samples_leaf": 0},
            {"max_depth": -1},
            {"ccp_alpha": -0.1},
            {"max_features": 0},
            {"max_features": 1.5},
            {"criterion": "variance"},
        ],
        ids=[
            "min-samples-split",
            "min-samples-leaf",
            "max-depth",
            "ccp-alpha",
            "max-features-int",
            "max-features-float",
            "criterion",
        ],
    )
    def test_invalid_hyperparameters(self, kwargs: dict[str, object]) -> None:
        """Out-of-range hyperparameters fail at construction.

        Args:
            kwargs (dict[str, object]): Hyperparameters.
        """
        # Act & Assert
        with pytest.raises(ValidationError):
            DecisionTreeRegressor(**kwargs)  # type: ignore[arg-type]

    def test_non_numeric_value_names_the_column(self) -> None:
        """A word in a numerical column is reported with its column, not as a bare ValueError."""
        # Arrange
        X = [[1.0, "red"], [2.0, "blue"], ["3.5", "red"], ["n/a", "blue"]]

        # Act & Assert
        with pytest.raises(NonNumericFeatureError) as exc_info:
            DecisionTreeClassifier(feature_types=["numerical", "categorical"]).fit(X, ["A", "A", "B", "B"])
        with check:
            assert exc_info.value.feature_index == 0
        with check:
            assert exc_info.value.value == "n/a"
        with check:
            assert isinstance(exc_info.value, ConfigurationError)

    def test_mismatched_criterion_falls_back_to_default(self) -> None:
        """A regression criterion on a classifier is replaced by gini."""
        # Act
        model = _make_step_classifier(criterion="mse")

        # Assert
        assert '"criterion":"gini"' in model.to_json()


class TestNotFitted:
    """Tests for calls made before fit."""

    @pytest.mark.parametrize(
        "call",
        [
            lambda m: m.predict([[1.0]]),
            lambda m: m.predict_proba([[1.0]]),
            lambda m: m.get_feature_importances(),
            lambda m: m.get_depth(),
            lambda m: m.get_n_leaves(),
            lambda m: m.to_json(),
            lambda m: m.classes_,
        ],
        ids=["predict", "predict_proba", "importances", "depth", "n_leaves", "to_json", "classes"],
    )
    def test_raises_not_fitted(self, call: object) -> None:
        """Every fitted-model operation raises NotFittedError before fit.

        Args:
            call (object): Operation under test.
        """
        # Arrange
        model = DecisionTreeClassifier()

        # Act & Assert
        with pytest.raises(NotFittedError, match="DecisionTreeClassifier is not fitted"):
            call(model)  # type: ignore[operator]

    def test_is_fitted_flag(self) -> None:
        """is_fitted flips after fit."""
        # Arrange
        model = DecisionTreeRegressor()

        # Act & Assert
        with check:
            assert not model.is_fitted
        model.fit([[1.0]], [2.0])
        with check:
            assert model.is_fitted


class TestRepr:
    """Tests for the estimator representation."""

    def test_repr_lists_non_default_hyperparameters(self) -> None:
        """Only changed hyperparameters are shown."""
        # Act & Assert
        with check:
            assert repr(DecisionTreeClassifier()) == "DecisionTreeClassifier()"
        with check:
            assert repr(DecisionTreeRegressor(max_depth=3)) == "DecisionTreeRegressor(max_depth=3)"


_DEEP_N_SAMPLES = 1100


@pytest.fixture(scope="module")
def alternating_classifier() -> DecisionTreeClassifier:
    """Fit a classifier on sorted samples with alternating labels.

    Every split can only peel one sample off the end of the range, so the tree
    is a chain about as deep as the sample count.

    Returns:
        DecisionTreeClassifier: The fitted classifier.
    """
    X = [[float(i)] for i in range(_DEEP_N_SAMPLES)]
    y = [i % 2 for i in range(_DEEP_N_SAMPLES)]
    return DecisionTreeClassifier().fit(X, y)


class TestDeepTrees:
    """Tests for trees deeper than the interpreter's default recursion limit."""

    def test_fit_grows_a_chain_past_one_thousand_levels(self, alternating_classifier: DecisionTreeClassifier) -> None:
        """Fitting 1100 alternating labels builds a 1099-level chain of pure leaves.

        Args:
            alternating_classifier (DecisionTreeClassifier): Deep fitted classifier.
        """
        # Arrange
        X = [[float(i)] for i in range(_DEEP_N_SAMPLES)]

        # Act
        predictions = alternating_classifier.predict(X)

        # Assert
        with check:
            assert alternating_classifier.get_depth() == _DEEP_N_SAMPLES - 1
        with check:
            assert alternating_classifier.get_n_leaves() == _DEEP_N_SAMPLES
        with check:
            assert predictions == [i % 2 for i in range(_DEEP_N_SAMPLES)]

    def test_deep_tree_rules_and_json_round_trip(self, alternating_classifier: DecisionTreeClassifier) -> None:
        """Rule extraction and persistence walk the whole chain.

        Args:
            alternating_classifier (DecisionTreeClassifier): Deep fitted classifier.
        """
        # Arrange
        X = [[float(i) + 0.25] for i in range(0, _DEEP_N_SAMPLES, 7)]

        # Act
        rules = extract_rules(alternating_classifier)
        restored = DecisionTreeClassifier.from_json(alternating_classifier.to_json())

        # Assert
        with check:
            assert len(rules) == _DEEP_N_SAMPLES
        with check:
            assert max(len(rule.predicates) for rule in rules) == _DEEP_N_SAMPLES - 1
        with check:
            assert restored.get_depth() == _DEEP_N_SAMPLES - 1
        with check:
            assert restored.predict(X) == alternating_classifier.predict(X)
