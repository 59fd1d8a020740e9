"""Decision tree estimators for classification and regression."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, ClassVar, Self

import numpy as np
from loguru import logger
from pydantic import ValidationError

from treekit.criteria import resolve_criterion
from treekit.exceptions import MalformedTreeError, NotFittedError
from treekit.logging import TRAINING_LEVEL
from treekit.params import Criterion, FeatureType, MaxFeatures, TaskType, TreeParams
from treekit.persistence import (
    SerializedTree,
    TreeModelType,
    flatten_tree,
    load_tree_payload,
    rebuild_tree,
)
from treekit.tree.building import TreeBuilder
from treekit.tree.node import FeatureValue, Label, Node
from treekit.tree.outcomes import ClassificationOutcome, OutcomeStrategy, RegressionOutcome
from treekit.tree.prediction import most_probable_label, predict_value
from treekit.tree.pruning import prune_tree
from treekit.tree.splitting import encode_columns
from treekit.tree.validation import (
    SampleMatrix,
    TargetVector,
    as_rows,
    as_targets,
    sort_labels,
    validate_training_data,
)

__all__ = ["BaseDecisionTree", "DecisionTreeClassifier", "DecisionTreeRegressor"]


class BaseDecisionTree:
    """Shared fit, inspection and persistence logic of the tree estimators.

    Subclasses supply the task, the persisted type tag and the target encoding.

    Attributes:
        params (TreeParams): Validated hyperparameters.
    """

    _task: ClassVar[TaskType]
    _model_type: ClassVar[TreeModelType]

    def __init__(
        self,
        *,
        criterion: Criterion | None = None,
        max_depth: int | None = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        min_impurity_decrease: float = 0.0,
        feature_types: Sequence[FeatureType] | None = None,
        ccp_alpha: float = 0.0,
        max_features: MaxFeatures = None,
        random_state: int | None = None,
    ) -> None:
        """Initialize the estimator.

        Args:
            criterion (Criterion | None): Impurity criterion; `None` selects the
                task default. A criterion of the other task is replaced by the
                default with a logged warning.
            max_depth (int | None): Maximum depth; `None` is unlimited.
            min_samples_split (int): Minimum samples required to split a node.
            min_samples_leaf (int): Minimum samples on each side of a split.
            min_impurity_decrease (float): A split must decrease impurity by
                strictly more than this value.
            feature_types (Sequence[FeatureType] | None): Per-column types;
                `None` treats every column as numerical.
            ccp_alpha (float): Cost-complexity pruning parameter.
            max_features (MaxFeatures): Features considered per split.
            random_state (int | None): Seed for feature subsampling.

        Raises:
            pydantic.ValidationError: If a hyperparameter is out of range.
        """
        self.params = TreeParams(
            criterion=criterion,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=min_samples_leaf,
            min_impurity_decrease=min_impurity_decrease,
            feature_types=None if feature_types is None else list(feature_types),
            ccp_alpha=ccp_alpha,
            max_features=max_features,
            random_state=random_state,
        )
        self._root: Node | None = None
        self._criterion: Criterion | None = None
        self._feature_types: list[FeatureType] = []
        self._importances: np.ndarray = np.zeros(0)

    @classmethod
    def from_params(cls, params: TreeParams) -> Self:
        """Create an unfitted estimator from a hyperparameter model.

        Args:
            params (TreeParams): Hyperparameters.

        Returns:
            Self: A new estimator.
        """
        return cls(**params.model_dump())

    def __repr__(self) -> str:
        """Return the class name with the non-default hyperparameters.

        Returns:
            str: E.g. `"DecisionTreeClassifier(max_depth=3)"`.
        """
        non_defaults = self.params.model_dump(exclude_defaults=True)
        changed = ", ".join(f"{name}={value!r}" for name, value in non_defaults.items())
        return f"{type(self).__name__}({changed})"

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def fit(self, X: SampleMatrix, y: TargetVector) -> Self:
        """Build the tree from training data, replacing any previous fit.

        Args:
            X (SampleMatrix): Training samples as rows, a 2-D numpy array or a
                polars DataFrame. Missing values are `None` or NaN.
            y (TargetVector): One target per sample.

        Returns:
            Self: The fitted estimator.

        Raises:
            SampleCountMismatchError: If X and y differ in length.
            EmptyDatasetError: If X is empty.
            InconsistentRowLengthError: If the rows of X differ in length.
            FeatureTypesMismatchError: If `feature_types` does not match the column count.
            NonNumericFeatureError: If a numerical column holds a value that is not a number.
        """
        rows = as_rows(X)
        targets = as_targets(y)
        feature_types = validate_training_data(rows, targets, self.params.feature_types)
        logger.log(
            TRAINING_LEVEL,
            "Fitting {estimator}: samples={samples}, features={features}",
            estimator=type(self).__name__,
            samples=len(rows),
            features=len(feature_types),
        )
        return self.fit_validated(rows, targets, feature_types)

    def fit_validated(
        self,
        rows: Sequence[Sequence[FeatureValue]],
        targets: Sequence[Any],
        feature_types: Sequence[FeatureType],
    ) -> Self:
        """Build the tree from inputs already checked by `validate_training_data`.

        Args:
            rows (Sequence[Sequence[FeatureValue]]): Training samples.
            targets (Sequence[Any]): One target per sample.
            feature_types (Sequence[FeatureType]): Resolved type of every column.

        Returns:
            Self: The fitted estimator.
        """
        criterion = resolve_criterion(self.params.criterion, self._task)
        outcome, encoded_targets = self._encode_targets(targets, criterion)
        builder = TreeBuilder(
            outcome=outcome,
            feature_types=feature_types,
            params=self.params,
            rng=np.random.default_rng(self.params.random_state),
        )
        root = builder.build(encode_columns(rows, feature_types), encoded_targets)

        self._root = prune_tree(root, self.params.ccp_alpha)
        self._criterion = criterion
        self._feature_types = list(feature_types)
        self._importances = builder.importances.normalized()
        return self

    def _encode_targets(self, targets: Sequence[Any], criterion: Criterion) -> tuple[OutcomeStrategy, np.ndarray]:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def is_fitted(self) -> bool:
        """Whether `fit` (or `from_json`) has produced a tree."""
        return self._root is not None

    @property
    def tree_(self) -> Node:
        """Root node of the fitted tree.

        Raises:
            NotFittedError: If the estimator is not fitted.
        """
        if self._root is None:
            raise NotFittedError(type(self).__name__)
        return self._root

    @property
    def feature_types_(self) -> list[FeatureType]:
        """Resolved type of every feature column.

        Raises:
            NotFittedError: If the estimator is not fitted.
        """
        _ = self.tree_
        return list(self._feature_types)

    def get_feature_importances(self) -> np.ndarray:
        """Return the normalized impurity-decrease importance of every feature.

        Returns:
            np.ndarray: Non-negative values summing to 1, or all zeros when the
                tree never split.

        Raises:
            NotFittedError: If the estimator is not fitted.
        """
        _ = self.tree_
        return self._importances.copy()

    def get_depth(self) -> int:
        """Return the depth of the fitted tree; a single leaf has depth 0.

        Raises:
            NotFittedError: If the estimator is not fitted.
        """
        return self.tree_.depth

    def get_n_leaves(self) -> int:
        """Return the number of leaves of the fitted tree.

        Raises:
            NotFittedError: If the estimator is not fitted.
        """
        return self.tree_.n_leaves

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_payload(self) -> SerializedTree:
        """Convert the fitted tree to its wire model.

        Returns:
            SerializedTree: The persisted representation.

        Raises:
            NotFittedError: If the estimator is not fitted.
        """
        root = self.tree_
        classes = self._persisted_classes()
        params = self.params
        return SerializedTree(
            type=self._model_type,
            nodes=flatten_tree(root, classes),
            criterion=self._criterion or resolve_criterion(params.criterion, self._task),
            max_depth=params.max_depth,
            min_samples_split=params.min_samples_split,
            min_samples_leaf=params.min_samples_leaf,
            min_impurity_decrease=params.min_impurity_decrease,
            n_features=len(self._feature_types),
            feature_types=self._feature_types,
            ccp_alpha=params.ccp_alpha,
            max_features=params.max_features,
            random_state=params.random_state,
            feature_importances=self._importances.tolist(),
            unique_classes=None if classes is None else list(classes),  # type: ignore[arg-type]
        )

    def to_json(self) -> str:
        """Serialize the fitted tree to JSON with camelCase keys.

        Returns:
            str: The JSON document.

        Raises:
            NotFittedError: If the estimator is not fitted.
        """
        return self.to_payload().model_dump_json(by_alias=True)

    @classmethod
    def from_payload(cls, payload: SerializedTree) -> Self:
        """Rebuild a fitted estimator from its wire model.

        Args:
            payload (SerializedTree): A validated tree payload.

        Returns:
            Self: The restored estimator.

        Raises:
            MalformedTreeError: If the payload is internally inconsistent.
        """
        if len(payload.feature_types) != payload.n_features:
            raise MalformedTreeError(
                f"featureTypes lists {len(payload.feature_types)} types for {payload.n_features} features"
            )
        if len(payload.feature_importances) != payload.n_features:
            raise MalformedTreeError(
                f"featureImportances lists {len(payload.feature_importances)} values for {payload.n_features} features"
            )
        try:
            estimator = cls(
                criterion=payload.criterion,
                max_depth=payload.max_depth,
                min_samples_split=payload.min_samples_split,
                min_samples_leaf=payload.min_samples_leaf,
                min_impurity_decrease=payload.min_impurity_decrease,
                feature_types=payload.feature_types,
                ccp_alpha=payload.ccp_alpha,
                max_features=payload.max_features,
                random_state=payload.random_state,
            )
        except ValidationError as exc:
            raise MalformedTreeError(f"Persisted hyperparameters are invalid: {exc}") from exc

        classes = estimator._restore_classes(payload.unique_classes)
        estimator._root = rebuild_tree(payload.nodes, classes)
        estimator._criterion = resolve_criterion(payload.criterion, cls._task)
        estimator._feature_types = list(payload.feature_types)
        estimator._importances = np.asarray(payload.feature_importances, dtype=np.float64)
        return estimator

    @classmethod
    def from_json(cls, payload: str | bytes | Mapping[str, Any]) -> Self:
        """Load an estimator persisted with `to_json`.

        Args:
            payload (str | bytes | Mapping[str, Any]): JSON text or a decoded JSON object.

        Returns:
            Self: The restored, fitted estimator.

        Raises:
            ModelTypeMismatchError: If the payload belongs to another estimator kind.
            MalformedTreeError: If the payload does not describe a valid tree.
        """
        return cls.from_payload(load_tree_payload(payload, expected_type=cls._model_type))

    def _persisted_classes(self) -> list[Label] | None:
        return None

    def _restore_classes(self, unique_classes: Sequence[Label] | None) -> list[Label] | None:
        return None


class DecisionTreeClassifier(BaseDecisionTree):
    """Decision tree classifier over numeric and categorical features.

    Examples:
        >>> X = [[1.0], [2.0], [3.0], [4.0]]
        >>> y = ["A", "A", "B", "B"]
        >>> model = DecisionTreeClassifier(max_depth=1).fit(X, y)
        >>> model.predict([[1.5], [3.5]])
        ['A', 'B']
        >>> model.tree_.threshold
        2.5
    """

    _task: ClassVar[TaskType] = "classification"
    _model_type: ClassVar[TreeModelType] = "classifier"

    def __init__(self, **kwargs: Any) -> None:
        """Initialize the classifier; see `BaseDecisionTree` for the hyperparameters."""
        super().__init__(**kwargs)
        self._classes: list[Label] = []

    @property
    def classes_(self) -> list[Label]:
        """Sorted unique labels seen during fit; the column order of `predict_proba`.

        Raises:
            NotFittedError: If the estimator is not fitted.
        """
        _ = self.tree_
        return list(self._classes)

    def _encode_targets(self, targets: Sequence[Any], criterion: Criterion) -> tuple[OutcomeStrategy, np.ndarray]:
        self._classes = sort_labels(targets)
        codes = {label: code for code, label in enumerate(self._classes)}
        encoded = np.fromiter((codes[label] for label in targets), dtype=np.intp, count=len(targets))
        return ClassificationOutcome(self._classes, criterion), encoded

    def predict(self, X: SampleMatrix) -> list[Label]:
        """Predict the most probable label of every sample.

        Args:
            X (SampleMatrix): Samples to classify.

        Returns:
            list[Label]: One label per sample, with the types seen during fit.

        Raises:
            NotFittedError: If the estimator is not fitted.
            MalformedTreeError: If a sample has fewer features than a split tests.
        """
        root = self.tree_
        leaf_values = [predict_value(root, row) for row in as_rows(X)]
        return [most_probable_label(value, self._classes) for value in leaf_values]  # type: ignore[arg-type]

    def predict_proba(self, X: SampleMatrix) -> np.ndarray:
        """Predict class probabilities of every sample.

        Args:
            X (SampleMatrix): Samples to classify.

        Returns:
            np.ndarray: Array of shape `(n_samples, n_classes)`; columns follow `classes_`.

        Raises:
            NotFittedError: If the estimator is not fitted.
            MalformedTreeError: If a sample has fewer features than a split tests.
        """
        root = self.tree_
        rows = as_rows(X)
        probabilities = np.zeros((len(rows), len(self._classes)), dtype=np.float64)
        for row_index, row in enumerate(rows):
            leaf_value: dict[Label, float] = predict_value(root, row)  # type: ignore[assignment]
            probabilities[row_index] = [leaf_value.get(label, 0.0) for label in self._classes]
        return probabilities

    def _persisted_classes(self) -> list[Label] | None:
        return list(self._classes)

    def _restore_classes(self, unique_classes: Sequence[Label] | None) -> list[Label] | None:
        if unique_classes is None:
            raise MalformedTreeError("Persisted classifier is missing uniqueClasses")
        self._classes = list(unique_classes)
        return self._classes


class DecisionTreeRegressor(BaseDecisionTree):
    """Decision tree regressor over numeric and categorical features.

    Examples:
        >>> model = DecisionTreeRegressor().fit([[1.0], [2.0], [3.0], [4.0]], [1.0, 1.0, 5.0, 5.0])
        >>> model.predict([[0.0], [10.0]]).tolist()
        [1.0, 5.0]
    """

    _task: ClassVar[TaskType] = "regression"
    _model_type: ClassVar[TreeModelType] = "regressor"

    def _encode_targets(self, targets: Sequence[Any], criterion: Criterion) -> tuple[OutcomeStrategy, np.ndarray]:
        encoded = np.asarray([float(target) for target in targets], dtype=np.float64)
        return RegressionOutcome(criterion), encoded

    def predict(self, X: SampleMatrix) -> np.ndarray:
        """Predict the target of every sample.

        Args:
            X (SampleMatrix): Samples to score.

        Returns:
            np.ndarray: One float per sample.

        Raises:
            NotFittedError: If the estimator is not fitted.
            MalformedTreeError: If a sample has fewer features than a split tests.
        """
        root = self.tree_
        leaf_values = [predict_value(root, row) for row in as_rows(X)]
        return np.asarray(leaf_values, dtype=np.float64)
