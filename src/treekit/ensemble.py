"""Bagged ensembles of decision trees (random forests)."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar, Self

import numpy as np
from loguru import logger
from pydantic import ValidationError

from treekit.criteria import resolve_criterion
from treekit.exceptions import MalformedTreeError, ModelTypeMismatchError, NotFittedError
from treekit.logging import TRAINING_LEVEL
from treekit.params import Criterion, FeatureType, ForestParams, MaxFeatures, TaskType
from treekit.persistence import ForestModelType, SerializedForest, load_forest_payload
from treekit.tree.estimators import BaseDecisionTree, DecisionTreeClassifier, DecisionTreeRegressor
from treekit.tree.node import FeatureValue, Label
from treekit.tree.validation import (
    SampleMatrix,
    TargetVector,
    as_rows,
    as_targets,
    sort_labels,
    validate_training_data,
)

__all__ = ["BaseRandomForest", "RandomForestClassifier", "RandomForestRegressor"]

_SEED_UPPER_BOUND = 2**32


class BaseRandomForest[TreeT: BaseDecisionTree]:
    """Shared fitting and persistence logic of the forests.

    Attributes:
        params (ForestParams): Validated hyperparameters.
    """

    _task: ClassVar[TaskType]
    _model_type: ClassVar[ForestModelType]
    _tree_class: ClassVar[type[BaseDecisionTree]]

    def __init__(
        self,
        *,
        n_estimators: int = 100,
        bootstrap: bool = True,
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
        """Initialize the forest.

        Args:
            n_estimators (int): Number of trees.
            bootstrap (bool): Fit each tree on a resample drawn with
                replacement, of the same size as the training set.
            criterion (Criterion | None): Impurity criterion of every tree.
            max_depth (int | None): Maximum depth of every tree.
            min_samples_split (int): Minimum samples required to split a node.
            min_samples_leaf (int): Minimum samples on each side of a split.
            min_impurity_decrease (float): Minimum gain to accept a split.
            feature_types (Sequence[FeatureType] | None): Per-column types.
            ccp_alpha (float): Cost-complexity pruning parameter of every tree.
            max_features (MaxFeatures): Features considered per split.
            random_state (int | None): Seed for resampling and per-tree seeds.

        Raises:
            pydantic.ValidationError: If a hyperparameter is out of range.
        """
        self.params = ForestParams(
            n_estimators=n_estimators,
            bootstrap=bootstrap,
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
        self._trees: list[TreeT] = []

    def __repr__(self) -> str:
        """Return the class name with the non-default hyperparameters.

        Returns:
            str: E.g. `"RandomForestClassifier(n_estimators=10)"`.
        """
        non_defaults = self.params.model_dump(exclude_defaults=True)
        changed = ", ".join(f"{name}={value!r}" for name, value in non_defaults.items())
        return f"{type(self).__name__}({changed})"

    @property
    def estimators_(self) -> list[TreeT]:
        """The fitted trees.

        Raises:
            NotFittedError: If the forest is not fitted.
        """
        if not self._trees:
            raise NotFittedError(type(self).__name__)
        return list(self._trees)

    @property
    def is_fitted(self) -> bool:
        """Whether `fit` (or `from_json`) has produced the trees."""
        return bool(self._trees)

    def fit(self, X: SampleMatrix, y: TargetVector) -> Self:
        """Fit `n_estimators` trees, each on its own resample and seed.

        A single generator seeded with `random_state` draws every bootstrap
        sample and every tree seed, so equal seeds give equal forests.

        Args:
            X (SampleMatrix): Training samples.
            y (TargetVector): One target per sample.

        Returns:
            Self: The fitted forest.

        Raises:
            SampleCountMismatchError: If X and y differ in length.
            EmptyDatasetError: If X is empty.
            InconsistentRowLengthError: If the rows of X differ in length.
            FeatureTypesMismatchError: If `feature_types` does not match the column count.
        """
        rows = as_rows(X)
        targets = as_targets(y)
        feature_types = validate_training_data(rows, targets, self.params.feature_types)
        logger.log(
            TRAINING_LEVEL,
            "Fitting {estimator}: estimators={estimators}, samples={samples}, features={features}",
            estimator=type(self).__name__,
            estimators=self.params.n_estimators,
            samples=len(rows),
            features=len(feature_types),
        )

        criterion = resolve_criterion(self.params.criterion, self._task)
        self._prepare_targets(targets)
        rng = np.random.default_rng(self.params.random_state)
        n_samples = len(rows)

        trees: list[TreeT] = []
        for _ in range(self.params.n_estimators):
            sample_rows: Sequence[Sequence[FeatureValue]] = rows
            sample_targets: Sequence[Any] = targets
            if self.params.bootstrap:
                drawn = rng.integers(0, n_samples, size=n_samples)
                sample_rows = [rows[i] for i in drawn]
                sample_targets = [targets[i] for i in drawn]
            seed = int(rng.integers(0, _SEED_UPPER_BOUND))

            tree = self._tree_class.from_params(self.params.tree_params(random_state=seed))
            tree.params.criterion = criterion
            tree.fit_validated(sample_rows, sample_targets, feature_types)
            trees.append(tree)  # type: ignore[arg-type]

        self._trees = trees
        logger.debug(
            "Forest built: trees={trees}, mean_leaves={mean_leaves:.1f}",
            trees=len(trees),
            mean_leaves=float(np.mean([tree.get_n_leaves() for tree in trees])),
        )
        return self

    def _prepare_targets(self, targets: Sequence[Any]) -> None:
        return None

    def get_feature_importances(self) -> np.ndarray:
        """Return the mean of the trees' normalized feature importances.

        Returns:
            np.ndarray: One value per feature.

        Raises:
            NotFittedError: If the forest is not fitted.
        """
        return np.mean([tree.get_feature_importances() for tree in self.estimators_], axis=0)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_payload(self) -> SerializedForest:
        """Convert the fitted forest to its wire model.

        Returns:
            SerializedForest: The persisted representation.

        Raises:
            NotFittedError: If the forest is not fitted.
        """
        trees = self.estimators_
        classes = self._persisted_classes()
        return SerializedForest(
            type=self._model_type,
            n_estimators=self.params.n_estimators,
            bootstrap=self.params.bootstrap,
            random_state=self.params.random_state,
            unique_classes=None if classes is None else list(classes),  # type: ignore[arg-type]
            trees=[tree.to_payload() for tree in trees],
        )

    def to_json(self) -> str:
        """Serialize the fitted forest to JSON with camelCase keys.

        Returns:
            str: The JSON document.

        Raises:
            NotFittedError: If the forest is not fitted.
        """
        return self.to_payload().model_dump_json(by_alias=True)

    @classmethod
    def from_payload(cls, payload: SerializedForest) -> Self:
        """Rebuild a fitted forest from its wire model.

        Hyperparameters shared by every tree are read from the first tree.

        Args:
            payload (SerializedForest): A validated forest payload.

        Returns:
            Self: The restored forest.

        Raises:
            ModelTypeMismatchError: If a tree payload has the wrong kind.
            MalformedTreeError: If the payload is internally inconsistent.
        """
        if len(payload.trees) != payload.n_estimators:
            raise MalformedTreeError(f"nEstimators is {payload.n_estimators} but {len(payload.trees)} trees are stored")
        expected_tree_type = cls._tree_class._model_type
        for tree_payload in payload.trees:
            if tree_payload.type != expected_tree_type:
                raise ModelTypeMismatchError(expected=expected_tree_type, actual=tree_payload.type)

        first = payload.trees[0]
        try:
            forest = cls(
                n_estimators=payload.n_estimators,
                bootstrap=payload.bootstrap,
                criterion=first.criterion,
                max_depth=first.max_depth,
                min_samples_split=first.min_samples_split,
                min_samples_leaf=first.min_samples_leaf,
                min_impurity_decrease=first.min_impurity_decrease,
                feature_types=first.feature_types,
                ccp_alpha=first.ccp_alpha,
                max_features=first.max_features,
                random_state=payload.random_state,
            )
        except ValidationError as exc:
            raise MalformedTreeError(f"Persisted hyperparameters are invalid: {exc}") from exc

        forest._restore_classes(payload.unique_classes)
        forest._trees = [cls._tree_class.from_payload(tree) for tree in payload.trees]  # type: ignore[misc]
        return forest

    @classmethod
    def from_json(cls, payload: str | bytes | Mapping[str, Any]) -> Self:
        """Load a forest persisted with `to_json`.

        Args:
            payload (str | bytes | Mapping[str, Any]): JSON text or a decoded JSON object.

        Returns:
            Self: The restored, fitted forest.

        Raises:
            ModelTypeMismatchError: If the payload belongs to another model kind.
            MalformedTreeError: If the payload does not describe a valid forest.
        """
        return cls.from_payload(load_forest_payload(payload, expected_type=cls._model_type))

    def _persisted_classes(self) -> list[Label] | None:
        return None

    def _restore_classes(self, unique_classes: Sequence[Label] | None) -> None:
        return None


class RandomForestClassifier(BaseRandomForest[DecisionTreeClassifier]):
    """Random forest classifier: majority vote of bagged decision trees.

    Examples:
        >>> X = [[1.0], [2.0], [3.0], [4.0]]
        >>> forest = RandomForestClassifier(n_estimators=5, bootstrap=False, random_state=0)
        >>> forest = forest.fit(X, ["A", "A", "B", "B"])
        >>> forest.predict([[1.0], [4.0]])
        ['A', 'B']
    """

    _task: ClassVar[TaskType] = "classification"
    _model_type: ClassVar[ForestModelType] = "random_forest_classifier"
    _tree_class: ClassVar[type[BaseDecisionTree]] = DecisionTreeClassifier

    def __init__(self, **kwargs: Any) -> None:
        """Initialize the forest; see `BaseRandomForest` for the hyperparameters."""
        super().__init__(**kwargs)
        self._classes: list[Label] = []

    @property
    def classes_(self) -> list[Label]:
        """Sorted unique labels of the full training set; the column order of `predict_proba`.

        Raises:
            NotFittedError: If the forest is not fitted.
        """
        _ = self.estimators_
        return list(self._classes)

    def _prepare_targets(self, targets: Sequence[Any]) -> None:
        self._classes = sort_labels(targets)

    def predict(self, X: SampleMatrix) -> list[Label]:
        """Predict by majority vote of the trees.

        For each sample the label whose vote count first reaches the highest
        count wins.

        Args:
            X (SampleMatrix): Samples to classify.

        Returns:
            list[Label]: One label per sample.

        Raises:
            NotFittedError: If the forest is not fitted.
        """
        trees = self.estimators_
        rows = as_rows(X)
        tree_votes = [tree.predict(rows) for tree in trees]

        predictions: list[Label] = []
        for sample_index in range(len(rows)):
            counts: Counter[Label] = Counter()
            winner: Label = None
            winner_count = 0
            for votes in tree_votes:
                label = votes[sample_index]
                counts[label] += 1
                if counts[label] > winner_count:
                    winner, winner_count = label, counts[label]
            predictions.append(winner)
        return predictions

    def predict_proba(self, X: SampleMatrix) -> np.ndarray:
        """Average the trees' class probabilities.

        Classes a tree never saw in its resample contribute zero for that tree.

        Args:
            X (SampleMatrix): Samples to classify.

        Returns:
            np.ndarray: Array of shape `(n_samples, n_classes)`; columns follow `classes_`.

        Raises:
            NotFittedError: If the forest is not fitted.
        """
        trees = self.estimators_
        rows = as_rows(X)
        column_of = {label: column for column, label in enumerate(self._classes)}
        totals = np.zeros((len(rows), len(self._classes)), dtype=np.float64)
        for tree in trees:
            columns = [column_of[label] for label in tree.classes_]
            totals[:, columns] += tree.predict_proba(rows)
        return totals / len(trees)

    def _persisted_classes(self) -> list[Label] | None:
        return list(self._classes)

    def _restore_classes(self, unique_classes: Sequence[Label] | None) -> None:
        if unique_classes is None:
            raise MalformedTreeError("Persisted forest classifier is missing uniqueClasses")
        self._classes = list(unique_classes)


class RandomForestRegressor(BaseRandomForest[DecisionTreeRegressor]):
    """Random forest regressor: mean prediction of bagged decision trees.

    Examples:
        >>> X = [[1.0], [2.0], [3.0], [4.0]]
        >>> forest = RandomForestRegressor(n_estimators=3, bootstrap=False).fit(X, [1.0, 1.0, 5.0, 5.0])
        >>> forest.predict([[1.0]]).tolist()
        [1.0]
    """

    _task: ClassVar[TaskType] = "regression"
    _model_type: ClassVar[ForestModelType] = "random_forest_regressor"
    _tree_class: ClassVar[type[BaseDecisionTree]] = DecisionTreeRegressor

    def predict(self, X: SampleMatrix) -> np.ndarray:
        """Predict the mean of the trees' predictions.

        Args:
            X (SampleMatrix): Samples to score.

        Returns:
            np.ndarray: One float per sample.

        Raises:
            NotFittedError: If the forest is not fitted.
        """
        trees = self.estimators_
        rows = as_rows(X)
        if not rows:
            return np.zeros(0, dtype=np.float64)
        return np.mean([tree.predict(rows) for tree in trees], axis=0)
