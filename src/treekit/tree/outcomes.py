"""Outcome strategies: the task-specific half of tree construction.

Split search and the builder are shared by classification and regression.
They receive one of these strategies and never branch on the task themselves.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import numpy as np

from treekit.criteria import entropy_from_counts, gini_from_counts, mae_from_values, mse_from_values
from treekit.params import Criterion
from treekit.tree.node import Label, LeafValue


class OutcomeStrategy(Protocol):
    """Task-specific scoring used while growing a tree."""

    def impurity(self, targets: np.ndarray) -> float:
        """Score the heterogeneity of a target slice."""
        ...

    def leaf_value(self, targets: np.ndarray) -> LeafValue:
        """Compute the prediction payload for a target slice."""
        ...

    def category_score(self, targets: np.ndarray) -> float:
        """Rank a category by the targets of the samples holding it."""
        ...


class ClassificationOutcome:
    """Outcome strategy over integer class codes.

    Targets are indices into `classes`, so counting reduces to `np.bincount`.

    Attributes:
        classes (tuple[Label, ...]): Sorted unique labels seen during fit.
        criterion (Criterion): Either `"gini"` or `"entropy"`.

    Examples:
        >>> outcome = ClassificationOutcome(["A", "B"], "gini")
        >>> outcome.leaf_value(np.array([0, 0, 1, 1]))
        {'A': 0.5, 'B': 0.5}
    """

    def __init__(self, classes: Sequence[Label], criterion: Criterion) -> None:
        """Initialize the strategy.

        Args:
            classes (Sequence[Label]): Sorted unique labels seen during fit.
            criterion (Criterion): Either `"gini"` or `"entropy"`.
        """
        self.classes = tuple(classes)
        self.criterion = criterion
        self._from_counts = entropy_from_counts if criterion == "entropy" else gini_from_counts

    def _counts(self, targets: np.ndarray) -> np.ndarray:
        return np.bincount(targets, minlength=len(self.classes)).astype(np.float64)

    def impurity(self, targets: np.ndarray) -> float:
        return self._from_counts(self._counts(targets))

    def leaf_value(self, targets: np.ndarray) -> dict[Label, float]:
        counts = self._counts(targets)
        total = counts.sum()
        if total == 0:
            return dict.fromkeys(self.classes, 0.0)
        return {label: float(count / total) for label, count in zip(self.classes, counts, strict=True)}

    def category_score(self, targets: np.ndarray) -> float:
        # Empirical probability of the first class
        if targets.size == 0:
            return 0.0
        return float(np.count_nonzero(targets == 0) / targets.size)


class RegressionOutcome:
    """Outcome strategy over float targets.

    Attributes:
        criterion (Criterion): Either `"mse"` or `"mae"`.
    """

    def __init__(self, criterion: Criterion) -> None:
        """Initialize the strategy.

        Args:
            criterion (Criterion): Either `"mse"` or `"mae"`.
        """
        self.criterion = criterion
        self._from_values = mae_from_values if criterion == "mae" else mse_from_values

    def impurity(self, targets: np.ndarray) -> float:
        return self._from_values(targets)

    def leaf_value(self, targets: np.ndarray) -> float:
        if targets.size == 0:
            return 0.0
        return float(np.mean(targets))

    def category_score(self, targets: np.ndarray) -> float:
        # Mean target
        return self.leaf_value(targets)
