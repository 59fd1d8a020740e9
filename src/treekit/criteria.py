"""Impurity criteria for scoring label and target sets.

Every criterion returns a non-negative float that is 0 for empty input and for
inputs holding a single distinct value. Values are ordered before reduction so
the result does not depend on the order of the input.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Hashable, Iterable

import numpy as np
from loguru import logger

from treekit.params import Criterion, TaskType

_CLASSIFICATION_CRITERIA: frozenset[str] = frozenset({"gini", "entropy"})
_REGRESSION_CRITERIA: frozenset[str] = frozenset({"mse", "mae"})
_DEFAULT_CRITERION: dict[TaskType, Criterion] = {"classification": "gini", "regression": "mse"}


# ---------------------------------------------------------------------------
# Public interface -- Criteria over raw values
# ---------------------------------------------------------------------------


def gini_impurity(labels: Iterable[Hashable]) -> float:
    """Compute the Gini impurity `1 - sum(p_c^2)` of a label sequence.

    Args:
        labels (Iterable[Hashable]): Class labels, compared by equality.

    Returns:
        float: The Gini impurity.

    Examples:
        >>> gini_impurity(["a", "a", "b", "b"])
        0.5
        >>> gini_impurity([])
        0.0
    """
    return gini_from_counts(_label_counts(labels))


def entropy(labels: Iterable[Hashable]) -> float:
    """Compute the Shannon entropy (base 2) of a label sequence.

    Args:
        labels (Iterable[Hashable]): Class labels, compared by equality.

    Returns:
        float: The entropy in bits.

    Examples:
        >>> entropy(["a", "b"])
        1.0
    """
    return entropy_from_counts(_label_counts(labels))


def mse_impurity(values: Iterable[float]) -> float:
    """Compute the mean squared deviation of values from their mean.

    Args:
        values (Iterable[float]): Numeric target values.

    Returns:
        float: The mean squared deviation.

    Examples:
        >>> mse_impurity([1.0, 3.0])
        1.0
    """
    return mse_from_values(np.asarray(list(values), dtype=np.float64))


def mae_impurity(values: Iterable[float]) -> float:
    """Compute the mean absolute deviation of values from their mean.

    Args:
        values (Iterable[float]): Numeric target values.

    Returns:
        float: The mean absolute deviation.

    Examples:
        >>> mae_impurity([1.0, 3.0])
        1.0
    """
    return mae_from_values(np.asarray(list(values), dtype=np.float64))


def resolve_criterion(criterion: Criterion | None, task: TaskType) -> Criterion:
    """Return the criterion an estimator of `task` will actually use.

    A classifier configured with a regression criterion falls back to `"gini"`
    and a regressor configured with a classification criterion falls back to
    `"mse"`. The substitution is logged as a warning.

    Args:
        criterion (Criterion | None): Requested criterion; `None` selects the default.
        task (TaskType): The estimator's task.

    Returns:
        Criterion: The effective criterion.

    Examples:
        >>> resolve_criterion("mae", "classification")
        'gini'
        >>> resolve_criterion(None, "regression")
        'mse'
    """
    default = _DEFAULT_CRITERION[task]
    if criterion is None:
        return default
    allowed = _CLASSIFICATION_CRITERIA if task == "classification" else _REGRESSION_CRITERIA
    if criterion not in allowed:
        logger.warning(
            "Criterion {criterion!r} is not valid for {task}, using {default!r}",
            criterion=criterion,
            task=task,
            default=default,
        )
        return default
    return criterion


# ---------------------------------------------------------------------------
# Public interface -- Criteria over precomputed arrays
# ---------------------------------------------------------------------------


def gini_from_counts(counts: np.ndarray) -> float:
    """Compute the Gini impurity from per-class counts.

    Args:
        counts (np.ndarray): 1-D array of non-negative class counts.

    Returns:
        float: The Gini impurity, 0.0 when the counts sum to zero.
    """
    total = counts.sum()
    if total == 0:
        return 0.0
    probabilities = np.sort(counts[counts > 0]) / total
    return max(0.0, float(1.0 - np.sum(probabilities * probabilities)))


def entropy_from_counts(counts: np.ndarray) -> float:
    """Compute the base-2 entropy from per-class counts.

    Args:
        counts (np.ndarray): 1-D array of non-negative class counts.

    Returns:
        float: The entropy in bits, 0.0 when the counts sum to zero.
    """
    total = counts.sum()
    if total == 0:
        return 0.0
    probabilities = np.sort(counts[counts > 0]) / total
    return max(0.0, float(-np.sum(probabilities * np.log2(probabilities))))


def mse_from_values(values: np.ndarray) -> float:
    """Compute the mean squared deviation of a float array.

    Args:
        values (np.ndarray): 1-D float array.

    Returns:
        float: The mean squared deviation, 0.0 for empty or constant input.
    """
    if values.size == 0 or values.min() == values.max():
        return 0.0
    ordered = np.sort(values)
    return float(np.mean((ordered - ordered.mean()) ** 2))


def mae_from_values(values: np.ndarray) -> float:
    """Compute the mean absolute deviation of a float array.

    Args:
        values (np.ndarray): 1-D float array.

    Returns:
        float: The mean absolute deviation, 0.0 for empty or constant input.
    """
    if values.size == 0 or values.min() == values.max():
        return 0.0
    ordered = np.sort(values)
    return float(np.mean(np.abs(ordered - ordered.mean())))


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _label_counts(labels: Iterable[Hashable]) -> np.ndarray:
    """Count label occurrences.

    Args:
        labels (Iterable[Hashable]): Class labels.

    Returns:
        np.ndarray: Float array of counts, one entry per distinct label.
    """
    return np.fromiter(Counter(labels).values(), dtype=np.float64)
