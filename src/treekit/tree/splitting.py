"""Best-split search over numeric thresholds and categorical subsets."""

from __future__ import annotations

import math
from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from treekit.exceptions import NonNumericFeatureError
from treekit.params import FeatureType, MaxFeatures
from treekit.tree.node import Category, FeatureValue
from treekit.tree.outcomes import OutcomeStrategy

# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Split:
    """The winning split of a node.

    Attributes:
        feature_index (int): Column the split tests.
        gain (float): Impurity decrease over the non-missing samples.
        left_indices (np.ndarray): Sample indices routed left, missing values included.
        right_indices (np.ndarray): Sample indices routed right, missing values included.
        threshold (float | None): Numeric split threshold.
        left_categories (frozenset[Category] | None): Categories routed left.
    """

    feature_index: int
    gain: float
    left_indices: np.ndarray
    right_indices: np.ndarray
    threshold: float | None = None
    left_categories: frozenset[Category] | None = None


class _Candidate(NamedTuple):
    gain: float
    left_mask: np.ndarray
    threshold: float | None = None
    left_categories: frozenset[Category] | None = None


# ---------------------------------------------------------------------------
# Public interface -- Data preparation
# ---------------------------------------------------------------------------


def is_missing(value: object) -> bool:
    """Return True for the missing-value markers `None` and float NaN.

    Args:
        value (object): A feature value.

    Returns:
        bool: Whether the value counts as missing.

    Examples:
        >>> is_missing(None), is_missing(float("nan")), is_missing(0.0)
        (True, True, False)
    """
    return value is None or (isinstance(value, float) and math.isnan(value))


def to_number(value: object) -> float:
    """Read a feature value as a float, NaN when it is missing or not numeric.

    Args:
        value (object): A feature value from a numerical column.

    Returns:
        float: The numeric value, or NaN.

    Examples:
        >>> to_number("2.5"), to_number(3)
        (2.5, 3.0)
        >>> to_number("tall")
        nan
    """
    if is_missing(value):
        return math.nan
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return math.nan


def encode_columns(
    rows: Sequence[Sequence[FeatureValue]],
    feature_types: Sequence[FeatureType],
) -> list[np.ndarray]:
    """Convert row-major samples into one array per feature column.

    Numerical columns become float arrays with NaN for missing values.
    Categorical columns become object arrays with None for missing values.

    Args:
        rows (Sequence[Sequence[FeatureValue]]): The sample matrix.
        feature_types (Sequence[FeatureType]): Type of each column.

    Returns:
        list[np.ndarray]: One array per column, each of length `len(rows)`.

    Raises:
        NonNumericFeatureError: If a numerical column holds a value `float()` cannot read.
    """
    columns: list[np.ndarray] = []
    for feature_index, feature_type in enumerate(feature_types):
        raw = [row[feature_index] for row in rows]
        if feature_type == "numerical":
            column = np.array([_encode_number(v, feature_index) for v in raw], dtype=np.float64)
        else:
            column = np.empty(len(raw), dtype=object)
            column[:] = [None if is_missing(v) else v for v in raw]
        columns.append(column)
    return columns


# ---------------------------------------------------------------------------
# Public interface -- Feature subsampling
# ---------------------------------------------------------------------------


def resolve_max_features(max_features: MaxFeatures, n_features: int) -> int:
    """Resolve a `max_features` setting to a feature count.

    Counts are rounded half up and clamped to `[1, n_features]`.

    Args:
        max_features (MaxFeatures): `"sqrt"`, `"log2"`, an int count, a float
            fraction in (0, 1], or `None` for all features.
        n_features (int): Total number of features.

    Returns:
        int: Number of features to consider at each split.

    Examples:
        >>> resolve_max_features("sqrt", 10)
        3
        >>> resolve_max_features(0.5, 5)
        3
        >>> resolve_max_features(None, 4)
        4
    """
    if max_features is None:
        return n_features
    if max_features == "sqrt":
        count = _round_half_up(math.sqrt(n_features))
    elif max_features == "log2":
        count = _round_half_up(math.log2(n_features)) if n_features > 0 else 0
    elif isinstance(max_features, float):
        count = _round_half_up(max_features * n_features)
    else:
        count = int(max_features)
    return max(1, min(count, n_features))


def select_features(
    n_features: int,
    max_features: MaxFeatures,
    rng: np.random.Generator,
) -> list[int]:
    """Choose the features to evaluate at one node.

    When every feature is kept they are returned in column order; otherwise a
    uniform random permutation is truncated to the resolved count.

    Args:
        n_features (int): Total number of features.
        max_features (MaxFeatures): Subsampling setting.
        rng (np.random.Generator): Source of randomness.

    Returns:
        list[int]: Feature indices in evaluation order.
    """
    count = resolve_max_features(max_features, n_features)
    if count >= n_features:
        return list(range(n_features))
    return [int(i) for i in rng.permutation(n_features)[:count]]


# ---------------------------------------------------------------------------
# Public interface -- Split search
# ---------------------------------------------------------------------------


def find_best_split(
    columns: Sequence[np.ndarray],
    targets: np.ndarray,
    indices: np.ndarray,
    *,
    feature_indices: Sequence[int],
    feature_types: Sequence[FeatureType],
    outcome: OutcomeStrategy,
    min_samples_split: int,
    min_samples_leaf: int,
) -> Split | None:
    """Find the split of a node's samples with the largest impurity decrease.

    Each feature is scored on its non-missing samples only, against the
    impurity of those samples. Numeric features try the midpoints between
    consecutive distinct values. Categorical features with more than two
    categories rank the categories by `outcome.category_score` and try the
    prefixes of that ranking. Ties keep the first candidate found. Samples
    missing the winning feature join the side that received more non-missing
    samples, the left side on a tie.

    Args:
        columns (Sequence[np.ndarray]): Encoded feature columns (see `encode_columns`).
        targets (np.ndarray): Encoded targets for all samples.
        indices (np.ndarray): Sample indices reaching the node.
        feature_indices (Sequence[int]): Features to evaluate, in order.
        feature_types (Sequence[FeatureType]): Type of every column.
        outcome (OutcomeStrategy): Task-specific impurity and category ranking.
        min_samples_split (int): Minimum non-missing samples for a feature to be considered.
        min_samples_leaf (int): Minimum non-missing samples on each side of a split.

    Returns:
        Split | None: The best split, or `None` if no feature admits one.
    """
    best: Split | None = None
    best_gain = -math.inf

    for feature_index in feature_indices:
        values = columns[feature_index][indices]
        categorical = feature_types[feature_index] == "categorical"
        present = _present_mask(values, categorical=categorical)
        n_present = int(np.count_nonzero(present))
        if n_present == 0 or n_present < min_samples_split:
            continue

        present_indices = indices[present]
        present_values = values[present]
        present_targets = targets[present_indices]
        baseline = outcome.impurity(present_targets)

        if categorical:
            candidate = _best_categorical_candidate(
                present_values, present_targets, baseline, outcome=outcome, min_samples_leaf=min_samples_leaf
            )
        else:
            candidate = _best_numeric_candidate(
                present_values, present_targets, baseline, outcome=outcome, min_samples_leaf=min_samples_leaf
            )
        if candidate is None or candidate.gain <= best_gain:
            continue

        best_gain = candidate.gain
        left_indices, right_indices = _route_missing(
            present_indices[candidate.left_mask],
            present_indices[~candidate.left_mask],
            indices[~present],
        )
        best = Split(
            feature_index=feature_index,
            gain=candidate.gain,
            left_indices=left_indices,
            right_indices=right_indices,
            threshold=candidate.threshold,
            left_categories=candidate.left_categories,
        )

    return best


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _encode_number(value: object, feature_index: int) -> float:
    if is_missing(value):
        return math.nan
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise NonNumericFeatureError(feature_index=feature_index, value=value) from exc


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _present_mask(values: np.ndarray, *, categorical: bool) -> np.ndarray:
    if categorical:
        return np.fromiter((v is not None for v in values), dtype=bool, count=values.size)
    return ~np.isnan(values)


def _membership_mask(values: np.ndarray, members: frozenset[Hashable]) -> np.ndarray:
    return np.fromiter((v in members for v in values), dtype=bool, count=values.size)


def _weighted_gain(
    baseline: float,
    targets: np.ndarray,
    left_mask: np.ndarray,
    outcome: OutcomeStrategy,
) -> float:
    """Return `baseline` minus the sample-weighted impurity of both sides.

    Args:
        baseline (float): Impurity of all targets.
        targets (np.ndarray): Targets being split.
        left_mask (np.ndarray): True for targets routed left.
        outcome (OutcomeStrategy): Impurity function.

    Returns:
        float: The impurity decrease.
    """
    n_total = left_mask.size
    n_left = int(np.count_nonzero(left_mask))
    n_right = n_total - n_left
    weighted = (n_left / n_total) * outcome.impurity(targets[left_mask]) + (n_right / n_total) * outcome.impurity(
        targets[~left_mask]
    )
    return baseline - weighted


def _best_numeric_candidate(
    values: np.ndarray,
    targets: np.ndarray,
    baseline: float,
    *,
    outcome: OutcomeStrategy,
    min_samples_leaf: int,
) -> _Candidate | None:
    """Scan midpoint thresholds between consecutive distinct values.

    Args:
        values (np.ndarray): Non-missing float values of one feature.
        targets (np.ndarray): Targets aligned with `values`.
        baseline (float): Impurity of `targets`.
        outcome (OutcomeStrategy): Impurity function.
        min_samples_leaf (int): Minimum samples on each side.

    Returns:
        _Candidate | None: The best threshold, or `None` if none is admissible.
    """
    distinct = np.unique(values)
    best: _Candidate | None = None
    for low, high in zip(distinct[:-1], distinct[1:], strict=True):
        threshold = float((low + high) / 2)
        left_mask = values <= threshold
        n_left = int(np.count_nonzero(left_mask))
        if n_left < min_samples_leaf or values.size - n_left < min_samples_leaf:
            continue
        gain = _weighted_gain(baseline, targets, left_mask, outcome)
        if best is None or gain > best.gain:
            best = _Candidate(gain=gain, left_mask=left_mask, threshold=threshold)
    return best


def _candidate_category_sets(
    values: np.ndarray,
    targets: np.ndarray,
    outcome: OutcomeStrategy,
) -> list[frozenset[Category]]:
    """Build the left-category sets to evaluate for one feature.

    Two categories admit a single candidate (the first seen one). More than two
    are ranked by their category score and only the prefixes of that ranking are
    tried, which keeps the search linear in the number of categories.

    Args:
        values (np.ndarray): Non-missing categories of one feature.
        targets (np.ndarray): Targets aligned with `values`.
        outcome (OutcomeStrategy): Provides the per-category ranking score.

    Returns:
        list[frozenset[Category]]: Candidate left-category sets.
    """
    categories = list(dict.fromkeys(values.tolist()))
    if len(categories) <= 1:
        return []
    if len(categories) == 2:
        return [frozenset(categories[:1])]
    scores = [outcome.category_score(targets[_membership_mask(values, frozenset((c,)))]) for c in categories]
    ranked = [category for _, category in sorted(zip(scores, categories, strict=True), key=lambda pair: pair[0])]
    return [frozenset(ranked[: i + 1]) for i in range(len(ranked) - 1)]


def _best_categorical_candidate(
    values: np.ndarray,
    targets: np.ndarray,
    baseline: float,
    *,
    outcome: OutcomeStrategy,
    min_samples_leaf: int,
) -> _Candidate | None:
    """Evaluate the candidate category subsets of one feature.

    Args:
        values (np.ndarray): Non-missing categories of one feature.
        targets (np.ndarray): Targets aligned with `values`.
        baseline (float): Impurity of `targets`.
        outcome (OutcomeStrategy): Impurity function and category ranking.
        min_samples_leaf (int): Minimum samples on each side.

    Returns:
        _Candidate | None: The best subset, or `None` if none is admissible.
    """
    n_categories = len(set(values.tolist()))
    best: _Candidate | None = None
    for left_categories in _candidate_category_sets(values, targets, outcome):
        if not left_categories or len(left_categories) == n_categories:
            continue
        left_mask = _membership_mask(values, left_categories)
        n_left = int(np.count_nonzero(left_mask))
        n_right = values.size - n_left
        if n_left == 0 or n_right == 0 or n_left < min_samples_leaf or n_right < min_samples_leaf:
            continue
        gain = _weighted_gain(baseline, targets, left_mask, outcome)
        if best is None or gain > best.gain:
            best = _Candidate(gain=gain, left_mask=left_mask, left_categories=left_categories)
    return best


def _route_missing(
    left_indices: np.ndarray,
    right_indices: np.ndarray,
    missing_indices: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Send samples missing the split feature to the larger side, left on a tie.

    Args:
        left_indices (np.ndarray): Non-missing samples routed left.
        right_indices (np.ndarray): Non-missing samples routed right.
        missing_indices (np.ndarray): Samples missing the split feature.

    Returns:
        tuple[np.ndarray, np.ndarray]: Final `(left_indices, right_indices)`.
    """
    if missing_indices.size == 0:
        return left_indices, right_indices
    if right_indices.size > left_indices.size:
        return left_indices, np.concatenate((right_indices, missing_indices))
    return np.concatenate((left_indices, missing_indices)), right_indices
