"""Input normalization and validation at the estimator boundary."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import numpy as np
import polars as pl

from treekit.exceptions import (
    EmptyDatasetError,
    FeatureTypesMismatchError,
    InconsistentRowLengthError,
    SampleCountMismatchError,
)
from treekit.params import FeatureType
from treekit.tree.node import FeatureValue, Label

type SampleMatrix = Sequence[Sequence[Any]] | np.ndarray | pl.DataFrame

type TargetVector = Sequence[Any] | np.ndarray | pl.Series


def to_python(value: Any) -> Any:
    """Convert numpy scalars to the equivalent Python scalar.

    Args:
        value (Any): A feature value or label.

    Returns:
        Any: `value.item()` for numpy scalars, otherwise `value` unchanged.

    Examples:
        >>> type(to_python(np.int64(3)))
        <class 'int'>
        >>> to_python("a")
        'a'
    """
    if isinstance(value, np.generic):
        return value.item()
    return value


def as_rows(X: SampleMatrix) -> list[list[FeatureValue]]:
    """Normalize a sample matrix into a list of rows of Python scalars.

    Args:
        X (SampleMatrix): Rows as nested sequences, a 2-D numpy array or a
            polars DataFrame.

    Returns:
        list[list[FeatureValue]]: One list per sample.
    """
    if isinstance(X, pl.DataFrame):
        return [list(row) for row in X.rows()]
    if isinstance(X, np.ndarray):
        return [[to_python(v) for v in row] for row in X.tolist()]
    return [[to_python(v) for v in row] for row in X]


def as_targets(y: TargetVector) -> list[Any]:
    """Normalize a target vector into a list of Python scalars.

    Args:
        y (TargetVector): Targets as a sequence, a 1-D numpy array or a polars Series.

    Returns:
        list[Any]: One target per sample.
    """
    if isinstance(y, pl.Series):
        return y.to_list()
    if isinstance(y, np.ndarray):
        return [to_python(v) for v in y.tolist()]
    return [to_python(v) for v in y]


def validate_training_data(
    rows: Sequence[Sequence[FeatureValue]],
    targets: Sequence[Any],
    feature_types: Sequence[FeatureType] | None,
) -> list[FeatureType]:
    """Check the shape of a training set and resolve its feature types.

    Args:
        rows (Sequence[Sequence[FeatureValue]]): Training samples.
        targets (Sequence[Any]): Training targets.
        feature_types (Sequence[FeatureType] | None): Declared column types;
            `None` treats every column as numerical.

    Returns:
        list[FeatureType]: One type per column.

    Raises:
        SampleCountMismatchError: If `rows` and `targets` differ in length.
        EmptyDatasetError: If there are no samples.
        InconsistentRowLengthError: If a row differs in length from the first row.
        FeatureTypesMismatchError: If the declaration does not match the column count.
    """
    if len(rows) != len(targets):
        raise SampleCountMismatchError(n_samples=len(rows), n_targets=len(targets))
    if not rows:
        raise EmptyDatasetError()

    n_features = len(rows[0])
    for row_index, row in enumerate(rows):
        if len(row) != n_features:
            raise InconsistentRowLengthError(row_index=row_index, expected=n_features, actual=len(row))

    if feature_types is None:
        return ["numerical"] * n_features
    if len(feature_types) != n_features:
        raise FeatureTypesMismatchError(n_feature_types=len(feature_types), n_features=n_features)
    return list(feature_types)


def sort_labels(labels: Iterable[Label]) -> list[Label]:
    """Return the unique labels in sorted order.

    Labels that cannot be compared with each other (e.g. a mix of strings and
    numbers) are ordered by type name, then by their string form.

    Args:
        labels (Iterable[Label]): Labels, possibly repeated.

    Returns:
        list[Label]: Unique labels, sorted.

    Examples:
        >>> sort_labels(["b", "a", "b"])
        ['a', 'b']
        >>> sort_labels([2, "x", 1])
        [1, 2, 'x']
    """
    unique = list(dict.fromkeys(labels))
    try:
        return sorted(unique)  # type: ignore[type-var]
    except TypeError:
        return sorted(unique, key=lambda label: (type(label).__name__, str(label)))
