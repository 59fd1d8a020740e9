"""Loading training data from polars DataFrames and CSV files."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any, NamedTuple

import polars as pl
from loguru import logger
from sklearn.model_selection import train_test_split as sk_train_test_split

from treekit.exceptions import ColumnsNotFoundError, UnsupportedColumnTypeError
from treekit.params import FeatureType
from treekit.tree.node import FeatureValue
from treekit.tree.validation import SampleMatrix, TargetVector, as_rows, as_targets

__all__ = ["Dataset", "from_dataframe", "infer_feature_types", "load_csv", "train_test_split"]


class Dataset(NamedTuple):
    """A training set ready for `fit`.

    Attributes:
        X (list[list[FeatureValue]]): One row per sample; nulls become `None`.
        y (list[Any]): One target per sample.
        feature_names (list[str]): Column name of every feature.
        feature_types (list[FeatureType]): Type of every feature.
    """

    X: list[list[FeatureValue]]
    y: list[Any]
    feature_names: list[str]
    feature_types: list[FeatureType]


# ---------------------------------------------------------------------------
# Private helpers -- Column type classification
# ---------------------------------------------------------------------------

_DTYPE_TO_FEATURE_TYPE: dict[type[pl.DataType] | pl.DataType, FeatureType] = {
    pl.Int8: "numerical",
    pl.Int16: "numerical",
    pl.Int32: "numerical",
    pl.Int64: "numerical",
    pl.UInt8: "numerical",
    pl.UInt16: "numerical",
    pl.UInt32: "numerical",
    pl.UInt64: "numerical",
    pl.Float32: "numerical",
    pl.Float64: "numerical",
    pl.Boolean: "categorical",
    pl.String: "categorical",
    pl.Categorical: "categorical",
    pl.Enum: "categorical",
}


def _feature_type_of(dtype: pl.DataType) -> FeatureType | None:
    """Map a polars dtype to a feature type.

    Parameterized dtypes such as `Enum([...])` do not hash like their bare
    class, so an `isinstance` check backs up the lookup.

    Args:
        dtype (pl.DataType): The column dtype.

    Returns:
        FeatureType | None: The feature type, or `None` if unsupported.
    """
    result = _DTYPE_TO_FEATURE_TYPE.get(dtype)
    if result is not None:
        return result
    if isinstance(dtype, (pl.Enum, pl.Categorical)):
        return "categorical"
    return None


# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def infer_feature_types(df: pl.DataFrame) -> list[FeatureType]:
    """Infer the feature type of every column of a DataFrame.

    Numeric dtypes are numerical; strings, categoricals, enums and booleans
    are categorical.

    Args:
        df (pl.DataFrame): Feature columns only.

    Returns:
        list[FeatureType]: One type per column, in column order.

    Raises:
        UnsupportedColumnTypeError: If a column has any other dtype (dates,
            durations, nested types, ...).

    Examples:
        >>> infer_feature_types(pl.DataFrame({"age": [30, 40], "city": ["a", "b"]}))
        ['numerical', 'categorical']
    """
    feature_types: list[FeatureType] = []
    for name, dtype in df.schema.items():
        feature_type = _feature_type_of(dtype)
        if feature_type is None:
            raise UnsupportedColumnTypeError(column=name, dtype=str(dtype))
        feature_types.append(feature_type)
    return feature_types


def from_dataframe(df: pl.DataFrame, target: str, features: Sequence[str] | None = None) -> Dataset:
    """Split a DataFrame into feature rows and a target vector.

    Args:
        df (pl.DataFrame): Source data.
        target (str): Name of the target column.
        features (Sequence[str] | None): Feature columns, in order; defaults to
            every column except `target`.

    Returns:
        Dataset: Rows, targets, feature names and inferred feature types.

    Raises:
        ColumnsNotFoundError: If the target or a feature column is missing.
        UnsupportedColumnTypeError: If a feature column has an unsupported dtype.

    Examples:
        >>> df = pl.DataFrame({"x": [1.0, 2.0], "color": ["red", None], "label": ["A", "B"]})
        >>> dataset = from_dataframe(df, target="label")
        >>> dataset.X
        [[1.0, 'red'], [2.0, None]]
        >>> dataset.feature_types
        ['numerical', 'categorical']
    """
    feature_names = [name for name in df.columns if name != target] if features is None else list(features)
    missing = [name for name in [target, *feature_names] if name not in df.columns]
    if missing:
        raise ColumnsNotFoundError(missing_columns=missing, available_columns=df.columns)

    feature_frame = df.select(feature_names)
    dataset = Dataset(
        X=as_rows(feature_frame),
        y=as_targets(df.get_column(target)),
        feature_names=feature_names,
        feature_types=infer_feature_types(feature_frame),
    )
    logger.debug(
        "Dataset prepared: rows={rows}, features={features}, target={target}",
        rows=len(dataset.y),
        features=len(feature_names),
        target=target,
    )
    return dataset


def load_csv(
    path: str | Path,
    target: str,
    features: Sequence[str] | None = None,
    **read_options: Any,
) -> Dataset:
    """Read a CSV file with polars and build a `Dataset` from it.

    Args:
        path (str | Path): Path of the CSV file.
        target (str): Name of the target column.
        features (Sequence[str] | None): Feature columns; defaults to all others.
        **read_options (Any): Extra keyword arguments for `polars.read_csv`.

    Returns:
        Dataset: The prepared training set.

    Raises:
        ColumnsNotFoundError: If the target or a feature column is missing.
        UnsupportedColumnTypeError: If a feature column has an unsupported dtype.
    """
    return from_dataframe(pl.read_csv(path, **read_options), target=target, features=features)


def train_test_split(
    X: SampleMatrix,
    y: TargetVector,
    test_size: float = 0.2,
    random_state: int | None = None,
) -> tuple[list[list[FeatureValue]], list[list[FeatureValue]], list[Any], list[Any]]:
    """Shuffle and split samples into train and test subsets.

    Args:
        X (SampleMatrix): Samples.
        y (TargetVector): Targets.
        test_size (float): Fraction of samples placed in the test subset.
        random_state (int | None): Seed of the shuffle.

    Returns:
        tuple[list[list[FeatureValue]], list[list[FeatureValue]], list[Any], list[Any]]:
            `(X_train, X_test, y_train, y_test)`.

    Raises:
        ValueError: If X and y differ in length or a subset would be empty.
    """
    rows = as_rows(X)
    targets = as_targets(y)
    if len(rows) != len(targets):
        raise ValueError(f"X and y must have the same length, got {len(rows)} and {len(targets)}")
    X_train, X_test, y_train, y_test = sk_train_test_split(
        rows, targets, test_size=test_size, random_state=random_state, shuffle=True
    )
    return list(X_train), list(X_test), list(y_train), list(y_test)
