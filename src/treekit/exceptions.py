"""Custom exceptions for treekit.

This module defines the error taxonomy for fitting, predicting and persisting
tree models:

Configuration errors (subclass ConfigurationError, itself a ValueError):
- SampleCountMismatchError: Raised when X and y have different lengths.
- EmptyDatasetError: Raised when fitting on zero samples.
- FeatureTypesMismatchError: Raised when the feature-type declaration does not
  match the number of columns in X.
- InconsistentRowLengthError: Raised when a row of X has a different length
  than the first row.
- NonNumericFeatureError: Raised when a numerical column holds a value that
  cannot be read as a number.
- UnsupportedColumnTypeError: Raised when a DataFrame column cannot be used as
  a feature.
- ColumnsNotFoundError: Raised when requested columns do not exist in a
  DataFrame.

Usage errors:
- NotFittedError: Raised when a fitted-model operation is called before fit.

Model structure errors (subclass MalformedTreeError):
- MalformedTreeError: Raised when a node graph violates the tree invariants
  (out-of-bounds feature index, unreadable persisted node).
- ModelTypeMismatchError: Raised when a persisted model is loaded into the
  wrong estimator class.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Base exception for invalid training inputs.

    Configuration errors are raised synchronously at `fit` entry and are never
    retried. Catch this to handle any malformed (X, y) input.
    """


class SampleCountMismatchError(ConfigurationError):
    """Raised when the sample matrix and target vector have different lengths.

    Attributes:
        n_samples (int): Number of rows in X.
        n_targets (int): Number of values in y.

    Examples:
        >>> err = SampleCountMismatchError(n_samples=4, n_targets=3)
        >>> str(err)
        'X and y must have the same number of samples, got 4 rows and 3 targets'
    """

    n_samples: int
    n_targets: int

    def __init__(self, n_samples: int, n_targets: int) -> None:
        """Initialize SampleCountMismatchError.

        Args:
            n_samples (int): Number of rows in X.
            n_targets (int): Number of values in y.
        """
        super().__init__(
            f"X and y must have the same number of samples, got {n_samples} rows and {n_targets} targets"
        )
        self.n_samples = n_samples
        self.n_targets = n_targets


class EmptyDatasetError(ConfigurationError):
    """Raised when fitting on a dataset with no samples."""

    def __init__(self) -> None:
        """Initialize EmptyDatasetError."""
        super().__init__("Cannot fit on an empty dataset")


class FeatureTypesMismatchError(ConfigurationError):
    """Raised when the feature-type declaration does not match the column count.

    Attributes:
        n_feature_types (int): Number of declared feature types.
        n_features (int): Number of columns in X.

    Examples:
        >>> err = FeatureTypesMismatchError(n_feature_types=2, n_features=3)
        >>> err.n_features
        3
    """

    n_feature_types: int
    n_features: int

    def __init__(self, n_feature_types: int, n_features: int) -> None:
        """Initialize FeatureTypesMismatchError.

        Args:
            n_feature_types (int): Number of declared feature types.
            n_features (int): Number of columns in X.
        """
        super().__init__(
            f"Length of feature_types ({n_feature_types}) must match the number of features in X ({n_features})"
        )
        self.n_feature_types = n_feature_types
        self.n_features = n_features


class InconsistentRowLengthError(ConfigurationError):
    """Raised when a row of the sample matrix has an unexpected length.

    Attributes:
        row_index (int): Position of the offending row.
        expected (int): Column count taken from the first row.
        actual (int): Length of the offending row.
    """

    row_index: int
    expected: int
    actual: int

    def __init__(self, row_index: int, expected: int, actual: int) -> None:
        """Initialize InconsistentRowLengthError.

        Args:
            row_index (int): Position of the offending row.
            expected (int): Column count taken from the first row.
            actual (int): Length of the offending row.
        """
        super().__init__(f"Row {row_index} has {actual} features, expected {expected}")
        self.row_index = row_index
        self.expected = expected
        self.actual = actual


class NonNumericFeatureError(ConfigurationError):
    """Raised when a numerical feature column holds a value that is not a number.

    Attributes:
        feature_index (int): Position of the offending column.
        value (object): The value that could not be read as a number.

    Examples:
        >>> str(NonNumericFeatureError(feature_index=1, value="tall"))
        "Feature 1 is declared numerical but holds non-numeric value 'tall'"
    """

    feature_index: int
    value: object

    def __init__(self, feature_index: int, value: object) -> None:
        """Initialize NonNumericFeatureError.

        Args:
            feature_index (int): Position of the offending column.
            value (object): The value that could not be read as a number.
        """
        super().__init__(f"Feature {feature_index} is declared numerical but holds non-numeric value {value!r}")
        self.feature_index = feature_index
        self.value = value


class UnsupportedColumnTypeError(ConfigurationError):
    """Raised when a DataFrame column has a dtype that cannot be used as a feature.

    Attributes:
        column (str): The offending column name.
        dtype (str): String form of the column's dtype.
    """

    column: str
    dtype: str

    def __init__(self, column: str, dtype: str) -> None:
        """Initialize UnsupportedColumnTypeError.

        Args:
            column (str): The offending column name.
            dtype (str): String form of the column's dtype.
        """
        super().__init__(f"Column '{column}' has unsupported dtype {dtype}")
        self.column = column
        self.dtype = dtype


class ColumnsNotFoundError(ConfigurationError):
    """Raised when requested columns do not exist in a DataFrame.

    Attributes:
        missing_columns (list[str]): Column names that were not found.
        available_columns (list[str]): Column names present in the DataFrame.

    Examples:
        >>> err = ColumnsNotFoundError(
        ...     missing_columns=["x", "y"],
        ...     available_columns=["a", "b", "c"],
        ... )
        >>> err.missing_columns
        ['x', 'y']
    """

    missing_columns: list[str]
    available_columns: list[str]

    def __init__(
        self,
        missing_columns: list[str],
        available_columns: list[str],
    ) -> None:
        """Initialize ColumnsNotFoundError.

        Args:
            missing_columns (list[str]): Column names not found in the DataFrame.
            available_columns (list[str]): Column names present in the DataFrame.
        """
        super().__init__(f"Columns not found in DataFrame: {sorted(missing_columns)}")
        self.missing_columns = missing_columns
        self.available_columns = available_columns


class NotFittedError(RuntimeError):
    """Raised when predict, importance or serialization is called before fit.

    Attributes:
        estimator_name (str): Class name of the unfitted estimator.

    Examples:
        >>> str(NotFittedError("DecisionTreeClassifier"))
        'DecisionTreeClassifier is not fitted yet. Call fit() first.'
    """

    estimator_name: str

    def __init__(self, estimator_name: str) -> None:
        """Initialize NotFittedError.

        Args:
            estimator_name (str): Class name of the unfitted estimator.
        """
        super().__init__(f"{estimator_name} is not fitted yet. Call fit() first.")
        self.estimator_name = estimator_name


class MalformedTreeError(Exception):
    """Raised when a node graph violates the tree invariants.

    Trees produced by the builder never trigger this error; it surfaces only
    for hand-built, corrupted or partially deserialized trees.
    """


class ModelTypeMismatchError(MalformedTreeError):
    """Raised when a persisted model's type tag does not match the loading class.

    Attributes:
        expected (str): Type tag the loading class accepts.
        actual (str | None): Type tag found in the payload.

    Examples:
        >>> err = ModelTypeMismatchError(expected="classifier", actual="regressor")
        >>> err.actual
        'regressor'
    """

    expected: str
    actual: str | None

    def __init__(self, expected: str, actual: str | None) -> None:
        """Initialize ModelTypeMismatchError.

        Args:
            expected (str): Type tag the loading class accepts.
            actual (str | None): Type tag found in the payload.
        """
        super().__init__(f"Persisted model has type {actual!r}, expected {expected!r}")
        self.expected = expected
        self.actual = actual

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including the expected and actual type tags.
        """
        return f"{self.__class__.__name__}(expected={self.expected!r}, actual={self.actual!r})"
