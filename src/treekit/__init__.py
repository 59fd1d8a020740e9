"""treekit: Decision trees and random forests over mixed numeric and categorical data."""

from loguru import logger

from treekit.ensemble import RandomForestClassifier, RandomForestRegressor
from treekit.exceptions import (
    ConfigurationError,
    MalformedTreeError,
    ModelTypeMismatchError,
    NotFittedError,
)
from treekit.logging import PACKAGE_NAME, LoggingHandle, enable_logging
from treekit.params import ForestParams, TreeParams
from treekit.tree.estimators import DecisionTreeClassifier, DecisionTreeRegressor
from treekit.tree.rules import extract_rules

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the treekit module by default

__all__ = [
    "ConfigurationError",
    "DecisionTreeClassifier",
    "DecisionTreeRegressor",
    "ForestParams",
    "LoggingHandle",
    "MalformedTreeError",
    "ModelTypeMismatchError",
    "NotFittedError",
    "RandomForestClassifier",
    "RandomForestRegressor",
    "TreeParams",
    "enable_logging",
    "extract_rules",
]
