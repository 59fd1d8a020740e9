"""Pydantic hyperparameter models shared by single trees and forests."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type Criterion = Literal["gini", "entropy", "mse", "mae"]

type FeatureType = Literal["numerical", "categorical"]

type MaxFeatures = int | float | Literal["sqrt", "log2"] | None

type TaskType = Literal["classification", "regression"]

# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


class TreeParams(BaseModel):
    """Hyperparameters of a single decision tree.

    Attributes:
        criterion (Criterion | None): Impurity criterion; `None` selects the
            task default (`"gini"` for classification, `"mse"` for regression).
        max_depth (int | None): Maximum depth of the tree; `None` is unlimited.
        min_samples_split (int): Minimum samples required to split a node.
        min_samples_leaf (int): Minimum samples required on each side of a split.
        min_impurity_decrease (float): A split is accepted only when its gain is
            strictly greater than this value.
        feature_types (list[FeatureType] | None): Per-column type declaration;
            `None` treats every column as numerical.
        ccp_alpha (float): Cost-complexity pruning parameter; 0 disables pruning.
        max_features (MaxFeatures): Features considered per split: an int count,
            a float fraction in (0, 1], `"sqrt"`, `"log2"`, or `None` for all.
        random_state (int | None): Seed for feature subsampling.

    Examples:
        >>> TreeParams(max_depth=3).min_samples_leaf
        1
        >>> TreeParams(max_features="sqrt").max_features
        'sqrt'
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    criterion: Criterion | None = Field(default=None, description="Impurity criterion.")
    max_depth: int | None = Field(default=None, ge=0, description="Maximum tree depth, None for unlimited.")
    min_samples_split: int = Field(default=2, ge=2, description="Minimum samples required to split a node.")
    min_samples_leaf: int = Field(default=1, ge=1, description="Minimum samples on each side of a split.")
    min_impurity_decrease: float = Field(default=0.0, ge=0.0, description="Minimum gain to accept a split.")
    feature_types: list[FeatureType] | None = Field(default=None, description="Per-column feature types.")
    ccp_alpha: float = Field(default=0.0, ge=0.0, description="Cost-complexity pruning parameter.")
    max_features: MaxFeatures = Field(default=None, description="Features considered per split.")
    random_state: int | None = Field(default=None, description="Seed for feature subsampling.")

    @field_validator("max_features", mode="before")
    @classmethod
    def _validate_max_features(cls, value: MaxFeatures) -> MaxFeatures:
        """Validate the numeric forms of `max_features`.

        Args:
            value (MaxFeatures): The candidate value.

        Returns:
            MaxFeatures: The validated value, unchanged.

        Raises:
            ValueError: If an int is below 1 or a float falls outside (0, 1].
        """
        if isinstance(value, bool):
            raise ValueError("max_features must not be a bool")
        if isinstance(value, int) and value < 1:
            raise ValueError(f"max_features as an int must be >= 1, got {value}")
        if isinstance(value, float) and not 0.0 < value <= 1.0:
            raise ValueError(f"max_features as a float must be in (0, 1], got {value}")
        return value


class ForestParams(TreeParams):
    """Hyperparameters of a random forest.

    Attributes:
        n_estimators (int): Number of trees in the forest.
        bootstrap (bool): Whether each tree is fit on a bootstrap resample.
    """

    n_estimators: int = Field(default=100, ge=1, description="Number of trees in the forest.")
    bootstrap: bool = Field(default=True, description="Fit each tree on a bootstrap resample.")

    def tree_params(self, *, random_state: int | None) -> TreeParams:
        """Return the per-tree hyperparameters with a tree-specific seed.

        Args:
            random_state (int | None): Seed for the tree's feature subsampling.

        Returns:
            TreeParams: Tree hyperparameters without the forest-only fields.
        """
        fields = self.model_dump(exclude={"n_estimators", "bootstrap", "random_state"})
        return TreeParams(**fields, random_state=random_state)
