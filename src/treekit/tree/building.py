"""Top-down tree construction."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal, NamedTuple

import numpy as np
from loguru import logger

from treekit.params import FeatureType, TreeParams
from treekit.tree.node import Node
from treekit.tree.outcomes import OutcomeStrategy
from treekit.tree.splitting import Split, find_best_split, select_features


class FeatureImportances:
    """Accumulates impurity decrease credited to each feature.

    Each accepted split adds `gain * samples_at_node / samples_at_root` to its
    feature. Reading normalizes the totals to sum to 1.

    Examples:
        >>> importances = FeatureImportances(n_features=2, n_root_samples=10)
        >>> importances.credit(1, gain=0.5, n_node_samples=10)
        >>> importances.normalized().tolist()
        [0.0, 1.0]
    """

    def __init__(self, n_features: int, n_root_samples: int) -> None:
        """Initialize an all-zero accumulator.

        Args:
            n_features (int): Number of feature columns.
            n_root_samples (int): Number of samples at the root.
        """
        self.totals = np.zeros(n_features, dtype=np.float64)
        self.n_root_samples = n_root_samples

    def credit(self, feature_index: int, *, gain: float, n_node_samples: int) -> None:
        """Add a split's gain, weighted by the node's share of the root samples.

        Non-positive gains are ignored so the totals stay non-negative.

        Args:
            feature_index (int): Feature the split tests.
            gain (float): Impurity decrease of the split.
            n_node_samples (int): Samples at the split node.
        """
        if gain > 0:
            self.totals[feature_index] += gain * (n_node_samples / self.n_root_samples)

    def normalized(self) -> np.ndarray:
        """Return the totals scaled to sum to 1, or zeros if nothing was credited.

        Returns:
            np.ndarray: One importance per feature.
        """
        total = self.totals.sum()
        if total == 0:
            return np.zeros_like(self.totals)
        return self.totals / total


class TreeBuilder:
    """Grows a tree depth-first from encoded columns and targets.

    Attributes:
        outcome (OutcomeStrategy): Task-specific impurity and leaf value.
        feature_types (list[FeatureType]): Type of every column.
        params (TreeParams): Stopping rules and feature subsampling.
        rng (np.random.Generator): Randomness for feature subsampling.
        importances (FeatureImportances): Accumulator of the last build.
    """

    def __init__(
        self,
        *,
        outcome: OutcomeStrategy,
        feature_types: Sequence[FeatureType],
        params: TreeParams,
        rng: np.random.Generator,
    ) -> None:
        """Initialize the builder.

        Args:
            outcome (OutcomeStrategy): Task-specific impurity and leaf value.
            feature_types (Sequence[FeatureType]): Type of every column.
            params (TreeParams): Stopping rules and feature subsampling.
            rng (np.random.Generator): Randomness for feature subsampling.
        """
        self.outcome = outcome
        self.feature_types = list(feature_types)
        self.params = params
        self.rng = rng
        self.importances = FeatureImportances(len(self.feature_types), n_root_samples=1)
        self._columns: list[np.ndarray] = []
        self._targets: np.ndarray = np.empty(0)

    def build(self, columns: Sequence[np.ndarray], targets: np.ndarray) -> Node:
        """Build a tree over all samples.

        Nodes are grown in pre-order from an explicit stack.

        Args:
            columns (Sequence[np.ndarray]): Encoded feature columns.
            targets (np.ndarray): Encoded targets.

        Returns:
            Node: Root of the unpruned tree.
        """
        n_samples = len(targets)
        self._columns = list(columns)
        self._targets = targets
        self.importances = FeatureImportances(len(self.feature_types), n_samples)

        indices = np.arange(n_samples)
        if not self.feature_types:
            root = self._leaf(indices)
        else:
            root = self._grow(indices)

        logger.debug(
            "Tree built: samples={samples}, depth={depth}, leaves={leaves}",
            samples=n_samples,
            depth=root.depth,
            leaves=root.n_leaves,
        )
        return root

    def _leaf(self, indices: np.ndarray, *, impurity: float | None = None) -> Node:
        node_targets = self._targets[indices]
        return Node(
            value=self.outcome.leaf_value(node_targets),
            impurity=self.outcome.impurity(node_targets) if impurity is None else impurity,
            samples=int(indices.size),
            is_leaf=True,
        )

    def _grow(self, indices: np.ndarray) -> Node:
        root: Node | None = None
        pending = [_Frame(indices, depth=0, parent=None, side="left")]
        while pending:
            frame = pending.pop()
            node, split = self._build_node(frame.indices, frame.depth)
            if frame.parent is None:
                root = node
            elif frame.side == "left":
                frame.parent.left = node
            else:
                frame.parent.right = node

            if split is not None:
                # Right first so the left subtree is grown next
                pending.append(_Frame(split.right_indices, depth=frame.depth + 1, parent=node, side="right"))
                pending.append(_Frame(split.left_indices, depth=frame.depth + 1, parent=node, side="left"))
        return root  # type: ignore[return-value]

    def _build_node(self, indices: np.ndarray, depth: int) -> tuple[Node, Split | None]:
        """Build one node for the samples at `indices`.

        Args:
            indices (np.ndarray): Sample indices reaching the node.
            depth (int): Depth of the node; the root is 0.

        Returns:
            tuple[Node, Split | None]: A leaf and `None`, or an internal node
                (children still unset) and the split whose sides become them.
        """
        params = self.params
        n_samples = int(indices.size)
        impurity = self.outcome.impurity(self._targets[indices])

        if (
            (params.max_depth is not None and depth >= params.max_depth)
            or n_samples < params.min_samples_split
            or impurity == 0
        ):
            return self._leaf(indices, impurity=impurity), None

        split = find_best_split(
            self._columns,
            self._targets,
            indices,
            feature_indices=select_features(len(self.feature_types), params.max_features, self.rng),
            feature_types=self.feature_types,
            outcome=self.outcome,
            min_samples_split=params.min_samples_split,
            min_samples_leaf=params.min_samples_leaf,
        )
        if split is None:
            return self._leaf(indices, impurity=impurity), None

        # Credited before the acceptance checks below
        self.importances.credit(split.feature_index, gain=split.gain, n_node_samples=n_samples)

        if split.gain <= params.min_impurity_decrease or not self._respects_min_leaf(split):
            return self._leaf(indices, impurity=impurity), None

        logger.trace(
            "Split accepted: feature={feature}, gain={gain:.6f}, depth={depth}",
            feature=split.feature_index,
            gain=split.gain,
            depth=depth,
        )
        node = self._leaf(indices, impurity=impurity)
        node.is_leaf = False
        node.feature_index = split.feature_index
        node.threshold = split.threshold
        node.left_categories = split.left_categories
        return node, split

    def _respects_min_leaf(self, split: Split) -> bool:
        min_leaf = self.params.min_samples_leaf
        return split.left_indices.size >= min_leaf and split.right_indices.size >= min_leaf


class _Frame(NamedTuple):
    indices: np.ndarray
    depth: int
    parent: Node | None
    side: Literal["left", "right"]
