"""Tests for cost-complexity pruning on hand-built trees."""

from __future__ import annotations

import pytest
from pytest_check import check

from treekit.exceptions import MalformedTreeError
from treekit.tree.node import Node
from treekit.tree.pruning import SubtreeCost, prune_subtree, prune_tree


def _leaf(value: float, impurity: float, samples: int) -> Node:
    return Node(value=value, impurity=impurity, samples=samples)


def _split(left: Node, right: Node, *, value: float, impurity: float) -> Node:
    return Node(
        value=value,
        impurity=impurity,
        samples=left.samples + right.samples,
        is_leaf=False,
        feature_index=0,
        threshold=0.0,
        left=left,
        right=right,
    )


def _make_two_level_tree() -> Node:
    """Build a tree whose lower splits have effective alpha 1 and whose root split has alpha 200.

    Returns:
        Node: Root with four pure leaves.
    """
    low = _split(_leaf(0.0, 0.0, 2), _leaf(1.0, 0.0, 2), value=0.5, impurity=0.25)
    high = _split(_leaf(10.0, 0.0, 2), _leaf(11.0, 0.0, 2), value=10.5, impurity=0.25)
    return _split(low, high, value=5.5, impurity=25.25)


def _make_chain(depth: int) -> Node:
    """Build a tree that splits one pure leaf off to the left at every level.

    Every internal node has impurity 1, so its effective alpha is
    `samples / (samples - 1)`, just above 1.

    Args:
        depth (int): Number of internal nodes.

    Returns:
        Node: Root of the chain, with `depth + 1` leaves.
    """
    root = _leaf(0.0, 0.0, 1)
    for _ in range(depth):
        root = _split(_leaf(1.0, 0.0, 1), root, value=0.5, impurity=1.0)
    return root


class TestPruneTree:
    """Tests for `prune_tree`."""

    def test_zero_alpha_is_a_no_op(self) -> None:
        """ccp_alpha=0 leaves every split in place."""
        # Act
        root = prune_tree(_make_two_level_tree(), 0.0)

        # Assert
        assert root.n_leaves == 4

    @pytest.mark.parametrize(
        ("ccp_alpha", "expected_leaves"),
        [(0.99, 4), (1.0, 2), (199.0, 2), (200.0, 1)],
        ids=["below-lower", "equal-lower", "below-root", "equal-root"],
    )
    def test_collapse_when_effective_alpha_at_most_ccp_alpha(self, ccp_alpha: float, expected_leaves: int) -> None:
        """A subtree collapses once its effective alpha is <= ccp_alpha.

        Args:
            ccp_alpha (float): Pruning strength.
            expected_leaves (int): Leaves after pruning.
        """
        # Act
        root = prune_tree(_make_two_level_tree(), ccp_alpha)

        # Assert
        assert root.n_leaves == expected_leaves

    def test_collapsed_root_keeps_cached_value(self) -> None:
        """A fully pruned tree predicts the root's cached value."""
        # Act
        root = prune_tree(_make_two_level_tree(), 1e9)

        # Assert
        with check:
            assert root.is_leaf
        with check:
            assert root.value == 5.5
        with check:
            assert root.left is None and root.right is None

    def test_leaf_root_is_returned_unchanged(self) -> None:
        """Pruning a single leaf returns it as-is."""
        # Arrange
        leaf = _leaf(1.0, 0.5, 4)

        # Act & Assert
        assert prune_tree(leaf, 10.0) is leaf


class TestPruneSubtree:
    """Tests for `prune_subtree`."""

    def test_reports_cost_of_kept_subtree(self) -> None:
        """A kept subtree reports the summed leaf impurity and its leaf count."""
        # Arrange
        root = _split(_leaf(0.0, 0.5, 4), _leaf(1.0, 0.25, 4), value=0.5, impurity=10.0)

        # Act
        cost = prune_subtree(root, 0.1)

        # Assert
        assert cost == SubtreeCost(total_impurity=3.0, n_leaves=2)

    def test_internal_node_without_child_is_malformed(self) -> None:
        """An internal node missing a child cannot be pruned."""
        # Arrange
        broken = Node(value=1.0, impurity=0.5, samples=2, is_leaf=False, feature_index=0, threshold=0.0)

        # Act & Assert
        with pytest.raises(MalformedTreeError):
            prune_subtree(broken, 1.0)

    @pytest.mark.parametrize(
        ("ccp_alpha", "expected_cost"),
        [(1.0, SubtreeCost(total_impurity=0.0, n_leaves=3001)), (1e9, SubtreeCost(total_impurity=3001.0, n_leaves=1))],
        ids=["keeps-every-split", "collapses-to-root"],
    )
    def test_deep_chain(self, ccp_alpha: float, expected_cost: SubtreeCost) -> None:
        """A 3000-level chain is pruned bottom-up without recursion.

        Args:
            ccp_alpha (float): Pruning strength.
            expected_cost (SubtreeCost): Cost reported for the root.
        """
        # Arrange
        root = _make_chain(3000)

        # Act
        cost = prune_subtree(root, ccp_alpha)

        # Assert
        with check:
            assert cost == expected_cost
        with check:
            assert root.n_leaves == expected_cost.n_leaves
