"""Cost-complexity (weakest-link) pruning."""

from __future__ import annotations

from typing import NamedTuple

from loguru import logger

from treekit.exceptions import MalformedTreeError
from treekit.tree.node import Node


class SubtreeCost(NamedTuple):
    """Training cost of a (possibly pruned) subtree.

    Attributes:
        total_impurity (float): Sum of `impurity * samples` over its leaves.
        n_leaves (int): Number of leaves.
    """

    total_impurity: float
    n_leaves: int


def prune_tree(root: Node, ccp_alpha: float) -> Node:
    """Prune a freshly built tree in place.

    A single bottom-up pass collapses every internal node whose effective alpha
    `(R_t - R_Tt) / (n_leaves - 1)` is at most `ccp_alpha`. Children are pruned
    before their parent is examined, so very large alphas collapse the tree
    toward a single root leaf.

    Args:
        root (Node): Root of the tree; mutated in place.
        ccp_alpha (float): Complexity parameter; 0 leaves the tree untouched.

    Returns:
        Node: The same root, for chaining.
    """
    if ccp_alpha <= 0 or root.is_leaf:
        return root
    leaves_before = root.n_leaves
    prune_subtree(root, ccp_alpha)
    logger.debug(
        "Tree pruned: ccp_alpha={ccp_alpha}, leaves {before} -> {after}",
        ccp_alpha=ccp_alpha,
        before=leaves_before,
        after=root.n_leaves,
    )
    return root


def prune_subtree(node: Node, ccp_alpha: float) -> SubtreeCost:
    """Prune the subtree rooted at `node` and report its remaining cost.

    Nodes are visited in post-order from an explicit stack, so every child is
    settled before its parent's effective alpha is computed.

    Args:
        node (Node): Subtree root; mutated in place.
        ccp_alpha (float): Complexity parameter.

    Returns:
        SubtreeCost: Impurity sum and leaf count after pruning.

    Raises:
        MalformedTreeError: If an internal node lacks a child.
    """
    costs: dict[Node, SubtreeCost] = {}
    pending: list[tuple[Node, bool]] = [(node, False)]
    while pending:
        current, children_settled = pending.pop()
        if current.is_leaf:
            costs[current] = SubtreeCost(current.impurity * current.samples, 1)
            continue
        if current.left is None or current.right is None:
            raise MalformedTreeError("Internal node is missing a child and cannot be pruned")
        if not children_settled:
            pending.append((current, True))
            pending.append((current.right, False))
            pending.append((current.left, False))
            continue
        costs[current] = _settle(current, costs[current.left], costs[current.right], ccp_alpha)
    return costs[node]


def _settle(node: Node, left: SubtreeCost, right: SubtreeCost, ccp_alpha: float) -> SubtreeCost:
    subtree_impurity = left.total_impurity + right.total_impurity
    subtree_leaves = left.n_leaves + right.n_leaves

    if subtree_leaves <= 1:
        return SubtreeCost(subtree_impurity, subtree_leaves)

    node_impurity = node.impurity * node.samples
    effective_alpha = (node_impurity - subtree_impurity) / (subtree_leaves - 1)
    if effective_alpha <= ccp_alpha:
        node.collapse()
        return SubtreeCost(node_impurity, 1)
    return SubtreeCost(subtree_impurity, subtree_leaves)
