"""Binary tree node shared by the builder, pruner, predictor and persistence."""

from __future__ import annotations

from collections.abc import Hashable, Iterator
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type Label = Hashable

type Category = Hashable

type FeatureValue = float | int | str | None

type LeafValue = float | dict[Label, float]


# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


@dataclass(slots=True, eq=False)
class Node:
    """A node of a fitted decision tree.

    Every node carries the value it would predict as a leaf, so pruning can
    collapse any internal node in place and prediction can fall back to it.

    Attributes:
        value (LeafValue): Class-probability mapping (classification) or mean
            target (regression) of the training samples that reached the node.
        impurity (float): Impurity of those samples.
        samples (int): Number of training samples that reached the node.
        is_leaf (bool): Whether the node is terminal.
        feature_index (int | None): Column tested by an internal node.
        threshold (float | None): Numeric split; samples with
            `value <= threshold` go left.
        left_categories (frozenset[Category] | None): Categorical split;
            samples whose category is in the set go left.
        left (Node | None): Left child of an internal node.
        right (Node | None): Right child of an internal node.

    Examples:
        >>> leaf = Node(value=1.5, impurity=0.0, samples=2)
        >>> leaf.is_leaf, leaf.n_leaves
        (True, 1)
    """

    value: LeafValue
    impurity: float
    samples: int
    is_leaf: bool = True
    feature_index: int | None = None
    threshold: float | None = None
    left_categories: frozenset[Category] | None = None
    left: Node | None = None
    right: Node | None = None

    @property
    def is_categorical_split(self) -> bool:
        """Whether the node routes by category membership.

        Returns:
            bool: True for a categorical split.
        """
        return self.left_categories is not None

    @property
    def is_terminal(self) -> bool:
        """Whether prediction stops here: a leaf, or an internal node missing a child.

        Returns:
            bool: True when the node has no subtree to descend into.
        """
        return self.is_leaf or self.left is None or self.right is None

    @property
    def n_leaves(self) -> int:
        """Count the leaves of the subtree rooted here.

        Returns:
            int: Number of leaves.
        """
        n_leaves = 0
        pending: list[Node] = [self]
        while pending:
            node = pending.pop()
            if node.is_terminal:
                n_leaves += 1
            else:
                pending.extend((node.left, node.right))  # type: ignore[arg-type]
        return n_leaves

    @property
    def depth(self) -> int:
        """Depth of the subtree rooted here; a single leaf has depth 0.

        Returns:
            int: Length of the longest root-to-leaf path.
        """
        deepest = 0
        pending: list[tuple[Node, int]] = [(self, 0)]
        while pending:
            node, depth = pending.pop()
            if node.is_terminal:
                deepest = max(deepest, depth)
            else:
                pending.append((node.left, depth + 1))  # type: ignore[arg-type]
                pending.append((node.right, depth + 1))  # type: ignore[arg-type]
        return deepest

    def collapse(self) -> None:
        """Turn this node into a leaf predicting its cached value."""
        self.is_leaf = True
        self.feature_index = None
        self.threshold = None
        self.left_categories = None
        self.left = None
        self.right = None

    def iter_nodes(self) -> Iterator[Node]:
        """Yield the nodes of the subtree in pre-order.

        Yields:
            Node: This node, then the left subtree, then the right subtree.
        """
        pending: list[Node] = [self]
        while pending:
            node = pending.pop()
            yield node
            if node.right is not None:
                pending.append(node.right)
            if node.left is not None:
                pending.append(node.left)
