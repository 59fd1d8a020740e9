"""Routing samples through a fitted tree."""

from __future__ import annotations

from collections.abc import Sequence

from treekit.exceptions import MalformedTreeError
from treekit.tree.node import Label, LeafValue, Node
from treekit.tree.splitting import is_missing, to_number


def predict_value(root: Node, sample: Sequence[object]) -> LeafValue:
    """Route one sample to a leaf and return the leaf's value.

    Samples missing the split feature follow the child that saw more training
    samples, the left child on a tie. A value a numeric split cannot read as a
    number fails the `<=` test and goes right. An internal node without a
    usable split rule or children answers with its own cached value.

    Args:
        root (Node): Root of the tree.
        sample (Sequence[object]): Feature values of one sample.

    Returns:
        LeafValue: Class-probability mapping or regression value.

    Raises:
        MalformedTreeError: If a split tests a feature the sample does not have.
    """
    node = root
    while not node.is_leaf:
        left, right = node.left, node.right
        if node.feature_index is None or left is None or right is None:
            return node.value
        if not 0 <= node.feature_index < len(sample):
            raise MalformedTreeError(
                f"Feature index {node.feature_index} is out of bounds for sample with {len(sample)} features"
            )

        feature_value = sample[node.feature_index]
        if is_missing(feature_value):
            node = right if right.samples > left.samples else left
        elif node.left_categories is not None:
            node = left if feature_value in node.left_categories else right
        elif node.threshold is not None:
            node = left if to_number(feature_value) <= node.threshold else right
        else:
            return node.value
    return node.value


def most_probable_label(probabilities: dict[Label, float], classes: Sequence[Label]) -> Label:
    """Return the label with the highest probability.

    Ties keep the first label in iteration order; an empty mapping yields the
    first known class.

    Args:
        probabilities (dict[Label, float]): Leaf probability mapping.
        classes (Sequence[Label]): Labels seen during fit, sorted.

    Returns:
        Label: The predicted label.

    Examples:
        >>> most_probable_label({"A": 0.25, "B": 0.75}, ["A", "B"])
        'B'
        >>> most_probable_label({"A": 0.5, "B": 0.5}, ["A", "B"])
        'A'
    """
    if not probabilities:
        return classes[0]
    predicted = classes[0] if classes else next(iter(probabilities))
    best_probability = -1.0
    for label, probability in probabilities.items():
        if probability > best_probability:
            best_probability = probability
            predicted = label
    return predicted
