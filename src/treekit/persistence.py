"""JSON wire format for fitted trees and forests.

Persisted models are pydantic models with camelCase aliases. A tree payload
carries its hyperparameters, feature metadata and its nodes; a forest payload
wraps one tree payload per estimator.

Nodes are stored as a flat pre-order list with the root first. An internal node
names its children by their position in that list.

Two more details keep the format plain JSON:

1. A classification node stores its class probabilities as a list aligned with
   `uniqueClasses`, because JSON object keys cannot carry numeric labels.
2. A categorical split stores its left categories as a deterministically
   ordered list, restored to a set on load.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from treekit.exceptions import MalformedTreeError, ModelTypeMismatchError
from treekit.params import Criterion, FeatureType, MaxFeatures
from treekit.tree.node import Category, Label, LeafValue, Node

__all__ = [
    "SerializedForest",
    "SerializedNode",
    "SerializedTree",
    "flatten_tree",
    "load_forest_payload",
    "load_tree_payload",
    "rebuild_tree",
]

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type JsonScalar = bool | int | float | str

type TreeModelType = Literal["classifier", "regressor"]

type ForestModelType = Literal["random_forest_classifier", "random_forest_regressor"]

type _ChildSlot = Literal["left_child", "right_child"]

# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class SerializedNode(_WireModel):
    """A persisted tree node.

    Attributes:
        is_leaf (bool): Whether the node is terminal.
        value (float | list[float]): Mean target (regression) or class
            probabilities aligned with the tree's `unique_classes`.
        impurity (float): Impurity of the node's training samples.
        samples (int): Number of training samples at the node.
        feature_index (int | None): Column tested by an internal node.
        threshold (float | None): Numeric split threshold.
        left_category_set (list[JsonScalar] | None): Categories routed left, sorted.
        left_child (int | None): Position of the left child in the tree's node list.
        right_child (int | None): Position of the right child in the tree's node list.
    """

    is_leaf: bool = Field(description="Whether the node is terminal.")
    value: float | list[float] = Field(description="Leaf value, or class probabilities aligned with uniqueClasses.")
    impurity: float = Field(ge=0.0, description="Impurity of the node's training samples.")
    samples: int = Field(ge=0, description="Number of training samples at the node.")
    feature_index: int | None = Field(default=None, description="Column tested by an internal node.")
    threshold: float | None = Field(default=None, description="Numeric split threshold.")
    left_category_set: list[JsonScalar] | None = Field(default=None, description="Categories routed left.")
    left_child: int | None = Field(default=None, ge=1, description="Node-list position of the left child.")
    right_child: int | None = Field(default=None, ge=1, description="Node-list position of the right child.")


class SerializedTree(_WireModel):
    """A persisted decision tree.

    Examples:
        >>> tree = SerializedTree(
        ...     type="regressor",
        ...     nodes=[SerializedNode(is_leaf=True, value=1.5, impurity=0.0, samples=2)],
        ...     criterion="mse",
        ...     max_depth=None,
        ...     min_samples_split=2,
        ...     min_samples_leaf=1,
        ...     min_impurity_decrease=0.0,
        ...     n_features=1,
        ...     feature_types=["numerical"],
        ...     ccp_alpha=0.0,
        ...     max_features=None,
        ...     random_state=None,
        ...     feature_importances=[0.0],
        ... )
        >>> tree.model_dump(by_alias=True)["minSamplesSplit"]
        2
    """

    type: TreeModelType = Field(description="Estimator kind the payload belongs to.")
    nodes: list[SerializedNode] = Field(min_length=1, description="Nodes in pre-order; the root is first.")
    criterion: Criterion = Field(description="Resolved impurity criterion.")
    max_depth: int | None = Field(description="Maximum depth, null for unlimited.")
    min_samples_split: int = Field(description="Minimum samples required to split a node.")
    min_samples_leaf: int = Field(description="Minimum samples on each side of a split.")
    min_impurity_decrease: float = Field(description="Minimum gain to accept a split.")
    n_features: int = Field(ge=0, description="Number of feature columns seen during fit.")
    feature_types: list[FeatureType] = Field(description="Type of every feature column.")
    ccp_alpha: float = Field(description="Cost-complexity pruning parameter.")
    max_features: MaxFeatures = Field(description="Features considered per split.")
    random_state: int | None = Field(description="Seed for feature subsampling.")
    feature_importances: list[float] = Field(description="Normalized feature importances.")
    unique_classes: list[JsonScalar] | None = Field(default=None, description="Sorted class labels (classifier only).")


class SerializedForest(_WireModel):
    """A persisted random forest."""

    type: ForestModelType = Field(description="Ensemble kind the payload belongs to.")
    n_estimators: int = Field(ge=1, description="Number of trees.")
    bootstrap: bool = Field(description="Whether trees were fit on bootstrap resamples.")
    random_state: int | None = Field(description="Seed of the forest.")
    unique_classes: list[JsonScalar] | None = Field(default=None, description="Sorted class labels (classifier only).")
    trees: list[SerializedTree] = Field(min_length=1, description="One payload per tree.")


# ---------------------------------------------------------------------------
# Public interface -- Node conversion
# ---------------------------------------------------------------------------


def flatten_tree(root: Node, classes: Sequence[Label] | None = None) -> list[SerializedNode]:
    """Convert an in-memory node graph to its flat wire form.

    Args:
        root (Node): Root of the tree to convert.
        classes (Sequence[Label] | None): Sorted class labels for a
            classification tree; `None` for regression.

    Returns:
        list[SerializedNode]: The nodes in pre-order, root first, with children
            referenced by list position.

    Examples:
        >>> root = Node(value=0.5, impurity=0.25, samples=2, is_leaf=False, feature_index=0, threshold=1.5)
        >>> root.left = Node(value=0.0, impurity=0.0, samples=1)
        >>> root.right = Node(value=1.0, impurity=0.0, samples=1)
        >>> [(node.left_child, node.right_child) for node in flatten_tree(root)]
        [(1, 2), (None, None), (None, None)]
    """
    nodes: list[SerializedNode] = []
    pending: list[tuple[Node, int | None, _ChildSlot]] = [(root, None, "left_child")]
    while pending:
        node, parent_position, slot = pending.pop()
        position = len(nodes)
        nodes.append(_serialize_fields(node, classes))
        if parent_position is not None:
            setattr(nodes[parent_position], slot, position)
        # Right first so the left subtree is emitted next
        if node.right is not None:
            pending.append((node.right, position, "right_child"))
        if node.left is not None:
            pending.append((node.left, position, "left_child"))
    return nodes


def rebuild_tree(nodes: Sequence[SerializedNode], classes: Sequence[Label] | None = None) -> Node:
    """Rebuild an in-memory node graph from its flat wire form.

    Args:
        nodes (Sequence[SerializedNode]): Persisted nodes, root first.
        classes (Sequence[Label] | None): Sorted class labels for a
            classification tree; `None` for regression.

    Returns:
        Node: Root of the rebuilt tree.

    Raises:
        MalformedTreeError: If a node value does not match the tree kind, or the
            child references do not form a single tree over every stored node.
    """
    if not nodes:
        raise MalformedTreeError("Persisted tree has no nodes")

    rebuilt = [_deserialize_fields(payload, classes) for payload in nodes]
    parent_of: dict[int, int] = {}
    for position, payload in enumerate(nodes):
        for child in (payload.left_child, payload.right_child):
            if child is None:
                continue
            if not 0 < child < len(nodes):
                raise MalformedTreeError(
                    f"Node {position} references child {child}, outside positions 1..{len(nodes) - 1}"
                )
            if child in parent_of:
                raise MalformedTreeError(f"Node {child} is referenced by node {parent_of[child]} and node {position}")
            parent_of[child] = position
        node = rebuilt[position]
        node.left = None if payload.left_child is None else rebuilt[payload.left_child]
        node.right = None if payload.right_child is None else rebuilt[payload.right_child]

    root = rebuilt[0]
    n_reachable = sum(1 for _ in root.iter_nodes())
    if n_reachable != len(nodes):
        raise MalformedTreeError(f"Only {n_reachable} of {len(nodes)} stored nodes are reachable from the root")
    return root


# ---------------------------------------------------------------------------
# Public interface -- Loading
# ---------------------------------------------------------------------------


def load_tree_payload(payload: str | bytes | Mapping[str, Any], *, expected_type: TreeModelType) -> SerializedTree:
    """Parse and validate a persisted tree.

    Args:
        payload (str | bytes | Mapping[str, Any]): JSON text or an already
            decoded JSON object.
        expected_type (TreeModelType): The `type` tag the caller can load.

    Returns:
        SerializedTree: The validated payload.

    Raises:
        ModelTypeMismatchError: If the payload's `type` tag differs from `expected_type`.
        MalformedTreeError: If the payload is not valid JSON or does not match the schema.
    """
    return _load(payload, SerializedTree, expected_type=expected_type)  # type: ignore[return-value]


def load_forest_payload(
    payload: str | bytes | Mapping[str, Any],
    *,
    expected_type: ForestModelType,
) -> SerializedForest:
    """Parse and validate a persisted forest.

    Args:
        payload (str | bytes | Mapping[str, Any]): JSON text or an already
            decoded JSON object.
        expected_type (ForestModelType): The `type` tag the caller can load.

    Returns:
        SerializedForest: The validated payload.

    Raises:
        ModelTypeMismatchError: If the payload's `type` tag differs from `expected_type`.
        MalformedTreeError: If the payload is not valid JSON or does not match the schema.
    """
    return _load(payload, SerializedForest, expected_type=expected_type)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _serialize_fields(node: Node, classes: Sequence[Label] | None) -> SerializedNode:
    if isinstance(node.value, dict):
        value: float | list[float] = [float(node.value.get(label, 0.0)) for label in classes or ()]
    else:
        value = float(node.value)
    return SerializedNode(
        is_leaf=node.is_leaf,
        value=value,
        impurity=node.impurity,
        samples=node.samples,
        feature_index=node.feature_index,
        threshold=node.threshold,
        left_category_set=None if node.left_categories is None else _sorted_categories(node.left_categories),
    )


def _deserialize_fields(payload: SerializedNode, classes: Sequence[Label] | None) -> Node:
    if classes is not None:
        if not isinstance(payload.value, list) or len(payload.value) != len(classes):
            raise MalformedTreeError(
                f"Classification node value must list one probability per class ({len(classes)} classes)"
            )
        value: LeafValue = dict(zip(classes, payload.value, strict=True))
    elif isinstance(payload.value, list):
        raise MalformedTreeError("Regression node value must be a number")
    else:
        value = payload.value

    return Node(
        value=value,
        impurity=payload.impurity,
        samples=payload.samples,
        is_leaf=payload.is_leaf,
        feature_index=payload.feature_index,
        threshold=payload.threshold,
        left_categories=None if payload.left_category_set is None else frozenset(payload.left_category_set),
    )


def _load(
    payload: str | bytes | Mapping[str, Any],
    model: type[SerializedTree] | type[SerializedForest],
    *,
    expected_type: str,
) -> SerializedTree | SerializedForest:
    if isinstance(payload, str | bytes):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise MalformedTreeError(f"Persisted model is not valid JSON: {exc}") from exc
    else:
        data = payload
    if not isinstance(data, Mapping):
        raise MalformedTreeError("Persisted model must be a JSON object")

    actual_type = data.get("type")
    if actual_type != expected_type:
        raise ModelTypeMismatchError(expected=expected_type, actual=None if actual_type is None else str(actual_type))

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedTreeError(f"Persisted model does not match the expected schema: {exc}") from exc


def _sorted_categories(categories: Iterable[Category]) -> list[JsonScalar]:
    # Type name first so mixed-type sets still sort
    return sorted(categories, key=lambda c: (type(c).__name__, c))  # type: ignore[return-value]
