"""Decision tree sub-package: node graph, split search, building, pruning and estimators.

Estimators live in `treekit.tree.estimators` and rule extraction in
`treekit.tree.rules`; both are re-exported from the top-level package.
"""

from __future__ import annotations

from treekit.tree.node import Node

__all__ = ["Node"]
