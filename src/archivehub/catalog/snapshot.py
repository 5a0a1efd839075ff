"""Published catalog snapshots.

A snapshot owns every group and archive node of one unified tree. Nodes are
stored in a flat table indexed by an integer handle; parent links are handle
lookups in that table, so nodes never reference their parents. Publishing
freezes all nodes: a consumer iterating a snapshot never observes it change.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .fetcher import SourceWarning
from .nodes import ArchiveNode, GroupNode, NodeKind, TreeNode

logger = logging.getLogger(__name__)


class CatalogSnapshot:
    """Immutable, handle-indexed view of one unified catalog tree."""

    def __init__(
        self,
        roots: Iterable[TreeNode],
        generation: int = 0,
        warnings: Sequence[SourceWarning] = (),
    ):
        self.generation = generation
        self.warnings = tuple(warnings)
        self._nodes: List[TreeNode] = []
        self._parents: List[Optional[int]] = []
        self._handles: Dict[str, int] = {}
        self.roots = tuple(node for node in list(roots) if self._register(node, None))

    @classmethod
    def empty(cls, generation: int = 0) -> "CatalogSnapshot":
        return cls((), generation)

    def _register(self, node: TreeNode, parent: Optional[int]) -> bool:
        if node.id in self._handles:
            logger.warning("Duplicate catalog id %s dropped from snapshot", node.id)
            return False

        handle = len(self._nodes)
        self._nodes.append(node)
        self._parents.append(parent)
        self._handles[node.id] = handle

        if node.kind is NodeKind.GROUP:
            kept = []
            for child in node.children:
                if self._register(child, handle):
                    kept.append(child)
            node.children = tuple(kept)
        node.freeze()
        return True

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._handles

    def get(self, node_id: str) -> Optional[TreeNode]:
        handle = self._handles.get(node_id)
        return None if handle is None else self._nodes[handle]

    def node(self, handle: int) -> TreeNode:
        return self._nodes[handle]

    def handle_of(self, node: TreeNode) -> Optional[int]:
        handle = self._handles.get(node.id)
        if handle is None or self._nodes[handle] is not node:
            return None
        return handle

    def parent(self, node: TreeNode) -> Optional[GroupNode]:
        """Parent group of a node in this snapshot (None for roots and strangers)."""
        handle = self.handle_of(node)
        if handle is None:
            return None
        parent = self._parents[handle]
        return None if parent is None else self._nodes[parent]

    def ancestors(self, node: TreeNode) -> List[GroupNode]:
        """Parents from the nearest up to the root."""
        chain = []
        parent = self.parent(node)
        while parent is not None:
            chain.append(parent)
            parent = self.parent(parent)
        return chain

    def walk(self) -> Iterator[TreeNode]:
        """Every node, depth first, parents before children."""
        return iter(self._nodes)

    def groups(self) -> List[GroupNode]:
        return [n for n in self._nodes if n.kind is NodeKind.GROUP]

    def archives(self) -> List[ArchiveNode]:
        return [n for n in self._nodes if n.kind is NodeKind.ARCHIVE]
