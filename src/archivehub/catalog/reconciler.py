"""Two-source reconciliation.

Merges the primary (installed) and remote (upstream) catalogs into one tree,
keyed by id:

- groups only the primary lists are LOCAL and come from the primary alone
- groups only the remote lists are REMOTE, downloadable, from the remote alone
- groups both list are BOTH and their children are merged recursively
- archives both list collapse into the single local archive

A level whose remote listing fails falls back to primary content (and the
group that owns it to LOCAL), recording a warning instead of raising. A
level whose primary listing fails keeps the remote content and leaves its
shared group BOTH.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from .client import GroupEntry
from .fetcher import Fetcher, SourceWarning
from .nodes import ArchiveNode, GroupNode, Provenance, TreeNode

if TYPE_CHECKING:
    from ..context import CatalogContext

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    groups: List[GroupNode] = field(default_factory=list)
    archives: List[ArchiveNode] = field(default_factory=list)
    warnings: List[SourceWarning] = field(default_factory=list)

    @property
    def nodes(self) -> List[TreeNode]:
        return [*self.groups, *self.archives]

    def __iter__(self):
        return iter((self.groups, self.archives))


@dataclass
class _Level:
    groups: List[GroupNode]
    archives: List[ArchiveNode]
    remote_ok: bool

    def provenance(self) -> Provenance:
        """Provenance of a shared group whose children this level holds.

        Only a failed remote listing downgrades it; a failed primary listing
        leaves it BOTH with the remote children.
        """
        return Provenance.BOTH if self.remote_ok else Provenance.LOCAL


class Reconciler:
    def __init__(self, context: "CatalogContext", max_depth: Optional[int] = None):
        self.context = context
        self.max_depth = max_depth

    async def merge(self, primary_id: Optional[str] = None) -> MergeResult:
        """Build the unified subtree below ``primary_id`` (top level if None)."""
        fetcher = Fetcher(self.context, max_depth=self.max_depth)
        level = await self._merge_level(fetcher, primary_id, 0)
        logger.debug(
            "merged %s: %d groups, %d archives, %d warnings",
            primary_id or "<top level>",
            len(level.groups),
            len(level.archives),
            len(fetcher.warnings),
        )
        return MergeResult(level.groups, level.archives, fetcher.warnings)

    async def _merge_level(self, fetcher: Fetcher, group_id: Optional[str], depth: int) -> _Level:
        primary, remote = self.context.primary, self.context.remote

        if remote is None:
            subtree = await fetcher.fetch_subtree(primary, group_id, depth)
            return _Level(subtree.groups, subtree.archives, False)

        primary_listing, remote_listing = await asyncio.gather(
            fetcher.list_group(primary, group_id),
            fetcher.list_group(remote, group_id),
        )

        if primary_listing is None and remote_listing is None:
            return _Level([], [], False)
        if remote_listing is None:
            subtree = await fetcher.build(primary, *primary_listing, depth)
            return _Level(subtree.groups, subtree.archives, False)
        if primary_listing is None:
            subtree = await fetcher.build(remote, *remote_listing, depth)
            return _Level(subtree.groups, subtree.archives, True)

        primary_groups, primary_archives = primary_listing
        remote_groups, remote_archives = remote_listing

        remote_by_id: Dict[str, GroupEntry] = {g.id: g for g in remote_groups}
        primary_ids = {g.id for g in primary_groups}

        local_only = [g for g in primary_groups if g.id not in remote_by_id]
        shared = [(g, remote_by_id[g.id]) for g in primary_groups if g.id in remote_by_id]
        remote_only = [g for g in remote_groups if g.id not in primary_ids]

        local_tree, merged, remote_tree = await asyncio.gather(
            fetcher.build(primary, local_only, primary_archives, depth),
            asyncio.gather(*(self._merge_group(fetcher, p, r, depth) for p, r in shared)),
            fetcher.build(remote, remote_only, [], depth),
        )

        known = {a.id for a in local_tree.archives}
        remote_archive_nodes = [
            ArchiveNode.from_entry(entry, local=False, downloadable=True)
            for entry in _unique(remote_archives)
            if entry.id not in known
        ]

        groups = [*local_tree.groups, *merged, *remote_tree.groups]
        archives = [*local_tree.archives, *remote_archive_nodes]
        return _Level(groups, archives, True)

    async def _merge_group(
        self,
        fetcher: Fetcher,
        primary_entry: GroupEntry,
        remote_entry: GroupEntry,
        depth: int,
    ) -> GroupNode:
        node = GroupNode(
            id=primary_entry.id,
            provenance=Provenance.BOTH,
            summary=primary_entry.summary or remote_entry.summary,
        )
        if not fetcher.can_descend(depth):
            return node

        level = await self._merge_level(fetcher, node.id, depth + 1)
        node.children = [*level.groups, *level.archives]
        provenance = level.provenance()
        if provenance is not Provenance.BOTH:
            logger.info("group %s downgraded to %s", node.id, provenance.value)
        node.provenance = provenance
        node.update()
        return node


def _unique(entries):
    seen = set()
    for entry in entries:
        if entry.id in seen:
            continue
        seen.add(entry.id)
        yield entry

