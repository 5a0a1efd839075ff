"""Single-source tree fetcher.

Materializes the group/archive hierarchy of one catalog backend. Sub-groups
are fetched concurrently; a failed branch becomes an empty subtree plus a
``SourceWarning`` and never aborts its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence

from .client import ArchiveEntry, CatalogClient, GroupEntry, GroupListing
from .nodes import ArchiveNode, GroupNode, Provenance, TreeNode

if TYPE_CHECKING:
    from ..context import CatalogContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceWarning:
    """Non-fatal failure of one catalog call."""
    source: str                 # "primary" / "remote"
    id: Optional[str]           # group or archive the call was about, None = top level
    message: str

    def __str__(self) -> str:
        return f"{self.source} catalog: {self.message} ({self.id or '<top level>'})"


@dataclass
class Subtree:
    groups: List[GroupNode] = field(default_factory=list)
    archives: List[ArchiveNode] = field(default_factory=list)

    @property
    def nodes(self) -> List[TreeNode]:
        return [*self.groups, *self.archives]

    def __iter__(self):
        return iter((self.groups, self.archives))


class Fetcher:
    """Builds provenance-tagged subtrees from one client at a time.

    Args:
        context: catalog context; decides whether a client is the primary or
            the remote and which local roots archives are probed against
        warnings: list collecting ``SourceWarning``s; shared with the caller
        max_depth: number of group levels to materialize below the starting
            id (None = the catalog's full depth)
    """

    def __init__(
        self,
        context: "CatalogContext",
        warnings: Optional[List[SourceWarning]] = None,
        max_depth: Optional[int] = None,
    ):
        self.context = context
        self.warnings = warnings if warnings is not None else []
        self.max_depth = max_depth

    def warn(self, client: CatalogClient, item_id: Optional[str], message: str) -> SourceWarning:
        warning = SourceWarning(self.context.source_name(client), item_id, message)
        self.warnings.append(warning)
        logger.warning("%s", warning)
        return warning

    def can_descend(self, depth: int) -> bool:
        return self.max_depth is None or depth + 1 < self.max_depth

    async def list_group(self, client: CatalogClient, group_id: Optional[str]) -> Optional[GroupListing]:
        """``client.list_group`` with failures turned into warnings."""
        try:
            listing = await client.list_group(group_id)
        except Exception as e:
            logger.debug("list_group(%r) on %r failed", group_id, client, exc_info=True)
            self.warn(client, group_id, f"listing failed: {e}")
            return None
        if listing is None:
            self.warn(client, group_id, "no entries returned")
            return None
        return listing

    async def fetch_subtree(self, client: CatalogClient, group_id: Optional[str] = None, depth: int = 0) -> Subtree:
        listing = await self.list_group(client, group_id)
        if listing is None:
            return Subtree()
        groups, archives = listing
        return await self.build(client, groups, archives, depth)

    async def build(
        self,
        client: CatalogClient,
        groups: Sequence[GroupEntry],
        archives: Sequence[ArchiveEntry],
        depth: int = 0,
    ) -> Subtree:
        """Turn one listing into nodes, fetching every sub-group concurrently."""
        local = client is self.context.primary
        provenance = Provenance.LOCAL if local else Provenance.REMOTE

        group_nodes = await asyncio.gather(
            *(self._fetch_group(client, entry, provenance, depth) for entry in groups)
        )
        archive_nodes = [
            ArchiveNode.from_entry(
                entry,
                local=local,
                downloadable=client is self.context.remote,
                roots=self.context.local_roots if local else (),
            )
            for entry in archives
        ]
        return Subtree(list(group_nodes), archive_nodes)

    async def _fetch_group(
        self,
        client: CatalogClient,
        entry: GroupEntry,
        provenance: Provenance,
        depth: int,
    ) -> GroupNode:
        node = GroupNode.from_entry(entry, provenance)
        if self.can_descend(depth):
            subtree = await self.fetch_subtree(client, entry.id, depth + 1)
            node.children = subtree.nodes
        return node
