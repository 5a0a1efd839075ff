"""Unified catalog tree.

Owns the currently published ``CatalogSnapshot`` and is what consumers (the
CLI, a UI, an automated installer) talk to:

- ``get_roots()`` / ``get_children()`` browse the tree; only archives and
  their directories do I/O when expanded
- ``refresh()`` rebuilds the tree and publishes it with one reference swap
- ``install()`` hands an install request to the installer
- ``subscribe()`` registers for change events
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional

from .client import CatalogClient
from .fetcher import SourceWarning
from .nodes import ArchiveNode, CatalogNode, DirNode, FileNode, NodeKind, TreeNode
from .planner import InstallPlanner, InstallRequest
from .reconciler import Reconciler
from .snapshot import CatalogSnapshot

if TYPE_CHECKING:
    from ..context import CatalogContext

logger = logging.getLogger(__name__)

REFRESHED = "refreshed"
INSTALL_REQUESTED = "install-requested"


@dataclass(frozen=True)
class TreeEvent:
    kind: str                               # REFRESHED / INSTALL_REQUESTED
    snapshot: CatalogSnapshot
    request: Optional[InstallRequest] = None


Listener = Callable[[TreeEvent], None]


class CatalogTree:
    """Consumer-facing view over the primary and remote catalogs.

    Refreshes may overlap. Each one takes a generation number when it starts
    and only the newest started refresh may publish; an older one finishing
    later is dropped.
    """

    def __init__(self, context: "CatalogContext", max_depth: Optional[int] = None):
        self.context = context
        self._reconciler = Reconciler(context, max_depth=max_depth)
        self._planner = InstallPlanner(context)
        self._snapshot: Optional[CatalogSnapshot] = None
        self._generation = 0
        self._listeners: List[Listener] = []
        self._entry_warnings: List[SourceWarning] = []
        self._running = 0
        self._settled = asyncio.Event()

    # --- Events ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register for change events; returns a callable that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: TreeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Catalog listener %r failed on %s", listener, event.kind)

    # --- Snapshots ---

    @property
    def current(self) -> Optional[CatalogSnapshot]:
        """The published snapshot, None before the first build."""
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def warnings(self) -> List[SourceWarning]:
        """Warnings of the published refresh plus failed lazy listings since."""
        published = list(self._snapshot.warnings) if self._snapshot else []
        return published + self._entry_warnings

    async def refresh(self) -> Optional[CatalogSnapshot]:
        """Rebuild the tree from the root.

        Returns the published snapshot, or None if a newer refresh started
        while this one was running.
        """
        self._generation += 1
        generation = self._generation
        logger.debug("refresh %d started", generation)

        self._running += 1
        try:
            result = await self._reconciler.merge()
        finally:
            self._running -= 1
            # wake snapshot() waiters; later waiters get a fresh event
            settled, self._settled = self._settled, asyncio.Event()
            settled.set()

        if generation != self._generation:
            logger.debug("refresh %d discarded, %d is newer", generation, self._generation)
            return None

        snapshot = CatalogSnapshot(result.nodes, generation, result.warnings)
        self._snapshot = snapshot
        self._entry_warnings = []
        logger.info(
            "Catalog refreshed: %d nodes, %d warning(s)",
            len(snapshot),
            len(snapshot.warnings),
        )
        self._emit(TreeEvent(REFRESHED, snapshot))
        return snapshot

    async def catalog_updated(self) -> Optional[CatalogSnapshot]:
        """Out-of-band signal from the installer that the local catalog changed."""
        return await self.refresh()

    async def snapshot(self) -> CatalogSnapshot:
        """The published snapshot, building the first one on demand.

        A first build that gets superseded waits for the newer refresh to
        publish instead of returning an empty tree.
        """
        while self._snapshot is None:
            if self._running:
                await self._settled.wait()
            else:
                await self.refresh()
        return self._snapshot

    async def find(self, node_id: str) -> Optional[TreeNode]:
        return (await self.snapshot()).get(node_id)

    # --- Browsing ---

    async def get_roots(self) -> List[TreeNode]:
        return list((await self.snapshot()).roots)

    async def get_children(self, node: CatalogNode) -> List[CatalogNode]:
        kind = node.kind
        if kind is NodeKind.GROUP:
            return list(node.children)
        if kind is NodeKind.ARCHIVE:
            return await self._list_entries(node, None)
        if kind is NodeKind.DIRECTORY:
            archive = self._owning_archive(node)
            if archive is None:
                return []
            return await self._list_entries(archive, node.rel_path)
        return []

    def parent(self, node: CatalogNode) -> Optional[CatalogNode]:
        if self._snapshot is None:
            return None
        if node.kind in (NodeKind.DIRECTORY, NodeKind.FILE):
            return self._snapshot.get(node.archive_id)
        return self._snapshot.parent(node)

    def _owning_archive(self, node: CatalogNode) -> Optional[ArchiveNode]:
        owner = self._snapshot.get(node.archive_id) if self._snapshot else None
        if owner is None or owner.kind is not NodeKind.ARCHIVE:
            logger.warning("Archive %s of %s is not in the current catalog", node.archive_id, node.id)
            return None
        return owner

    def _entry_warning(self, client: Optional[CatalogClient], item_id: str, message: str) -> None:
        source = self.context.source_name(client) if client is not None else "remote"
        warning = SourceWarning(source, item_id, message)
        self._entry_warnings.append(warning)
        logger.warning("%s", warning)

    async def _list_entries(self, archive: ArchiveNode, path: Optional[str]) -> List[CatalogNode]:
        client = self.context.primary if archive.local else self.context.remote
        item_id = f"{archive.id}/{path}" if path else archive.id
        if client is None:
            self._entry_warning(None, item_id, "no remote catalog configured")
            return []

        try:
            listing = await client.list_entries(archive.id, path)
        except Exception as e:
            self._entry_warning(client, item_id, f"listing failed: {e}")
            return []
        if listing is None:
            self._entry_warning(client, item_id, "no file entries found")
            return []

        dirs, files = listing
        entries: List[CatalogNode] = [
            DirNode(archive.id, d.rel_path, d.summary, archive.source_path(d.rel_path))
            for d in dirs
        ]
        entries.extend(
            FileNode(archive.id, f.rel_path, f.format, archive.source_path(f.rel_path))
            for f in files
        )
        return entries

    # --- Install ---

    async def install(self, node: CatalogNode) -> Optional[InstallRequest]:
        """Request an install of ``node``; fires one event once acknowledged.

        Completion is reported later by the installer calling
        ``catalog_updated()``.
        """
        request = await self._planner.install(node)
        if request is not None:
            snapshot = self._snapshot or CatalogSnapshot.empty(self._generation)
            self._emit(TreeEvent(INSTALL_REQUESTED, snapshot, request))
        return request

    async def plan_install(self, node: CatalogNode) -> Optional[InstallRequest]:
        """The request ``install()`` would submit, without submitting it."""
        return await self._planner.plan(node)
