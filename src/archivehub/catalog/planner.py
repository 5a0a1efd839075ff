"""Install planning.

Turns a selected tree node into a single install request: the downloadable
archives below it plus their dependency closure as reported by the remote.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

from .client import CatalogError
from .nodes import CatalogNode, GroupNode, NodeKind

if TYPE_CHECKING:
    from ..context import CatalogContext

logger = logging.getLogger(__name__)


class InstallError(CatalogError):
    """An install could not be planned; nothing was sent to the installer."""
    pass


@dataclass(frozen=True)
class InstallRequest:
    """Message handed to the installer."""
    archives: Tuple[str, ...]
    remote_url: str

    def to_dict(self) -> dict:
        return {"archives": list(self.archives), "remote_url": self.remote_url}


def _downloadable_archives(group: GroupNode, out: List[str]) -> List[str]:
    for child in group.children:
        if child.kind is NodeKind.ARCHIVE:
            if child.downloadable:
                out.append(child.id)
        elif child.kind is NodeKind.GROUP:
            _downloadable_archives(child, out)
    return out


def flatten(node: CatalogNode) -> List[str]:
    """Archive ids an install of ``node`` starts from.

    An archive selects itself. A group selects every downloadable archive
    below it; installed archives and the groups themselves are skipped.
    """
    if node.kind is NodeKind.ARCHIVE:
        return [node.id]
    if node.kind is NodeKind.GROUP:
        return _downloadable_archives(node, [])
    raise InstallError(f"Cannot install {node.kind.value} {node.id!r}; select a group or an archive")


class InstallPlanner:
    def __init__(self, context: "CatalogContext"):
        self.context = context

    async def plan(self, node: CatalogNode) -> Optional[InstallRequest]:
        """Resolve the install request for ``node``; None if nothing is missing."""
        selected = flatten(node)
        if not selected:
            logger.info("Nothing to install below %s", node.id)
            return None

        remote = self.context.remote
        if remote is None:
            raise InstallError("No remote catalog configured")

        try:
            dependencies = await remote.dependencies(selected)
        except Exception as e:
            raise InstallError(f"Dependency resolution failed for {node.id}: {e}") from e
        if dependencies is None:
            raise InstallError(f"Remote catalog at {remote.url} returned no dependencies for {node.id}")

        archives = tuple(dict.fromkeys([*selected, *dependencies]))
        logger.debug("install %s: %d selected, %d total", node.id, len(selected), len(archives))
        return InstallRequest(archives=archives, remote_url=remote.url)

    async def install(self, node: CatalogNode) -> Optional[InstallRequest]:
        """Plan and submit one install request.

        Overlapping requests are not serialized here; the installer skips
        archives that are already being installed.
        """
        request = await self.plan(node)
        if request is None:
            return None

        installer = self.context.installer
        if installer is None:
            raise InstallError("No installer configured")

        await installer.submit(request)
        logger.info("Requested install of %d archive(s) from %s", len(request.archives), request.remote_url)
        return request
