"""Explicit catalog context.

Every component receives the context it works against instead of looking
up a process-wide one: the mandatory primary client, the optional remote
client, the local roots used to locate installed archives and the
installer that install requests are handed to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from .catalog.client import CatalogClient, HTTPCatalogClient
from .config import Settings

if TYPE_CHECKING:
    from .installer import Installer


@dataclass
class CatalogContext:
    primary: CatalogClient
    remote: Optional[CatalogClient] = None
    local_roots: List[Path] = field(default_factory=list)
    installer: Optional["Installer"] = None

    @property
    def has_remote(self) -> bool:
        return self.remote is not None

    def source_name(self, client: CatalogClient) -> str:
        if client is self.primary:
            return "primary"
        if client is self.remote:
            return "remote"
        return getattr(client, "name", "catalog")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CatalogContext":
        primary = HTTPCatalogClient(settings.primary_url, name="primary", timeout_s=settings.timeout_s)
        remote = None
        if settings.has_remote:
            remote = HTTPCatalogClient(settings.remote_url, name="remote", timeout_s=settings.timeout_s)
        return cls(
            primary=primary,
            remote=remote,
            local_roots=[Path(r).expanduser() for r in settings.local_roots],
        )

    def close(self) -> None:
        for part in (self.primary, self.remote, self.installer):
            close = getattr(part, "close", None)
            if close is not None:
                close()
