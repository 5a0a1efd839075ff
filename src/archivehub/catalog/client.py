"""Catalog Client for archivehub.

Capability interface over one catalog backend (the local primary server or
the upstream remote) plus the HTTP implementation used in practice.
All listings are normalized to the entry dataclasses below.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from ..urls import base_url, endpoint_url

logger = logging.getLogger(__name__)


@dataclass
class FileStateSummary:
    """Build state counters the server attaches to groups, archives and dirs."""
    new: int = 0
    stale: int = 0
    deleted: int = 0
    up_to_date: int = 0
    last_built: Optional[float] = None
    last_changed: Optional[float] = None

    @classmethod
    def from_api(cls, data: Any) -> Optional["FileStateSummary"]:
        if not isinstance(data, dict):
            return None
        return cls(
            new=int(data.get("new", 0)),
            stale=int(data.get("stale", 0)),
            deleted=int(data.get("deleted", 0)),
            up_to_date=int(data.get("up_to_date", 0)),
            last_built=data.get("last_built"),
            last_changed=data.get("last_changed"),
        )


@dataclass
class GroupEntry:
    id: str
    summary: Optional[FileStateSummary] = None

    @classmethod
    def from_api(cls, data: dict) -> "GroupEntry":
        return cls(id=data.get("id", ""), summary=FileStateSummary.from_api(data.get("summary")))


@dataclass
class ArchiveEntry:
    id: str
    git: Optional[str] = None
    summary: Optional[FileStateSummary] = None

    @classmethod
    def from_api(cls, data: dict) -> "ArchiveEntry":
        return cls(
            id=data.get("id", ""),
            git=data.get("git") or None,
            summary=FileStateSummary.from_api(data.get("summary")),
        )


@dataclass
class DirEntry:
    rel_path: str
    summary: Optional[FileStateSummary] = None

    @classmethod
    def from_api(cls, data: dict) -> "DirEntry":
        return cls(rel_path=data.get("rel_path", ""), summary=FileStateSummary.from_api(data.get("summary")))


@dataclass
class FileEntry:
    rel_path: str
    format: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "FileEntry":
        return cls(rel_path=data.get("rel_path", ""), format=data.get("format", ""))


GroupListing = Tuple[List[GroupEntry], List[ArchiveEntry]]
EntryListing = Tuple[List[DirEntry], List[FileEntry]]


class CatalogError(Exception):
    """Error from catalog operations."""
    pass


class CatalogClient(ABC):
    """One catalog backend.

    Every method is a coroutine. ``None`` is a soft failure (the server
    answered but had nothing usable); a hard failure raises ``CatalogError``.
    """

    name: str = "catalog"
    url: str = ""

    @abstractmethod
    async def list_group(self, group_id: Optional[str] = None) -> Optional[GroupListing]:
        """List the sub-groups and archives of a group (top level if None)."""

    @abstractmethod
    async def list_entries(self, archive_id: str, path: Optional[str] = None) -> Optional[EntryListing]:
        """List directories and files of an archive at ``path``."""

    @abstractmethod
    async def dependencies(self, archive_ids: Sequence[str]) -> Optional[List[str]]:
        """Transitive dependencies of the given archives (meta archives excluded)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.url!r})"


def _form_encode(obj: Any, prefix: str = "", out: Optional[List[Tuple[str, str]]] = None) -> List[Tuple[str, str]]:
    """Flatten a request body into form fields (``key[0]``, ``key[sub]``)."""
    if out is None:
        out = []
    if isinstance(obj, (list, tuple)):
        for i, value in enumerate(obj):
            _form_encode(value, f"{prefix}[{i}]", out)
    elif isinstance(obj, dict):
        for key, value in obj.items():
            _form_encode(value, f"{prefix}[{key}]" if prefix else str(key), out)
    elif isinstance(obj, bool):
        out.append((prefix, "true" if obj else "false"))
    elif obj is not None:
        out.append((prefix, str(obj)))
    return out


class HTTPCatalogClient(CatalogClient):
    """Client for a catalog server's ``api/backend`` endpoints.

    requests is blocking, so each call runs in a worker thread; concurrent
    coroutines therefore overlap their I/O.
    """

    def __init__(
        self,
        url: str,
        name: str = "primary",
        timeout_s: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = base_url(url)
        self.name = name
        self.timeout_s = timeout_s
        self._session = session or requests.Session()
        self._session.headers["Accept"] = "application/json"

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        """POST a form-encoded body; ``None`` for a non-2xx answer."""
        if not self.url:
            raise CatalogError(f"No URL configured for {self.name} catalog")

        url = endpoint_url(self.url, endpoint)
        logger.debug("POST %s %s", url, body)
        try:
            response = self._session.request(
                "POST",
                url,
                data=_form_encode(body),
                timeout=self.timeout_s,
            )
        except requests.exceptions.ConnectionError as e:
            raise CatalogError(f"Cannot connect to {self.name} catalog at {self.url}") from e
        except requests.exceptions.Timeout as e:
            raise CatalogError(f"{self.name} catalog timed out on {endpoint}") from e
        except requests.exceptions.RequestException as e:
            raise CatalogError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            logger.debug("%s answered %s on %s", self.name, response.status_code, endpoint)
            return None
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise CatalogError(f"Invalid JSON from {url}") from e

    async def _call(self, endpoint: str, body: Dict[str, Any]) -> Any:
        return await asyncio.to_thread(self._post, endpoint, body)

    async def list_group(self, group_id: Optional[str] = None) -> Optional[GroupListing]:
        data = await self._call("api/backend/group_entries", {"in": group_id})
        if not isinstance(data, (list, tuple)) or len(data) < 2:
            return None
        groups, archives = data[0] or [], data[1] or []
        return (
            [GroupEntry.from_api(g) for g in groups],
            [ArchiveEntry.from_api(a) for a in archives],
        )

    async def list_entries(self, archive_id: str, path: Optional[str] = None) -> Optional[EntryListing]:
        data = await self._call("api/backend/archive_entries", {"archive": archive_id, "path": path})
        if not isinstance(data, (list, tuple)) or len(data) < 2:
            return None
        dirs, files = data[0] or [], data[1] or []
        return (
            [DirEntry.from_api(d) for d in dirs],
            [FileEntry.from_api(f) for f in files],
        )

    async def dependencies(self, archive_ids: Sequence[str]) -> Optional[List[str]]:
        data = await self._call("api/backend/archive_dependencies", {"archives": list(archive_ids)})
        if not isinstance(data, list):
            return None
        return [str(a) for a in data]

    async def settings(self) -> Optional[dict]:
        """Server-side settings; the primary reports its local roots as ``mathhubs``."""
        data = await self._call("api/settings", {})
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
        if isinstance(data, dict):
            return data
        return None

    async def local_roots(self) -> List[str]:
        settings = await self.settings()
        if not settings:
            return []
        return [str(p) for p in settings.get("mathhubs", [])]

    def close(self) -> None:
        self._session.close()
