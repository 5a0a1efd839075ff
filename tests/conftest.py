"""Shared test fixtures for archivehub."""

import asyncio
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytest

from archivehub.catalog.client import (
    ArchiveEntry,
    CatalogClient,
    CatalogError,
    DirEntry,
    FileEntry,
    GroupEntry,
)
from archivehub.catalog.planner import InstallRequest
from archivehub.context import CatalogContext


class FakeCatalogClient(CatalogClient):
    """In-memory catalog backend.

    ``catalog`` maps a group id (None = top level) to ``(group ids, archive ids)``.
    Unknown ids list as empty. Ids in ``fail`` raise ``CatalogError``; ids in
    ``soft_fail`` return None.
    """

    def __init__(
        self,
        name: str,
        catalog: Dict[Optional[str], Tuple[Sequence[str], Sequence[str]]],
        entries: Optional[Dict[Tuple[str, Optional[str]], Tuple[Sequence[str], Sequence[Tuple[str, str]]]]] = None,
        dependencies: Optional[Dict[str, List[str]]] = None,
        url: str = "",
    ):
        self.name = name
        self.url = url or f"http://{name}.test"
        self.catalog = dict(catalog)
        self.entries = dict(entries or {})
        self.deps = dependencies
        self.fail: Set[Optional[str]] = set()
        self.soft_fail: Set[Optional[str]] = set()
        self.fail_dependencies = False
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
        finally:
            self.in_flight -= 1

    async def list_group(self, group_id=None):
        self.calls.append(("list_group", group_id))
        groups, archives = self.catalog.get(group_id, ((), ()))
        listing = ([GroupEntry(g) for g in groups], [ArchiveEntry(a) for a in archives])
        gate = self.gate
        if gate is not None:
            await gate.wait()
        await self._enter()
        if group_id in self.fail:
            raise CatalogError(f"{self.name} unreachable")
        if group_id in self.soft_fail:
            return None
        return listing

    async def list_entries(self, archive_id, path=None):
        self.calls.append(("list_entries", archive_id, path))
        await self._enter()
        if archive_id in self.fail:
            raise CatalogError(f"{self.name} unreachable")
        found = self.entries.get((archive_id, path))
        if found is None:
            return None
        dirs, files = found
        return [DirEntry(d) for d in dirs], [FileEntry(f, fmt) for f, fmt in files]

    async def dependencies(self, archive_ids):
        self.calls.append(("dependencies", tuple(archive_ids)))
        await self._enter()
        if self.fail_dependencies:
            raise CatalogError(f"{self.name} unreachable")
        if self.deps is None:
            return None
        result: List[str] = []
        for archive_id in archive_ids:
            result.extend(self.deps.get(archive_id, []))
        return result

    def io_calls(self, kind: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == kind]


class RecordingInstaller:
    """Installer that only remembers what it was asked to do."""

    def __init__(self):
        self.requests: List[InstallRequest] = []

    async def submit(self, request: InstallRequest) -> None:
        self.requests.append(request)


@pytest.fixture
def math_primary():
    return FakeCatalogClient(
        "primary",
        {
            None: (["Math"], []),
            "Math": ([], ["Math/Algebra"]),
        },
        entries={
            ("Math/Algebra", None): (["src"], [("README.md", "md")]),
            ("Math/Algebra", "src"): ([], [("src/groups.tex", "tex")]),
        },
    )


@pytest.fixture
def math_remote():
    return FakeCatalogClient(
        "remote",
        {
            None: (["Math"], ["Phys"]),
            "Math": ([], ["Math/Algebra", "Math/Topology"]),
        },
        entries={
            ("Math/Topology", None): (["src"], []),
        },
        dependencies={"Math/Topology": ["Math/Sets"], "Phys": ["Math/Algebra"]},
        url="https://remote.test",
    )


@pytest.fixture
def installer():
    return RecordingInstaller()


@pytest.fixture
def math_context(math_primary, math_remote, installer):
    return CatalogContext(primary=math_primary, remote=math_remote, installer=installer)


def ids(nodes) -> List[str]:
    return sorted(n.id for n in nodes)
