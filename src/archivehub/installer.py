"""Archive installer.

Receives install requests from the catalog tree, downloads every requested
archive from the remote as a gzipped tarball and unpacks it below the
install root. When a request is done the tree is told that the local
catalog changed so it refreshes.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Protocol, Set

import requests

from .catalog.nodes import archive_path, find_archive_root
from .catalog.planner import InstallRequest
from .urls import endpoint_url

if TYPE_CHECKING:
    from .context import CatalogContext

logger = logging.getLogger(__name__)

OnComplete = Callable[[], Awaitable[object]]


class Installer(Protocol):
    """Receiver of install requests."""

    async def submit(self, request: InstallRequest) -> None:
        """Accept a request; returning is the acknowledgement."""


class InstallFailed(Exception):
    """One archive could not be downloaded or unpacked."""
    pass


def _is_within_directory(directory: Path, target: Path) -> bool:
    directory = directory.resolve()
    target = target.resolve()
    return target == directory or directory in target.parents


def _safe_extract_tar(archive: Path, dest: Path) -> None:
    with tarfile.open(archive, "r:*") as tf:
        for member in tf.getmembers():
            if member.issym() or member.islnk():
                raise InstallFailed(f"Refusing link in archive: {member.name}")
            if not _is_within_directory(dest, dest.joinpath(member.name)):
                raise InstallFailed(f"Unsafe archive containing path outside extraction dir: {member.name}")
        if hasattr(tarfile, "data_filter"):
            tf.extractall(path=str(dest), filter="data")
        else:
            tf.extractall(path=str(dest))


class DownloadInstaller:
    """Installs archives by downloading them from the remote catalog.

    ``submit`` only schedules the work and returns. Archives already present
    in a local root, or still being installed by an earlier request, are
    skipped; overlapping requests are therefore harmless.
    """

    def __init__(
        self,
        context: "CatalogContext",
        install_root: Path,
        on_complete: Optional[OnComplete] = None,
        timeout_s: float = 120.0,
        session: Optional[requests.Session] = None,
    ):
        self.context = context
        self.install_root = Path(install_root).expanduser()
        self.on_complete = on_complete
        self.timeout_s = timeout_s
        self._session = session or requests.Session()
        self._in_flight: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> Set[str]:
        return set(self._in_flight)

    def is_installed(self, archive_id: str) -> bool:
        roots = [self.install_root, *self.context.local_roots]
        return find_archive_root(archive_id, roots) is not None

    async def submit(self, request: InstallRequest) -> None:
        pending = [
            a for a in request.archives
            if a not in self._in_flight and not self.is_installed(a)
        ]
        skipped = len(request.archives) - len(pending)
        if skipped:
            logger.info("Skipping %d archive(s) already installed or in progress", skipped)
        self._in_flight.update(pending)

        task = asyncio.create_task(self._run(request.remote_url, pending))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait(self) -> None:
        """Wait until every submitted request has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _run(self, remote_url: str, archives: List[str]) -> None:
        installed = 0
        try:
            for archive_id in archives:
                try:
                    await asyncio.to_thread(self._install_one, remote_url, archive_id)
                    installed += 1
                    logger.info("Installed %s", archive_id)
                except (InstallFailed, requests.RequestException, tarfile.TarError, OSError) as e:
                    logger.error("Failed to install archive %s: %s", archive_id, e)
                finally:
                    self._in_flight.discard(archive_id)
        finally:
            logger.info("Install finished: %d of %d archive(s)", installed, len(archives))
            if self.on_complete is not None:
                await self.on_complete()

    def _install_one(self, remote_url: str, archive_id: str) -> None:
        url = endpoint_url(remote_url, "api/backend/download")
        target = archive_path(self.install_root, archive_id)

        with tempfile.TemporaryDirectory(prefix="archivehub-") as tmp:
            tmpdir = Path(tmp)
            tarball = tmpdir / "archive.tar.gz"
            with self._session.get(url, params={"id": archive_id}, timeout=self.timeout_s, stream=True) as response:
                if response.status_code >= 400:
                    raise InstallFailed(f"Remote answered {response.status_code}: {response.text[:200]}")
                with tarball.open("wb") as fh:
                    for chunk in response.iter_content(chunk_size=65536):
                        fh.write(chunk)

            unpacked = tmpdir / "unpacked"
            unpacked.mkdir()
            _safe_extract_tar(tarball, unpacked)

            if target.exists():
                shutil.rmtree(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(unpacked), str(target))

    def close(self) -> None:
        self._session.close()
