"""Tests for install planning."""

import pytest

from archivehub.catalog.nodes import ArchiveNode, DirNode, FileNode, GroupNode, Provenance
from archivehub.catalog.planner import InstallError, InstallPlanner, InstallRequest, flatten
from archivehub.context import CatalogContext

from conftest import FakeCatalogClient, RecordingInstaller


def _group_g():
    """G (BOTH) with one installed archive and two missing ones."""
    nested = GroupNode("G/N", Provenance.REMOTE, children=[ArchiveNode("G/N/a2", local=False, downloadable=True)])
    return GroupNode(
        "G",
        Provenance.BOTH,
        children=[
            ArchiveNode("G/a1", local=False, downloadable=True),
            ArchiveNode("G/have", local=True),
            nested,
        ],
    )


def _context(dependencies=None, installer=None, remote=True):
    primary = FakeCatalogClient("primary", {})
    remote_client = None
    if remote:
        remote_client = FakeCatalogClient(
            "remote", {}, dependencies=dependencies, url="https://remote.test"
        )
    return CatalogContext(primary=primary, remote=remote_client, installer=installer)


class TestFlatten:
    def test_archive_selects_itself(self):
        assert flatten(ArchiveNode("x", local=True)) == ["x"]

    def test_group_selects_downloadable_descendants(self):
        assert flatten(_group_g()) == ["G/a1", "G/N/a2"]

    def test_fully_installed_group_is_empty(self):
        group = GroupNode("L", Provenance.LOCAL, children=[ArchiveNode("L/a", local=True)])
        assert flatten(group) == []

    @pytest.mark.parametrize("node", [DirNode("x", "src"), FileNode("x", "README.md", "md")])
    def test_entries_cannot_be_installed(self, node):
        with pytest.raises(InstallError):
            flatten(node)


class TestPlan:
    @pytest.mark.asyncio
    async def test_dependency_closure(self):
        context = _context(dependencies={"G/a1": ["G/dep1"], "G/N/a2": ["G/a1"]})

        request = await InstallPlanner(context).plan(_group_g())

        assert set(request.archives) == {"G/a1", "G/N/a2", "G/dep1"}
        assert request.archives == ("G/a1", "G/N/a2", "G/dep1")
        assert request.remote_url == "https://remote.test"

    @pytest.mark.asyncio
    async def test_nothing_to_install(self):
        context = _context(dependencies={})
        group = GroupNode("L", Provenance.LOCAL, children=[ArchiveNode("L/a", local=True)])

        assert await InstallPlanner(context).plan(group) is None
        assert context.remote.calls == []

    @pytest.mark.asyncio
    async def test_requires_remote(self):
        with pytest.raises(InstallError, match="No remote"):
            await InstallPlanner(_context(remote=False)).plan(ArchiveNode("x", local=False))

    @pytest.mark.asyncio
    async def test_dependency_failure_raises(self):
        context = _context(dependencies={})
        context.remote.fail_dependencies = True

        with pytest.raises(InstallError, match="Dependency resolution failed"):
            await InstallPlanner(context).plan(ArchiveNode("x", local=False, downloadable=True))

    @pytest.mark.asyncio
    async def test_missing_dependency_answer_raises(self):
        context = _context(dependencies=None)

        with pytest.raises(InstallError, match="returned no dependencies"):
            await InstallPlanner(context).plan(ArchiveNode("x", local=False, downloadable=True))


class TestInstall:
    @pytest.mark.asyncio
    async def test_submits_one_request(self):
        installer = RecordingInstaller()
        context = _context(dependencies={"G/a1": ["G/dep1"]}, installer=installer)

        request = await InstallPlanner(context).install(_group_g())

        assert installer.requests == [request]
        assert context.remote.io_calls("dependencies") == [("dependencies", ("G/a1", "G/N/a2"))]

    @pytest.mark.asyncio
    async def test_failure_sends_nothing(self):
        installer = RecordingInstaller()
        context = _context(dependencies={}, installer=installer)
        context.remote.fail_dependencies = True

        with pytest.raises(InstallError):
            await InstallPlanner(context).install(_group_g())
        assert installer.requests == []

    @pytest.mark.asyncio
    async def test_no_op_sends_nothing(self):
        installer = RecordingInstaller()
        context = _context(dependencies={}, installer=installer)
        group = GroupNode("L", Provenance.LOCAL)

        assert await InstallPlanner(context).install(group) is None
        assert installer.requests == []

    @pytest.mark.asyncio
    async def test_requires_installer(self):
        context = _context(dependencies={})

        with pytest.raises(InstallError, match="No installer"):
            await InstallPlanner(context).install(ArchiveNode("x", local=False, downloadable=True))


class TestInstallRequest:
    def test_to_dict(self):
        request = InstallRequest(("a", "b"), "https://remote.test")
        assert request.to_dict() == {"archives": ["a", "b"], "remote_url": "https://remote.test"}
