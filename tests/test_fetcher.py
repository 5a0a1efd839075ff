"""Tests for the single-source fetcher."""

import pytest

from archivehub.catalog.fetcher import Fetcher, SourceWarning
from archivehub.catalog.nodes import Provenance
from archivehub.context import CatalogContext

from conftest import FakeCatalogClient, ids


def _wide_catalog(width=4):
    groups = [f"G{i}" for i in range(width)]
    catalog = {None: (groups, [])}
    for g in groups:
        catalog[g] = ([], [f"{g}/a"])
    return catalog


class TestFetchSubtree:
    """Recursive materialization from one client."""

    @pytest.mark.asyncio
    async def test_fetches_nested_groups(self):
        primary = FakeCatalogClient("primary", {
            None: (["A"], ["top"]),
            "A": (["A/B"], ["A/a"]),
            "A/B": ([], ["A/B/b"]),
        })
        fetcher = Fetcher(CatalogContext(primary=primary))

        subtree = await fetcher.fetch_subtree(primary)

        assert [g.id for g in subtree.groups] == ["A"]
        assert [a.id for a in subtree.archives] == ["top"]
        a = subtree.groups[0]
        assert ids(a.children) == ["A/B", "A/a"]
        b = next(c for c in a.children if c.id == "A/B")
        assert ids(b.children) == ["A/B/b"]
        assert fetcher.warnings == []

    @pytest.mark.asyncio
    async def test_primary_nodes_are_local(self):
        primary = FakeCatalogClient("primary", {None: (["A"], ["x"])})
        subtree = await Fetcher(CatalogContext(primary=primary)).fetch_subtree(primary)

        assert subtree.groups[0].provenance is Provenance.LOCAL
        assert subtree.groups[0].downloadable is False
        assert subtree.archives[0].local is True
        assert subtree.archives[0].downloadable is False

    @pytest.mark.asyncio
    async def test_remote_nodes_are_downloadable(self):
        primary = FakeCatalogClient("primary", {})
        remote = FakeCatalogClient("remote", {None: (["A"], ["x"])})
        fetcher = Fetcher(CatalogContext(primary=primary, remote=remote))

        subtree = await fetcher.fetch_subtree(remote)

        assert subtree.groups[0].provenance is Provenance.REMOTE
        assert subtree.groups[0].downloadable is True
        assert subtree.archives[0].local is False
        assert subtree.archives[0].downloadable is True

    @pytest.mark.asyncio
    async def test_starts_below_a_group(self):
        primary = FakeCatalogClient("primary", {None: (["A"], []), "A": ([], ["A/a"])})
        subtree = await Fetcher(CatalogContext(primary=primary)).fetch_subtree(primary, "A")

        assert subtree.groups == []
        assert ids(subtree.archives) == ["A/a"]

    @pytest.mark.asyncio
    async def test_local_archive_resolves_resource_path(self, tmp_path):
        (tmp_path / "A" / "a").mkdir(parents=True)
        primary = FakeCatalogClient("primary", {None: ([], ["A/a", "A/missing"])})
        context = CatalogContext(primary=primary, local_roots=[tmp_path])

        subtree = await Fetcher(context).fetch_subtree(primary)
        archives = {a.id: a for a in subtree.archives}

        assert archives["A/a"].resource_path == tmp_path / "A" / "a"
        assert archives["A/missing"].resource_path is None


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_sibling_groups_fetched_concurrently(self):
        primary = FakeCatalogClient("primary", _wide_catalog(4))

        await Fetcher(CatalogContext(primary=primary)).fetch_subtree(primary)

        assert primary.max_in_flight >= 3


class TestFailureIsolation:
    """A failing branch becomes an empty subtree plus a warning."""

    @pytest.mark.asyncio
    async def test_failed_top_level_is_empty(self):
        primary = FakeCatalogClient("primary", {})
        primary.fail.add(None)
        fetcher = Fetcher(CatalogContext(primary=primary))

        subtree = await fetcher.fetch_subtree(primary)

        assert subtree.nodes == []
        assert fetcher.warnings == [
            SourceWarning("primary", None, "listing failed: primary unreachable")
        ]

    @pytest.mark.asyncio
    async def test_soft_failure_warns(self):
        primary = FakeCatalogClient("primary", _wide_catalog(2))
        primary.soft_fail.add("G1")
        fetcher = Fetcher(CatalogContext(primary=primary))

        subtree = await fetcher.fetch_subtree(primary)
        groups = {g.id: g for g in subtree.groups}

        assert ids(groups["G0"].children) == ["G0/a"]
        assert list(groups["G1"].children) == []
        assert [(w.source, w.id, w.message) for w in fetcher.warnings] == [
            ("primary", "G1", "no entries returned")
        ]

    @pytest.mark.asyncio
    async def test_failures_share_caller_warning_list(self):
        warnings = []
        primary = FakeCatalogClient("primary", _wide_catalog(3))
        primary.fail.update({"G0", "G2"})

        await Fetcher(CatalogContext(primary=primary), warnings=warnings).fetch_subtree(primary)

        assert sorted(w.id for w in warnings) == ["G0", "G2"]


class TestMaxDepth:
    def test_can_descend(self):
        fetcher = Fetcher(CatalogContext(primary=FakeCatalogClient("primary", {})), max_depth=2)

        assert fetcher.can_descend(0) is True
        assert fetcher.can_descend(1) is False

    def test_unlimited_by_default(self):
        fetcher = Fetcher(CatalogContext(primary=FakeCatalogClient("primary", {})))

        assert fetcher.can_descend(1000) is True

    @pytest.mark.asyncio
    async def test_depth_one_lists_top_level_only(self):
        primary = FakeCatalogClient("primary", {None: (["A"], []), "A": ([], ["A/a"])})

        subtree = await Fetcher(CatalogContext(primary=primary), max_depth=1).fetch_subtree(primary)

        assert list(subtree.groups[0].children) == []
        assert primary.io_calls("list_group") == [("list_group", None)]


class TestSourceWarning:
    def test_str_names_source_and_id(self):
        assert str(SourceWarning("remote", "Math", "boom")) == "remote catalog: boom (Math)"
        assert str(SourceWarning("primary", None, "boom")) == "primary catalog: boom (<top level>)"
