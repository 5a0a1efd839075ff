"""Catalog Module for archivehub.

Unifies a primary (installed) and a remote (upstream) archive catalog into
one tree. This module handles:
- Querying catalog backends
- Fetching and merging both hierarchies with provenance tags
- Publishing immutable tree snapshots
- Planning installs with their dependency closure
"""

from .client import (
    ArchiveEntry,
    CatalogClient,
    CatalogError,
    DirEntry,
    FileEntry,
    FileStateSummary,
    GroupEntry,
    HTTPCatalogClient,
)
from .fetcher import Fetcher, SourceWarning, Subtree
from .nodes import (
    ArchiveNode,
    DirNode,
    FileNode,
    GroupNode,
    InvalidArchiveId,
    NodeKind,
    Provenance,
)
from .planner import InstallError, InstallPlanner, InstallRequest, flatten
from .reconciler import MergeResult, Reconciler
from .snapshot import CatalogSnapshot
from .tree import CatalogTree, TreeEvent

__all__ = [
    "ArchiveEntry",
    "ArchiveNode",
    "CatalogClient",
    "CatalogError",
    "CatalogSnapshot",
    "CatalogTree",
    "DirEntry",
    "DirNode",
    "Fetcher",
    "FileEntry",
    "FileNode",
    "FileStateSummary",
    "GroupEntry",
    "GroupNode",
    "HTTPCatalogClient",
    "InstallError",
    "InstallPlanner",
    "InstallRequest",
    "InvalidArchiveId",
    "MergeResult",
    "NodeKind",
    "Provenance",
    "Reconciler",
    "SourceWarning",
    "Subtree",
    "TreeEvent",
    "flatten",
]
