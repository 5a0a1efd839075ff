"""Catalog tree node models.

Four node variants make up the unified tree. Each carries an explicit
``kind`` discriminator and a ``has_children`` capability so consumers never
need isinstance checks to render or expand a node.

Groups and archives are built eagerly by the reconciler and frozen when a
snapshot is published. Directories and files are fetched lazily and are
immutable from the start.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import ClassVar, Iterable, List, Optional, Sequence, Union

from .client import ArchiveEntry, CatalogError, FileStateSummary, GroupEntry


class Provenance(str, Enum):
    """Which source(s) report an id."""
    LOCAL = "local"         # primary only
    REMOTE = "remote"       # remote only
    BOTH = "both"           # confirmed by both listings


class NodeKind(str, Enum):
    GROUP = "group"
    ARCHIVE = "archive"
    DIRECTORY = "directory"
    FILE = "file"


class InvalidArchiveId(CatalogError, ValueError):
    """An id whose last segment (the display name) is empty."""
    pass


def display_name(archive_id: str) -> str:
    """Return the last path segment of an id, rejecting malformed ids."""
    name = archive_id.split("/")[-1] if archive_id else ""
    if not name:
        raise InvalidArchiveId(f"Invalid archive id: {archive_id!r}")
    return name


def archive_path(root: Union[str, Path], archive_id: str) -> Path:
    return Path(root).expanduser().joinpath(*archive_id.split("/"))


def find_archive_root(archive_id: str, roots: Iterable[Union[str, Path]]) -> Optional[Path]:
    """First local root that holds a directory for ``archive_id``."""
    for root in roots:
        candidate = archive_path(root, archive_id)
        if candidate.is_dir():
            return candidate
    return None


class _Freezable:
    """Rejects attribute writes once the owning snapshot is published."""

    _frozen: ClassVar[bool] = False

    def __setattr__(self, name, value):
        if self._frozen:
            raise AttributeError(f"{type(self).__name__} {getattr(self, 'id', '')!r} is frozen")
        super().__setattr__(name, value)

    def freeze(self) -> None:
        object.__setattr__(self, "_frozen", True)

    @property
    def frozen(self) -> bool:
        return self._frozen


@dataclass(eq=False)
class GroupNode(_Freezable):
    """Interior catalog node."""
    id: str
    provenance: Provenance
    children: Sequence["TreeNode"] = field(default_factory=list)
    downloadable: bool = False
    summary: Optional[FileStateSummary] = None

    kind: ClassVar[NodeKind] = NodeKind.GROUP
    has_children: ClassVar[bool] = True

    def __post_init__(self):
        display_name(self.id)
        if isinstance(self.provenance, str):
            self.provenance = Provenance(self.provenance)
        if self.provenance is Provenance.REMOTE:
            self.downloadable = True

    @property
    def name(self) -> str:
        return display_name(self.id)

    @classmethod
    def from_entry(cls, entry: GroupEntry, provenance: Provenance) -> "GroupNode":
        return cls(id=entry.id, provenance=provenance, summary=entry.summary)

    def update(self) -> None:
        """Recompute ``downloadable`` after the children were merged.

        Only ever switches the flag on.
        """
        if self.provenance is Provenance.BOTH and any(c.downloadable for c in self.children):
            self.downloadable = True

    def freeze(self) -> None:
        if not isinstance(self.children, tuple):
            self.children = tuple(self.children)
        super().freeze()


@dataclass(eq=False)
class ArchiveNode(_Freezable):
    """Leaf unit of installable content."""
    id: str
    local: bool
    downloadable: bool = False
    summary: Optional[FileStateSummary] = None
    git: Optional[str] = None
    resource_path: Optional[Path] = None

    kind: ClassVar[NodeKind] = NodeKind.ARCHIVE
    has_children: ClassVar[bool] = True

    def __post_init__(self):
        display_name(self.id)

    @property
    def name(self) -> str:
        return display_name(self.id)

    @property
    def provenance(self) -> Provenance:
        # an archive found in both sources is represented by the local node
        return Provenance.LOCAL if self.local else Provenance.REMOTE

    @classmethod
    def from_entry(
        cls,
        entry: ArchiveEntry,
        local: bool,
        downloadable: bool,
        roots: Sequence[Union[str, Path]] = (),
    ) -> "ArchiveNode":
        node = cls(
            id=entry.id,
            local=local,
            downloadable=downloadable,
            summary=entry.summary,
            git=entry.git,
        )
        if local and roots:
            node.resource_path = find_archive_root(entry.id, roots)
        return node

    def source_path(self, rel_path: str) -> Optional[Path]:
        """On-disk location of a directory or file of this archive."""
        if self.resource_path is None:
            return None
        return self.resource_path.joinpath("source", *PurePosixPath(rel_path).parts)


@dataclass(frozen=True)
class DirNode:
    archive_id: str
    rel_path: str
    summary: Optional[FileStateSummary] = None
    resource_path: Optional[Path] = None

    kind: ClassVar[NodeKind] = NodeKind.DIRECTORY
    has_children: ClassVar[bool] = True

    def __post_init__(self):
        display_name(self.rel_path)

    @property
    def id(self) -> str:
        return f"[{self.archive_id}]{self.rel_path}"

    @property
    def name(self) -> str:
        return display_name(self.rel_path)


@dataclass(frozen=True)
class FileNode:
    archive_id: str
    rel_path: str
    format: str = ""
    resource_path: Optional[Path] = None

    kind: ClassVar[NodeKind] = NodeKind.FILE
    has_children: ClassVar[bool] = False

    @property
    def id(self) -> str:
        return f"[{self.archive_id}]{self.rel_path}"

    @property
    def name(self) -> str:
        return PurePosixPath(self.rel_path).name


TreeNode = Union[GroupNode, ArchiveNode]
CatalogNode = Union[GroupNode, ArchiveNode, DirNode, FileNode]


def sort_key(node: CatalogNode):
    """Stable display order: groups and directories first, then by name."""
    return (node.kind not in (NodeKind.GROUP, NodeKind.DIRECTORY), node.name.lower(), node.id)


def sorted_nodes(nodes: Iterable[CatalogNode]) -> List[CatalogNode]:
    return sorted(nodes, key=sort_key)
