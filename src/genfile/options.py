"""Request options for file and tree retrieval."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .path import GenericFilePath


class TreeFilter(str, Enum):
    """Which children a tree request keeps at every level."""

    ALL = "all"
    FOLDERS = "folders"
    FILES = "files"


@dataclass(frozen=True)
class GetFileOptions:
    """Options for fetching a single file."""

    include_metadata: bool = False
    """Attach and decorate the file's metadata."""


@dataclass(frozen=True)
class GetTreeOptions:
    """Options for fetching a file tree.

    Frozen and hashable, so providers can key tree caches on it.
    """

    include_metadata: bool = False
    """Attach and decorate metadata on every node."""

    base_path: GenericFilePath | None = None
    """Root of the requested tree.  ``None`` means the whole namespace."""

    max_depth: int | None = None
    """Levels of children to expand.  ``0`` returns the base node only."""

    expanded_path: GenericFilePath | None = None
    """Folders on the way to this path are expanded beyond ``max_depth``."""

    filter: TreeFilter = TreeFilter.ALL

    include_hidden: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.base_path, str):
            object.__setattr__(self, "base_path", GenericFilePath.parse(self.base_path))
        if isinstance(self.expanded_path, str):
            object.__setattr__(self, "expanded_path", GenericFilePath.parse(self.expanded_path))
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
