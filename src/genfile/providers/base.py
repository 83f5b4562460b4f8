"""BaseGenericFileProvider — shared tree building, caching and zip packing.

Subclasses supply the storage: ``root_path``, ``_load_file`` and
``_load_children``, plus the single-path operations of the provider
protocol.  Trees are cached per ``GetTreeOptions`` value and the cache is
dropped on every mutation.
"""

from __future__ import annotations

import copy
import io
import logging
import mimetypes
import threading
import zipfile
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import TYPE_CHECKING

from ..exceptions import NotFoundError
from ..options import TreeFilter
from ..types import GenericFileContent, GenericFileTree

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..options import GetTreeOptions
    from ..path import GenericFilePath
    from ..types import GenericFile

logger = logging.getLogger(__name__)

ZIP_MIME_TYPE = "application/zip"


class BaseGenericFileProvider(ABC):
    """Common provider behaviour.  Not a complete provider on its own."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._tree_cache: dict[GetTreeOptions, GenericFileTree] = {}
        self._tree_cache_lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    @abstractmethod
    def type(self) -> str: ...

    @property
    @abstractmethod
    def root_path(self) -> GenericFilePath:
        """The namespace root this provider serves."""

    def owns(self, path: GenericFilePath) -> bool:
        return path.first_segment == self.root_path.first_segment

    def _check_owned(self, path: GenericFilePath) -> None:
        if not self.owns(path):
            raise NotFoundError(f"Path not found '{path}'.", path)

    # ------------------------------------------------------------------
    # Storage hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _load_file(self, path: GenericFilePath, include_metadata: bool) -> GenericFile:
        """Build the entity at *path*, or raise ``NotFoundError``."""

    @abstractmethod
    def _load_children(self, path: GenericFilePath, include_metadata: bool) -> list[GenericFile]:
        """Build the live children of the folder at *path*, sorted by name."""

    def _is_hidden(self, file: GenericFile) -> bool:
        return file.name.startswith(".")

    # ------------------------------------------------------------------
    # Trees
    # ------------------------------------------------------------------

    def get_tree(self, options: GetTreeOptions) -> GenericFileTree:
        base_path = options.base_path or self.root_path
        if not self.owns(base_path):
            raise NotFoundError(f"Base path not found '{base_path}'.", base_path)

        with self._tree_cache_lock:
            cached = self._tree_cache.get(options)

        if cached is None:
            logger.debug("Building tree for %s (%r)", base_path, options)
            file = self._load_file(base_path, options.include_metadata)
            cached = self._build_tree(file, base_path, 0, options)
            with self._tree_cache_lock:
                self._tree_cache[options] = cached

        # Callers decorate in place; the cached copy must stay pristine.
        return copy.deepcopy(cached)

    def get_root_trees(self, options: GetTreeOptions) -> list[GenericFileTree]:
        return [self.get_tree(replace(options, base_path=None))]

    def clear_tree_cache(self) -> None:
        with self._tree_cache_lock:
            self._tree_cache.clear()
        logger.debug("Cleared tree cache of provider %r", self._name)

    def _build_tree(
        self,
        file: GenericFile,
        path: GenericFilePath,
        depth: int,
        options: GetTreeOptions,
    ) -> GenericFileTree:
        tree = GenericFileTree(file)
        if not file.is_folder or not self._should_expand(path, depth, options):
            return tree

        tree.children = []
        for child in self._load_children(path, options.include_metadata):
            if not self._accepts(child, options):
                continue
            tree.add_child(self._build_tree(child, path.child(child.name), depth + 1, options))
        return tree

    def _should_expand(self, path: GenericFilePath, depth: int, options: GetTreeOptions) -> bool:
        if options.max_depth is None or depth < options.max_depth:
            return True
        expanded = options.expanded_path
        return expanded is not None and (path == expanded or path.is_ancestor_of(expanded))

    def _accepts(self, file: GenericFile, options: GetTreeOptions) -> bool:
        if not options.include_hidden and self._is_hidden(file):
            return False
        if options.filter is TreeFilter.FOLDERS:
            return file.is_folder
        if options.filter is TreeFilter.FILES:
            return not file.is_folder
        return True

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def get_deleted_files(self) -> list[GenericFile]:
        return []

    def get_file_content_compressed(self, path: GenericFilePath) -> GenericFileContent:
        return self.get_file_content(path, True)

    @abstractmethod
    def get_file_content(self, path: GenericFilePath, compressed: bool) -> GenericFileContent: ...

    # ------------------------------------------------------------------
    # Zip packing
    # ------------------------------------------------------------------

    @staticmethod
    def _zip_content(name: str, entries: Iterable[tuple[str, bytes | None]]) -> GenericFileContent:
        """Pack ``(arcname, data)`` pairs into a zip; ``None`` data is a folder."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for arcname, data in entries:
                if data is None:
                    archive.writestr(arcname.rstrip("/") + "/", b"")
                else:
                    archive.writestr(arcname, data)
        buffer.seek(0)
        return GenericFileContent(stream=buffer, file_name=f"{name}.zip", mime_type=ZIP_MIME_TYPE)


def guess_mime_type(filename: str) -> str:
    """Guess the MIME type of a file based on its name."""
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "text/plain"
