"""GenericFileService — routes requests over an ordered list of providers.

Path-targeted operations go to the first provider that owns the path.
Collection operations (root trees, deleted files) fan out to every
provider and succeed if at least one provider does.  Results that the
caller reads are passed through the configured decorator before they
are returned.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from .decorators import NullGenericFileDecorator
from .exceptions import (
    BatchOperationFailedError,
    InvalidProviderConfigurationError,
    NotFoundError,
    OperationFailedError,
    UnsupportedOperationError,
)
from .options import GetFileOptions, GetTreeOptions
from .path import GenericFilePath
from .types import GenericFileTree, GenericFolder

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable, Sequence

    from .permissions import GenericFilePermission
    from .protocol import GenericFileDecorator, GenericFileProvider
    from .types import GenericFile, GenericFileContent, GenericFileMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

MULTIPLE_PROVIDER_ROOT_PROVIDER = "combined"
MULTIPLE_PROVIDER_ROOT_NAME = "root"


def _as_path(path: GenericFilePath | str) -> GenericFilePath:
    if isinstance(path, GenericFilePath):
        return path
    return GenericFilePath.parse_required(path)


class GenericFileService:
    """Unified file service over one or more providers.

    Usage::

        service = GenericFileService([repo_provider, local_provider])
        tree = service.get_tree(GetTreeOptions(max_depth=1))
        service.delete_files(["/public/a.txt", "local://b.txt"])
    """

    def __init__(
        self,
        providers: Sequence[GenericFileProvider],
        decorator: GenericFileDecorator | None = None,
    ) -> None:
        if not providers:
            raise InvalidProviderConfigurationError()
        self._providers: tuple[GenericFileProvider, ...] = tuple(providers)
        self._decorator: GenericFileDecorator = decorator or NullGenericFileDecorator()

    @property
    def providers(self) -> tuple[GenericFileProvider, ...]:
        return self._providers

    @property
    def decorator(self) -> GenericFileDecorator:
        return self._decorator

    @property
    def is_single_provider_mode(self) -> bool:
        return len(self._providers) == 1

    def close(self) -> None:
        """Close every provider that holds resources."""
        for provider in self._providers:
            close = getattr(provider, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception:
                logger.warning("Failed to close provider %r", provider.name, exc_info=True)

    def __enter__(self) -> GenericFileService:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # =========================================================================
    # Routing
    # =========================================================================

    def find_owner(self, path: GenericFilePath | str) -> GenericFileProvider | None:
        """First provider, in configuration order, that owns *path*."""
        path = _as_path(path)
        for provider in self._providers:
            if provider.owns(path):
                return provider
        return None

    def _require_owner(self, path: GenericFilePath) -> GenericFileProvider:
        provider = self.find_owner(path)
        if provider is None:
            raise NotFoundError(f"Path not found '{path}'.", path)
        return provider

    def _is_different_provider(
        self, path: GenericFilePath, destination_folder: GenericFilePath
    ) -> bool:
        return self._require_owner(path) != self._require_owner(destination_folder)

    def _collect(self, call: Callable[[GenericFileProvider], T], action: str) -> list[T]:
        """Call every provider; tolerate failures as long as one succeeds."""
        results: list[T] = []
        first_error: OperationFailedError | None = None
        any_success = False

        for provider in self._providers:
            try:
                results.append(call(provider))
            except OperationFailedError as e:
                logger.error(
                    "Error %s from provider %r", action, provider.name, exc_info=True
                )
                if first_error is None:
                    first_error = e
            else:
                any_success = True

        if not any_success and first_error is not None:
            raise first_error
        return results

    # =========================================================================
    # Trees
    # =========================================================================

    def get_tree(self, options: GetTreeOptions | None = None) -> GenericFileTree:
        """Get a file tree.

        With a single provider the request is delegated as is.  With
        several providers and no ``base_path``, the tree of every
        provider is grouped under a synthetic ``"combined"`` root folder.
        """
        options = options or GetTreeOptions()

        if self.is_single_provider_mode:
            tree = self._providers[0].get_tree(options)
        elif options.base_path is None:
            tree = self._get_combined_tree(options)
        else:
            tree = self._require_owner(options.base_path).get_tree(options)

        self._decorator.decorate_tree(tree, self, options)
        return tree

    def _get_combined_tree(self, options: GetTreeOptions) -> GenericFileTree:
        # Decoration of the whole tree happens once, in get_tree.
        children = self._collect(
            lambda provider: provider.get_tree(options), "getting tree from root"
        )
        root = GenericFolder(
            name=MULTIPLE_PROVIDER_ROOT_NAME,
            provider=MULTIPLE_PROVIDER_ROOT_PROVIDER,
            path=None,
            has_children=bool(children),
        )
        tree = GenericFileTree(root, [])
        for child in children:
            tree.add_child(child)
        return tree

    def get_root_trees(self, options: GetTreeOptions | None = None) -> list[GenericFileTree]:
        """Root trees of all providers, flattened in provider order."""
        options = options or GetTreeOptions()
        trees: list[GenericFileTree] = []
        for provider_trees in self._collect(
            lambda provider: provider.get_root_trees(options), "getting root trees"
        ):
            trees.extend(provider_trees)

        for tree in trees:
            self._decorator.decorate_tree(tree, self, options)
        return trees

    def clear_tree_cache(self) -> None:
        for provider in self._providers:
            try:
                provider.clear_tree_cache()
            except OperationFailedError:
                logger.error(
                    "Error clearing tree cache of provider %r", provider.name, exc_info=True
                )

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_deleted_files(self) -> list[GenericFile]:
        """Deleted files of all providers, in provider order."""
        files: list[GenericFile] = []
        for provider_files in self._collect(
            lambda provider: provider.get_deleted_files(), "getting deleted files"
        ):
            files.extend(provider_files)
        return files

    def does_folder_exist(self, path: GenericFilePath | str) -> bool:
        path = _as_path(path)
        provider = self.find_owner(path)
        return provider is not None and provider.does_folder_exist(path)

    def has_access(
        self,
        path: GenericFilePath | str,
        permissions: Collection[GenericFilePermission],
    ) -> bool:
        """Whether the current user holds all *permissions* on *path*.

        A path no provider owns is reported as inaccessible, not as an error.
        """
        path = _as_path(path)
        provider = self.find_owner(path)
        return provider is not None and provider.has_access(path, permissions)

    def get_file(
        self, path: GenericFilePath | str, options: GetFileOptions | None = None
    ) -> GenericFile:
        path = _as_path(path)
        options = options or GetFileOptions()
        file = self._require_owner(path).get_file(path, options)
        self._decorator.decorate_file(file, self, options)
        return file

    def get_file_content(
        self, path: GenericFilePath | str, compressed: bool = False
    ) -> GenericFileContent:
        path = _as_path(path)
        return self._require_owner(path).get_file_content(path, compressed)

    def get_file_content_compressed(self, path: GenericFilePath | str) -> GenericFileContent:
        return self.get_file_content(path, compressed=True)

    def get_file_metadata(self, path: GenericFilePath | str) -> GenericFileMetadata:
        path = _as_path(path)
        metadata = self._require_owner(path).get_file_metadata(path)
        self._decorator.decorate_file_metadata(metadata, path, self)
        return metadata

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create_folder(self, path: GenericFilePath | str) -> bool:
        path = _as_path(path)
        return self._require_owner(path).create_folder(path)

    def set_file_metadata(
        self, path: GenericFilePath | str, metadata: GenericFileMetadata
    ) -> None:
        path = _as_path(path)
        self._require_owner(path).set_file_metadata(path, metadata)

    def rename_file(self, path: GenericFilePath | str, new_name: str) -> bool:
        path = _as_path(path)
        return self._require_owner(path).rename_file(path, new_name)

    def delete_file(self, path: GenericFilePath | str, permanent: bool = False) -> None:
        path = _as_path(path)
        self._require_owner(path).delete_file(path, permanent)

    def delete_file_permanently(self, path: GenericFilePath | str) -> None:
        path = _as_path(path)
        self._require_owner(path).delete_file_permanently(path)

    def restore_file(self, path: GenericFilePath | str) -> None:
        path = _as_path(path)
        self._require_owner(path).restore_file(path)

    def copy_file(
        self, path: GenericFilePath | str, destination_folder: GenericFilePath | str
    ) -> None:
        path = _as_path(path)
        destination_folder = _as_path(destination_folder)
        if self._is_different_provider(path, destination_folder):
            raise UnsupportedOperationError("Cannot copy files to different providers.")
        self._require_owner(path).copy_file(path, destination_folder)

    def move_file(
        self, path: GenericFilePath | str, destination_folder: GenericFilePath | str
    ) -> None:
        path = _as_path(path)
        destination_folder = _as_path(destination_folder)
        if self._is_different_provider(path, destination_folder):
            raise UnsupportedOperationError("Cannot move files to different providers.")
        self._require_owner(path).move_file(path, destination_folder)

    # =========================================================================
    # Batch Operations
    # =========================================================================

    def _run_batch(
        self,
        paths: Iterable[GenericFilePath | str],
        operation: Callable[[GenericFilePath], Any],
        message: str,
    ) -> None:
        """Apply *operation* to every path, then report all failures at once."""
        batch_error: BatchOperationFailedError | None = None

        for raw_path in paths:
            key: GenericFilePath | str = raw_path
            try:
                path = _as_path(raw_path)
                key = path
                operation(path)
            except OperationFailedError as e:
                logger.debug("Batch item %s failed: %s", key, e)
                if batch_error is None:
                    batch_error = BatchOperationFailedError(message)
                batch_error.add_failed_path(key, e)

        if batch_error is not None:
            raise batch_error

    def delete_files(
        self, paths: Iterable[GenericFilePath | str], permanent: bool = False
    ) -> None:
        self._run_batch(
            paths,
            lambda path: self.delete_file(path, permanent),
            "Error deleting files.",
        )

    def delete_files_permanently(self, paths: Iterable[GenericFilePath | str]) -> None:
        self._run_batch(
            paths, self.delete_file_permanently, "Error deleting files permanently."
        )

    def restore_files(self, paths: Iterable[GenericFilePath | str]) -> None:
        self._run_batch(paths, self.restore_file, "Error restoring files.")

    def copy_files(
        self,
        paths: Iterable[GenericFilePath | str],
        destination_folder: GenericFilePath | str,
    ) -> None:
        destination = _as_path(destination_folder)
        self._run_batch(
            paths,
            lambda path: self.copy_file(path, destination),
            "Error copying files.",
        )

    def move_files(
        self,
        paths: Iterable[GenericFilePath | str],
        destination_folder: GenericFilePath | str,
    ) -> None:
        destination = _as_path(destination_folder)
        self._run_batch(
            paths,
            lambda path: self.move_file(path, destination),
            "Error moving files.",
        )
