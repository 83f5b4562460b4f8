"""Provider and decorator protocols — runtime-checkable interfaces.

Every provider method may raise ``OperationFailedError`` (or a
subclass).  ``owns`` is the exception: it is a pure predicate and must
not raise or have side effects.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection

    from .options import GetFileOptions, GetTreeOptions
    from .path import GenericFilePath
    from .permissions import GenericFilePermission
    from .service import GenericFileService
    from .types import GenericFile, GenericFileContent, GenericFileMetadata, GenericFileTree


@runtime_checkable
class GenericFileProvider(Protocol):
    """A pluggable backend serving one part of the unified namespace."""

    @property
    def name(self) -> str:
        """Display name of the provider."""
        ...

    @property
    def type(self) -> str:
        """Provider id, stamped on every file it returns."""
        ...

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def owns(self, path: GenericFilePath) -> bool: ...

    # ------------------------------------------------------------------
    # Trees
    # ------------------------------------------------------------------

    def get_tree(self, options: GetTreeOptions) -> GenericFileTree: ...

    def get_root_trees(self, options: GetTreeOptions) -> list[GenericFileTree]: ...

    def clear_tree_cache(self) -> None: ...

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def does_folder_exist(self, path: GenericFilePath) -> bool: ...

    def has_access(
        self, path: GenericFilePath, permissions: Collection[GenericFilePermission]
    ) -> bool: ...

    def get_file(self, path: GenericFilePath, options: GetFileOptions) -> GenericFile: ...

    def get_file_content(self, path: GenericFilePath, compressed: bool) -> GenericFileContent: ...

    def get_file_metadata(self, path: GenericFilePath) -> GenericFileMetadata: ...

    def get_deleted_files(self) -> list[GenericFile]: ...

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_folder(self, path: GenericFilePath) -> bool: ...

    def set_file_metadata(self, path: GenericFilePath, metadata: GenericFileMetadata) -> None: ...

    def delete_file(self, path: GenericFilePath, permanent: bool) -> None: ...

    def delete_file_permanently(self, path: GenericFilePath) -> None: ...

    def restore_file(self, path: GenericFilePath) -> None: ...

    def rename_file(self, path: GenericFilePath, new_name: str) -> bool: ...

    def copy_file(self, path: GenericFilePath, destination_folder: GenericFilePath) -> None: ...

    def move_file(self, path: GenericFilePath, destination_folder: GenericFilePath) -> None: ...


@runtime_checkable
class GenericFileDecorator(Protocol):
    """Post-processes files, trees and metadata after retrieval.

    Implementations must only raise ``OperationFailedError``; anything
    else propagates to the caller of the service.
    """

    def decorate_file(
        self, file: GenericFile, service: GenericFileService, options: GetFileOptions
    ) -> None: ...

    def decorate_file_metadata(
        self, metadata: GenericFileMetadata, path: GenericFilePath, service: GenericFileService
    ) -> None: ...

    def decorate_tree(
        self, tree: GenericFileTree, service: GenericFileService, options: GetTreeOptions
    ) -> None: ...
