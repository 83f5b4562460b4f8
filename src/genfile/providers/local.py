"""LocalFileProvider — a host directory mounted under ``<scheme>://``."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from ..exceptions import (
    AccessDeniedError,
    ConflictError,
    InvalidPathError,
    NotFoundError,
    OperationFailedError,
    PathAlreadyExistsError,
)
from ..path import GenericFilePath, validate_name
from ..permissions import READ_ONLY_PERMISSIONS, GenericFilePermission
from ..types import GenericFile, GenericFileContent, GenericFileMetadata, GenericFolder
from .base import BaseGenericFileProvider, guess_mime_type

if TYPE_CHECKING:
    from collections.abc import Collection

    from ..options import GetFileOptions

logger = logging.getLogger(__name__)

TYPE = "local"


class LocalFileProvider(BaseGenericFileProvider):
    """Direct access to a host directory.  No trash, no versioning.

    Security: ``_resolve_path`` keeps every path inside ``host_dir`` and
    rejects symlinks.

    Deletes are always permanent.  Metadata lives in memory for the
    lifetime of the provider.
    """

    def __init__(
        self,
        host_dir: Path | str,
        *,
        scheme: str = "local",
        name: str = "",
        read_only: bool = False,
    ) -> None:
        super().__init__(name or scheme)
        self.host_dir = Path(host_dir).resolve()
        self._root = GenericFilePath((f"{scheme}://",))
        self._read_only = read_only
        self._metadata: dict[GenericFilePath, dict[str, str]] = {}
        self._metadata_lock = threading.Lock()

        if not self.host_dir.exists():
            raise FileNotFoundError(f"Host directory does not exist: {self.host_dir}")
        if not self.host_dir.is_dir():
            raise NotADirectoryError(f"Host path is not a directory: {self.host_dir}")

    @property
    def type(self) -> str:
        return TYPE

    @property
    def root_path(self) -> GenericFilePath:
        return self._root

    @property
    def read_only(self) -> bool:
        return self._read_only

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def _resolve_path(self, path: GenericFilePath) -> Path:
        """Resolve a namespace path to a physical path on disk.

        Validates that the resolved path stays within host_dir and that
        no component is a symlink.
        """
        self._check_owned(path)
        rel = path.segments[1:]
        if not rel:
            return self.host_dir

        current = self.host_dir
        for part in rel:
            current = current / part
            if current.is_symlink():
                raise AccessDeniedError(
                    f"Symlinks not allowed: {path} contains symlink at "
                    f"{current.relative_to(self.host_dir)}",
                    path,
                )

        resolved = current.resolve()
        try:
            resolved.relative_to(self.host_dir)
        except ValueError:
            raise AccessDeniedError(f"Path escapes host directory: {path}", path) from None
        return resolved

    def _require_existing(self, path: GenericFilePath) -> Path:
        resolved = self._resolve_path(path)
        if not resolved.exists():
            raise NotFoundError(f"Path not found '{path}'.", path)
        return resolved

    def _check_writable(self, path: GenericFilePath) -> None:
        if self._read_only:
            raise AccessDeniedError(f"Cannot write to read-only path '{path}'.", path)

    @staticmethod
    def _check_not_root(path: GenericFilePath) -> None:
        if path.is_root:
            raise AccessDeniedError("The provider root cannot be modified.", path)

    # =========================================================================
    # Conversion
    # =========================================================================

    def _to_file(self, path: GenericFilePath, resolved: Path, include_metadata: bool) -> GenericFile:
        try:
            st = resolved.stat()
        except FileNotFoundError as e:
            raise NotFoundError(f"Path not found '{path}'.", path) from e
        except OSError as e:
            raise OperationFailedError(f"Cannot access file: {e}") from e

        is_root = path.is_root
        editable = not self._read_only and not is_root
        parent = path.parent
        name = path.first_segment if is_root else path.last_segment
        metadata = self._metadata_of(path) if include_metadata else None
        created = datetime.fromtimestamp(st.st_ctime, tz=UTC)
        modified = datetime.fromtimestamp(st.st_mtime, tz=UTC)

        if resolved.is_dir():
            try:
                has_children = any(resolved.iterdir())
            except OSError:
                has_children = False
            return GenericFolder(
                provider=TYPE,
                name=name,
                path=str(path),
                parent_path=str(parent) if parent is not None else None,
                title=self.name if is_root else name,
                created_date=created,
                modified_date=modified,
                can_edit=editable,
                can_delete=editable,
                metadata=metadata,
                has_children=has_children,
                can_add_children=not self._read_only,
            )

        return GenericFile(
            provider=TYPE,
            name=name,
            path=str(path),
            parent_path=str(parent) if parent is not None else None,
            title=name,
            created_date=created,
            modified_date=modified,
            file_size=st.st_size,
            can_edit=editable,
            can_delete=editable,
            metadata=metadata,
        )

    def _metadata_of(self, path: GenericFilePath) -> GenericFileMetadata:
        with self._metadata_lock:
            return GenericFileMetadata(dict(self._metadata.get(path, {})))

    def _move_metadata(self, source: GenericFilePath, target: GenericFilePath) -> None:
        with self._metadata_lock:
            for key in list(self._metadata):
                if key == source or source.is_ancestor_of(key):
                    moved = GenericFilePath((*target.segments, *key.relative_to(source)))
                    self._metadata[moved] = self._metadata.pop(key)

    def _drop_metadata(self, path: GenericFilePath) -> None:
        with self._metadata_lock:
            for key in list(self._metadata):
                if key == path or path.is_ancestor_of(key):
                    del self._metadata[key]

    # =========================================================================
    # Storage hooks
    # =========================================================================

    def _load_file(self, path: GenericFilePath, include_metadata: bool) -> GenericFile:
        return self._to_file(path, self._resolve_path(path), include_metadata)

    def _load_children(self, path: GenericFilePath, include_metadata: bool) -> list[GenericFile]:
        resolved = self._resolve_path(path)
        try:
            entries = sorted(resolved.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise OperationFailedError(f"Cannot list directory: {e}") from e

        children: list[GenericFile] = []
        for entry in entries:
            if entry.is_symlink():
                continue
            try:
                child_path = path.child(entry.name)
            except InvalidPathError:
                logger.debug("Skipping unrepresentable name %r in %s", entry.name, path)
                continue
            children.append(self._to_file(child_path, entry, include_metadata))
        return children

    # =========================================================================
    # Read Operations
    # =========================================================================

    def does_folder_exist(self, path: GenericFilePath) -> bool:
        try:
            return self._resolve_path(path).is_dir()
        except AccessDeniedError:
            return False

    def has_access(
        self, path: GenericFilePath, permissions: Collection[GenericFilePermission]
    ) -> bool:
        try:
            resolved = self._resolve_path(path)
        except AccessDeniedError:
            return False
        if not resolved.exists():
            return False
        if READ_ONLY_PERMISSIONS.issuperset(permissions):
            return True
        return not self._read_only

    def get_file(self, path: GenericFilePath, options: GetFileOptions) -> GenericFile:
        return self._load_file(path, options.include_metadata)

    def get_file_content(self, path: GenericFilePath, compressed: bool) -> GenericFileContent:
        resolved = self._require_existing(path)
        top = resolved.name if not path.is_root else self.name

        try:
            if resolved.is_dir():
                entries: list[tuple[str, bytes | None]] = [(top, None)]
                for item in sorted(resolved.rglob("*")):
                    if item.is_symlink():
                        continue
                    arcname = f"{top}/{item.relative_to(resolved).as_posix()}"
                    entries.append((arcname, None if item.is_dir() else item.read_bytes()))
                return self._zip_content(top, entries)

            if compressed:
                return self._zip_content(top, [(top, resolved.read_bytes())])

            return GenericFileContent(
                stream=resolved.open("rb"),
                file_name=resolved.name,
                mime_type=guess_mime_type(resolved.name),
            )
        except OSError as e:
            raise OperationFailedError(f"Cannot read file: {e}") from e

    def get_file_metadata(self, path: GenericFilePath) -> GenericFileMetadata:
        self._require_existing(path)
        return self._metadata_of(path)

    # =========================================================================
    # Write Operations
    # =========================================================================

    def set_file_metadata(self, path: GenericFilePath, metadata: GenericFileMetadata) -> None:
        self._check_writable(path)
        self._require_existing(path)
        with self._metadata_lock:
            self._metadata[path] = dict(metadata.metadata)
        self.clear_tree_cache()

    def create_folder(self, path: GenericFilePath) -> bool:
        self._check_writable(path)
        resolved = self._resolve_path(path)
        if resolved.is_dir():
            return False

        current = self.host_dir
        for part in path.segments[1:]:
            current = current / part
            if current.exists() and not current.is_dir():
                raise ConflictError(f"Cannot create folder '{path}': '{part}' is a file.")

        try:
            resolved.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OperationFailedError(f"Failed to create directory: {e}") from e

        self.clear_tree_cache()
        return True

    def write_file(
        self,
        path: GenericFilePath,
        content: bytes,
        *,
        overwrite: bool = False,
    ) -> None:
        """Write content to a file on disk. Atomic via tempfile + replace."""
        self._check_writable(path)
        self._check_not_root(path)
        resolved = self._resolve_path(path)
        if resolved.is_dir():
            raise ConflictError(f"Cannot write file '{path}': it is a folder.")
        if resolved.exists() and not overwrite:
            raise PathAlreadyExistsError(f"File already exists '{path}'.")

        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(resolved.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content)
                Path(tmp_path).replace(resolved)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise OperationFailedError(f"Failed to write file: {e}") from e

        self.clear_tree_cache()

    def delete_file(self, path: GenericFilePath, permanent: bool) -> None:
        self._check_writable(path)
        self._check_not_root(path)
        resolved = self._require_existing(path)

        try:
            if resolved.is_dir():
                shutil.rmtree(resolved)
            else:
                resolved.unlink()
        except OSError as e:
            raise OperationFailedError(f"Failed to delete: {e}") from e

        logger.debug("Deleted %s from %s", path, self.host_dir)
        self._drop_metadata(path)
        self.clear_tree_cache()

    def delete_file_permanently(self, path: GenericFilePath) -> None:
        raise NotFoundError("The path does not correspond to a deleted file.", path)

    def restore_file(self, path: GenericFilePath) -> None:
        raise NotFoundError("The path does not correspond to a deleted file.", path)

    def rename_file(self, path: GenericFilePath, new_name: str) -> bool:
        self._check_writable(path)
        self._check_not_root(path)
        validate_name(new_name)
        resolved = self._require_existing(path)
        target = path.parent.child(new_name)  # type: ignore[union-attr]
        if target == path:
            return True

        target_resolved = self._resolve_path(target)
        if target_resolved.exists():
            raise PathAlreadyExistsError(f"Path already exists '{target}'.")

        try:
            resolved.rename(target_resolved)
        except OSError as e:
            raise OperationFailedError(f"Failed to rename: {e}") from e

        self._move_metadata(path, target)
        self.clear_tree_cache()
        return True

    def _prepare_transfer(
        self, path: GenericFilePath, destination_folder: GenericFilePath, action: str
    ) -> tuple[Path, GenericFilePath, Path]:
        self._check_writable(destination_folder)
        source = self._require_existing(path)
        destination = self._require_existing(destination_folder)
        if not destination.is_dir():
            raise ConflictError(f"Destination is not a folder '{destination_folder}'.")
        if source.is_dir() and (path == destination_folder or path.is_ancestor_of(destination_folder)):
            raise ConflictError(f"Cannot {action} folder '{path}' into itself.")
        target = destination_folder.child(path.last_segment)
        return source, target, self._resolve_path(target)

    def copy_file(self, path: GenericFilePath, destination_folder: GenericFilePath) -> None:
        source, target, target_resolved = self._prepare_transfer(path, destination_folder, "copy")
        if target_resolved.exists():
            raise PathAlreadyExistsError(f"Path already exists '{target}'.")

        try:
            if source.is_dir():
                shutil.copytree(source, target_resolved, symlinks=True)
            else:
                shutil.copy2(source, target_resolved)
        except OSError as e:
            raise OperationFailedError(f"Failed to copy: {e}") from e

        self.clear_tree_cache()

    def move_file(self, path: GenericFilePath, destination_folder: GenericFilePath) -> None:
        self._check_writable(path)
        self._check_not_root(path)
        source, target, target_resolved = self._prepare_transfer(path, destination_folder, "move")
        if target == path:
            return
        if target_resolved.exists():
            raise PathAlreadyExistsError(f"Path already exists '{target}'.")

        try:
            shutil.move(str(source), str(target_resolved))
        except OSError as e:
            raise OperationFailedError(f"Failed to move: {e}") from e

        self._move_metadata(path, target)
        self.clear_tree_cache()
