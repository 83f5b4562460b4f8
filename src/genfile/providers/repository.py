"""RepositoryFileProvider — a content repository stored in SQL tables.

Serves the slash-rooted namespace (``/``).  Deleting without
``permanent`` moves an entry and its descendants to the trash namespace
``/.trash/pho:<id><original path>``, where ``<id>`` is the id of the
entry the delete was requested for.  Restore and permanent delete of a
trashed entry take any path below ``/.trash/pho:<id>``.
"""

from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, col, create_engine, select

from ..exceptions import (
    AccessDeniedError,
    ConflictError,
    InvalidPathError,
    NotFoundError,
    OperationFailedError,
    PathAlreadyExistsError,
)
from ..models import RepositoryEntry, RepositoryEntryMetadata
from ..path import ROOT_SEGMENT, GenericFilePath, validate_name
from ..permissions import READ_ONLY_PERMISSIONS, GenericFilePermission
from ..types import GenericFile, GenericFileContent, GenericFileMetadata, GenericFolder
from .base import BaseGenericFileProvider, guess_mime_type

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator

    from sqlalchemy.engine import Engine

    from ..options import GetFileOptions

logger = logging.getLogger(__name__)

TYPE = "repository"
ROOT_PATH = GenericFilePath((ROOT_SEGMENT,))
TRASH_FOLDER_NAME = ".trash"
TRASH_ID_PREFIX = "pho:"

# ---------------------------------------------------------------------------
# Repository entities
# ---------------------------------------------------------------------------


@dataclass
class RepositoryObject:
    """Fields shared by repository files and folders."""

    object_id: str | None = None
    extension: str | None = None
    repository: str | None = None
    hidden: bool = False
    schedulable: bool = False


@dataclass
class RepositoryFile(GenericFile, RepositoryObject):
    pass


@dataclass
class RepositoryFolder(GenericFolder, RepositoryObject):
    pass


def _trash_path(entry_id: str, original_path: str) -> str:
    return f"/{TRASH_FOLDER_NAME}/{TRASH_ID_PREFIX}{entry_id}{original_path}"


def _parent_of(path: str) -> str | None:
    parent = GenericFilePath.parse_required(path).parent
    return str(parent) if parent is not None else None


def get_trash_file_id(path: GenericFilePath) -> str:
    """Extract the deleted entry id from a trash path.

    The id is whatever follows the first ``:`` of the segment after
    ``.trash``.
    """
    is_trash = False
    segments = path.segments
    for index, segment in enumerate(segments[:-1]):
        if segment == TRASH_FOLDER_NAME:
            is_trash = True
            _, sep, file_id = segments[index + 1].partition(":")
            if sep:
                return file_id

    if is_trash:
        raise InvalidPathError("File ID not found in the path.")
    raise NotFoundError("The path does not correspond to a deleted file.", path)


class RepositoryFileProvider(BaseGenericFileProvider):
    """Repository provider on SQLModel tables.

    Writes other than to the repository root require the configured
    *user* to own the entry, or the entry to have no owner.  With no
    user configured every entry may be modified.

    Usage::

        provider = RepositoryFileProvider.from_url("sqlite:///repo.db", user="admin")
        provider.create_folder(GenericFilePath.parse_required("/public/reports"))
    """

    def __init__(
        self,
        engine: Engine,
        *,
        name: str = "Repository",
        user: str | None = None,
    ) -> None:
        super().__init__(name)
        self._engine = engine
        self._user = user
        self._owns_engine = False

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RepositoryFileProvider:
        """Create a provider with its own engine, tables and root folder."""
        provider = cls(create_engine(url), **kwargs)
        provider._owns_engine = True
        provider.open()
        return provider

    @property
    def type(self) -> str:
        return TYPE

    @property
    def root_path(self) -> GenericFilePath:
        return ROOT_PATH

    @property
    def user(self) -> str | None:
        return self._user

    @property
    def engine(self) -> Engine:
        return self._engine

    def open(self) -> None:
        """Create the tables if needed and make sure the root folder exists."""
        SQLModel.metadata.create_all(
            self._engine,
            tables=[RepositoryEntry.__table__, RepositoryEntryMetadata.__table__],  # type: ignore[list-item]
        )
        with self._session() as session:
            if self._get_entry(session, ROOT_SEGMENT) is None:
                session.add(RepositoryEntry(path=ROOT_SEGMENT, parent_path=None, is_folder=True))
                logger.debug("Created repository root for provider %r", self.name)

    def close(self) -> None:
        if self._owns_engine:
            self._engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = Session(self._engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise OperationFailedError(f"Repository operation failed: {e}") from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _get_entry(self, session: Session, path: str) -> RepositoryEntry | None:
        return session.exec(
            select(RepositoryEntry).where(
                RepositoryEntry.path == path,
                col(RepositoryEntry.deleted_at).is_(None),
            )
        ).first()

    def _require_entry(self, session: Session, path: GenericFilePath) -> RepositoryEntry:
        entry = self._get_entry(session, str(path))
        if entry is None:
            raise NotFoundError(f"Path not found '{path}'.", path)
        return entry

    def _live_children(self, session: Session, path: str) -> list[RepositoryEntry]:
        return list(
            session.exec(
                select(RepositoryEntry)
                .where(
                    RepositoryEntry.parent_path == path,
                    col(RepositoryEntry.deleted_at).is_(None),
                )
                .order_by(col(RepositoryEntry.name))
            ).all()
        )

    def _live_descendants(self, session: Session, path: str) -> list[RepositoryEntry]:
        prefix = path if path == ROOT_SEGMENT else path + "/"
        return list(
            session.exec(
                select(RepositoryEntry)
                .where(
                    col(RepositoryEntry.path).startswith(prefix, autoescape=True),
                    RepositoryEntry.path != path,
                    col(RepositoryEntry.deleted_at).is_(None),
                )
                .order_by(col(RepositoryEntry.path))
            ).all()
        )

    def _trashed_entries(self, session: Session, entry_id: str) -> list[RepositoryEntry]:
        prefix = f"/{TRASH_FOLDER_NAME}/{TRASH_ID_PREFIX}{entry_id}/"
        return list(
            session.exec(
                select(RepositoryEntry)
                .where(
                    col(RepositoryEntry.path).startswith(prefix, autoescape=True),
                    col(RepositoryEntry.deleted_at).is_not(None),
                )
                .order_by(col(RepositoryEntry.path))
            ).all()
        )

    def _has_children(self, session: Session, path: str) -> bool:
        return (
            session.exec(
                select(RepositoryEntry.id).where(
                    RepositoryEntry.parent_path == path,
                    col(RepositoryEntry.deleted_at).is_(None),
                )
            ).first()
            is not None
        )

    def _load_metadata(self, session: Session, entry_id: str) -> GenericFileMetadata:
        rows = session.exec(
            select(RepositoryEntryMetadata)
            .where(RepositoryEntryMetadata.entry_id == entry_id)
            .order_by(col(RepositoryEntryMetadata.key))
        ).all()
        return GenericFileMetadata({row.key: row.value for row in rows})

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def _may_modify(self, entry: RepositoryEntry) -> bool:
        return self._user is None or entry.owner in (None, self._user)

    def _check_modify(self, entry: RepositoryEntry, path: GenericFilePath) -> None:
        if not self._may_modify(entry):
            raise AccessDeniedError(f"Access denied '{path}'.", path)

    @staticmethod
    def _check_not_root(path: GenericFilePath) -> None:
        if path.is_root:
            raise AccessDeniedError("The repository root cannot be modified.", path)

    @staticmethod
    def _check_not_trash(path: GenericFilePath) -> None:
        if len(path.segments) > 1 and path.segments[1] == TRASH_FOLDER_NAME:
            raise InvalidPathError(f"Path is in the trash namespace: '{path}'.")

    def has_access(
        self, path: GenericFilePath, permissions: Collection[GenericFilePermission]
    ) -> bool:
        with self._session() as session:
            entry = self._get_entry(session, str(path))
            if entry is None:
                return False
            if READ_ONLY_PERMISSIONS.issuperset(permissions):
                return True
            return self._may_modify(entry)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _root_folder(self, has_children: bool) -> RepositoryFolder:
        # The name must match the first segment of the parsed path.
        return RepositoryFolder(
            provider=TYPE,
            name=ROOT_SEGMENT,
            path=ROOT_SEGMENT,
            parent_path=None,
            title=self.name,
            has_children=has_children,
            can_edit=False,
            can_delete=False,
            can_add_children=False,
            repository=self.name,
        )

    def _to_file(
        self, session: Session, entry: RepositoryEntry, include_metadata: bool
    ) -> GenericFile:
        metadata = self._load_metadata(session, entry.id) if include_metadata else None

        if entry.path == ROOT_SEGMENT:
            root = self._root_folder(self._has_children(session, ROOT_SEGMENT))
            root.object_id = entry.id
            root.created_date = entry.created_at
            root.modified_date = entry.updated_at
            root.metadata = metadata
            return root

        editable = self._may_modify(entry)
        common: dict[str, Any] = {
            "provider": TYPE,
            "name": entry.name,
            "path": entry.path,
            "parent_path": entry.parent_path,
            "title": entry.title or entry.name,
            "description": entry.description,
            "created_date": entry.created_at,
            "modified_date": entry.updated_at,
            "deleted_date": entry.deleted_at,
            "creator_id": entry.creator_id,
            "deleted_by": entry.deleted_by,
            "owner": entry.owner,
            "file_size": entry.size_bytes,
            "can_edit": editable,
            "can_delete": editable,
            "metadata": metadata,
            "object_id": entry.id,
            "repository": self.name,
            "hidden": entry.hidden,
        }
        if entry.is_folder:
            return RepositoryFolder(
                **common,
                has_children=self._has_children(session, entry.path),
                can_add_children=editable,
            )

        _, dot, extension = entry.name.rpartition(".")
        return RepositoryFile(**common, extension=extension if dot else None, schedulable=True)

    def _folder_stub(self, path: GenericFilePath) -> RepositoryFolder:
        """Placeholder for a location folder that no longer exists."""
        if path.is_root:
            return self._root_folder(has_children=True)
        parent = path.parent
        return RepositoryFolder(
            provider=TYPE,
            name=path.last_segment,
            path=str(path),
            parent_path=str(parent) if parent is not None else None,
            can_edit=True,
            can_delete=True,
            can_add_children=True,
            repository=self.name,
        )

    def _get_location(self, session: Session, path: GenericFilePath | None) -> list[GenericFile]:
        """Folders from the root down to *path*, synthesizing missing ones."""
        location: list[GenericFile] = []
        current = path
        while current is not None:
            entry = self._get_entry(session, str(current))
            if entry is not None and entry.is_folder:
                location.append(self._to_file(session, entry, False))
            else:
                location.append(self._folder_stub(current))
            current = current.parent
        location.reverse()
        return location

    def _is_hidden(self, file: GenericFile) -> bool:
        return bool(getattr(file, "hidden", False))

    # ------------------------------------------------------------------
    # Storage hooks
    # ------------------------------------------------------------------

    def _load_file(self, path: GenericFilePath, include_metadata: bool) -> GenericFile:
        with self._session() as session:
            return self._to_file(session, self._require_entry(session, path), include_metadata)

    def _load_children(self, path: GenericFilePath, include_metadata: bool) -> list[GenericFile]:
        with self._session() as session:
            return [
                self._to_file(session, entry, include_metadata)
                for entry in self._live_children(session, str(path))
            ]

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def does_folder_exist(self, path: GenericFilePath) -> bool:
        with self._session() as session:
            entry = self._get_entry(session, str(path))
            return entry is not None and entry.is_folder

    def get_file(self, path: GenericFilePath, options: GetFileOptions) -> GenericFile:
        self._check_owned(path)
        return self._load_file(path, options.include_metadata)

    def get_file_content(self, path: GenericFilePath, compressed: bool) -> GenericFileContent:
        self._check_owned(path)
        with self._session() as session:
            entry = self._require_entry(session, path)
            if not entry.is_folder and not compressed:
                return GenericFileContent(
                    stream=io.BytesIO(entry.content or b""),
                    file_name=entry.name,
                    mime_type=entry.mime_type,
                )

            top = entry.name or TYPE
            entries: list[tuple[str, bytes | None]] = []
            for item in [entry, *self._live_descendants(session, entry.path)]:
                relative = item.path[len(entry.path):].strip("/")
                arcname = f"{top}/{relative}" if relative else top
                entries.append((arcname, None if item.is_folder else item.content or b""))
            return self._zip_content(top, entries)

    def get_file_metadata(self, path: GenericFilePath) -> GenericFileMetadata:
        self._check_owned(path)
        with self._session() as session:
            return self._load_metadata(session, self._require_entry(session, path).id)

    def get_deleted_files(self) -> list[GenericFile]:
        files: list[GenericFile] = []
        with self._session() as session:
            rows = session.exec(
                select(RepositoryEntry)
                .where(col(RepositoryEntry.deleted_at).is_not(None))
                .order_by(col(RepositoryEntry.deleted_at), col(RepositoryEntry.path))
            ).all()
            for entry in rows:
                # Descendants of a deleted folder are restored with it.
                if entry.original_path is None or entry.path != _trash_path(
                    entry.id, entry.original_path
                ):
                    continue
                file = self._to_file(session, entry, False)
                original = GenericFilePath.parse_required(entry.original_path)
                file.original_location = self._get_location(session, original.parent)
                files.append(file)
        return files

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def _ensure_folders(self, session: Session, path: GenericFilePath) -> bool:
        created = False
        parent = self._require_entry(session, ROOT_PATH)
        current = ROOT_PATH
        for name in path.segments[1:]:
            current = current.child(name)
            entry = self._get_entry(session, str(current))
            if entry is None:
                self._check_modify(parent, current)
                entry = RepositoryEntry(
                    path=str(current),
                    parent_path=str(current.parent),
                    name=name,
                    is_folder=True,
                    owner=self._user,
                    creator_id=self._user,
                )
                session.add(entry)
                session.flush()
                created = True
            elif not entry.is_folder:
                raise ConflictError(f"Cannot create folder '{path}': '{current}' is a file.")
            parent = entry
        return created

    def create_folder(self, path: GenericFilePath) -> bool:
        self._check_owned(path)
        self._check_not_trash(path)
        with self._session() as session:
            created = self._ensure_folders(session, path)
        if created:
            self.clear_tree_cache()
        return created

    def write_file(
        self,
        path: GenericFilePath,
        content: bytes,
        *,
        overwrite: bool = False,
        mime_type: str | None = None,
    ) -> None:
        """Create or replace a file, creating missing parent folders."""
        self._check_owned(path)
        self._check_not_root(path)
        self._check_not_trash(path)
        now = datetime.now(UTC)
        with self._session() as session:
            self._ensure_folders(session, path.parent or ROOT_PATH)
            entry = self._get_entry(session, str(path))
            if entry is None:
                self._check_modify(self._require_entry(session, path.parent or ROOT_PATH), path)
                session.add(
                    RepositoryEntry(
                        path=str(path),
                        parent_path=str(path.parent),
                        name=path.last_segment,
                        content=content,
                        mime_type=mime_type or guess_mime_type(path.last_segment),
                        size_bytes=len(content),
                        owner=self._user,
                        creator_id=self._user,
                    )
                )
            elif entry.is_folder:
                raise ConflictError(f"Cannot write file '{path}': it is a folder.")
            elif not overwrite:
                raise PathAlreadyExistsError(f"File already exists '{path}'.")
            else:
                self._check_modify(entry, path)
                entry.content = content
                entry.size_bytes = len(content)
                entry.mime_type = mime_type or entry.mime_type
                entry.updated_at = now
                session.add(entry)
        self.clear_tree_cache()

    def set_file_metadata(self, path: GenericFilePath, metadata: GenericFileMetadata) -> None:
        self._check_owned(path)
        with self._session() as session:
            entry = self._require_entry(session, path)
            self._check_modify(entry, path)
            existing = session.exec(
                select(RepositoryEntryMetadata).where(
                    RepositoryEntryMetadata.entry_id == entry.id
                )
            ).all()
            for row in existing:
                session.delete(row)
            for key, value in metadata.metadata.items():
                session.add(RepositoryEntryMetadata(entry_id=entry.id, key=key, value=value))
        self.clear_tree_cache()

    def _purge(self, session: Session, entries: list[RepositoryEntry]) -> None:
        for entry in entries:
            rows = session.exec(
                select(RepositoryEntryMetadata).where(
                    RepositoryEntryMetadata.entry_id == entry.id
                )
            ).all()
            for row in rows:
                session.delete(row)
            session.delete(entry)

    def delete_file(self, path: GenericFilePath, permanent: bool) -> None:
        self._check_owned(path)
        self._check_not_root(path)
        now = datetime.now(UTC)
        with self._session() as session:
            entry = self._require_entry(session, path)
            self._check_modify(entry, path)
            entries = [entry, *self._live_descendants(session, entry.path)]
            if permanent:
                self._purge(session, entries)
                logger.debug("Permanently deleted %s (%d entries)", path, len(entries))
            else:
                for item in entries:
                    item.original_path = item.path
                    item.path = _trash_path(entry.id, item.path)
                    item.parent_path = _parent_of(item.path)
                    item.deleted_at = now
                    item.deleted_by = self._user
                    item.updated_at = now
                    session.add(item)
                logger.debug("Moved %s to trash (%d entries)", path, len(entries))
        self.clear_tree_cache()

    def delete_file_permanently(self, path: GenericFilePath) -> None:
        file_id = get_trash_file_id(path)
        with self._session() as session:
            entries = self._trashed_entries(session, file_id)
            if not entries:
                raise NotFoundError(f"Deleted file not found '{path}'.", path)
            self._check_modify(entries[0], path)
            self._purge(session, entries)

    def restore_file(self, path: GenericFilePath) -> None:
        file_id = get_trash_file_id(path)
        now = datetime.now(UTC)
        with self._session() as session:
            entries = self._trashed_entries(session, file_id)
            top = next((e for e in entries if e.id == file_id), None)
            if top is None or top.original_path is None:
                raise NotFoundError(f"Deleted file not found '{path}'.", path)
            self._check_modify(top, path)

            original = GenericFilePath.parse_required(top.original_path)
            if self._get_entry(session, str(original)) is not None:
                raise PathAlreadyExistsError(f"Path already exists '{original}'.")
            self._ensure_folders(session, original.parent or ROOT_PATH)

            for item in entries:
                item.path = item.original_path or item.path
                item.parent_path = _parent_of(item.path)
                item.original_path = None
                item.deleted_at = None
                item.deleted_by = None
                item.updated_at = now
                session.add(item)
        self.clear_tree_cache()

    def _relocate(self, session: Session, entry: RepositoryEntry, target: GenericFilePath) -> None:
        old = entry.path
        now = datetime.now(UTC)
        for item in self._live_descendants(session, old):
            item.path = str(target) + item.path[len(old):]
            item.parent_path = _parent_of(item.path)
            item.updated_at = now
            session.add(item)
        entry.path = str(target)
        entry.parent_path = _parent_of(entry.path)
        entry.name = target.last_segment
        entry.updated_at = now
        session.add(entry)

    def rename_file(self, path: GenericFilePath, new_name: str) -> bool:
        self._check_owned(path)
        self._check_not_root(path)
        validate_name(new_name)
        target = path.parent.child(new_name)  # type: ignore[union-attr]
        if target == path:
            return True

        with self._session() as session:
            entry = self._require_entry(session, path)
            self._check_modify(entry, path)
            if self._get_entry(session, str(target)) is not None:
                raise PathAlreadyExistsError(f"Path already exists '{target}'.")
            if entry.title == entry.name:
                entry.title = new_name
            self._relocate(session, entry, target)
        self.clear_tree_cache()
        return True

    def _prepare_transfer(
        self,
        session: Session,
        path: GenericFilePath,
        destination_folder: GenericFilePath,
        action: str,
    ) -> tuple[RepositoryEntry, GenericFilePath]:
        self._check_not_trash(destination_folder)
        source = self._require_entry(session, path)
        destination = self._require_entry(session, destination_folder)
        if not destination.is_folder:
            raise ConflictError(f"Destination is not a folder '{destination_folder}'.")
        if source.is_folder and (path == destination_folder or path.is_ancestor_of(destination_folder)):
            raise ConflictError(f"Cannot {action} folder '{path}' into itself.")
        self._check_modify(destination, destination_folder)
        return source, destination_folder.child(path.last_segment)

    def copy_file(self, path: GenericFilePath, destination_folder: GenericFilePath) -> None:
        self._check_owned(path)
        self._check_owned(destination_folder)
        with self._session() as session:
            source, target = self._prepare_transfer(session, path, destination_folder, "copy")
            if self._get_entry(session, str(target)) is not None:
                raise PathAlreadyExistsError(f"Path already exists '{target}'.")

            for item in [source, *self._live_descendants(session, source.path)]:
                copy_path = str(target) + item.path[len(source.path):]
                clone = RepositoryEntry(
                    path=copy_path,
                    parent_path=_parent_of(copy_path),
                    name=GenericFilePath.parse_required(copy_path).last_segment,
                    title=item.title,
                    description=item.description,
                    is_folder=item.is_folder,
                    hidden=item.hidden,
                    content=item.content,
                    mime_type=item.mime_type,
                    size_bytes=item.size_bytes,
                    owner=self._user or item.owner,
                    creator_id=self._user,
                )
                session.add(clone)
                for key, value in self._load_metadata(session, item.id).metadata.items():
                    session.add(RepositoryEntryMetadata(entry_id=clone.id, key=key, value=value))
        self.clear_tree_cache()

    def move_file(self, path: GenericFilePath, destination_folder: GenericFilePath) -> None:
        self._check_owned(path)
        self._check_owned(destination_folder)
        self._check_not_root(path)
        with self._session() as session:
            source, target = self._prepare_transfer(session, path, destination_folder, "move")
            if target == path:
                return
            self._check_modify(source, path)
            if self._get_entry(session, str(target)) is not None:
                raise PathAlreadyExistsError(f"Path already exists '{target}'.")
            self._relocate(session, source, target)
        self.clear_tree_cache()
