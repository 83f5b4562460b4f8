"""Entity types: GenericFile, GenericFolder, GenericFileTree, metadata, content."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime
    from typing import BinaryIO

FILE_TYPE = "file"
FOLDER_TYPE = "folder"


@dataclass
class GenericFileMetadata:
    """Key/value metadata attached to a file."""

    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class GenericFile:
    """A file or folder as seen through the unified namespace.

    Providers create these fresh per request; decorators enrich them in
    place.  ``path``, ``provider`` and ``type`` identify the entity and
    are never changed by decoration.
    """

    provider: str = ""
    name: str = ""
    path: str | None = None
    parent_path: str | None = None
    type: str = FILE_TYPE
    title: str | None = None
    description: str | None = None
    created_date: datetime | None = None
    modified_date: datetime | None = None
    deleted_date: datetime | None = None
    creator_id: str | None = None
    deleted_by: str | None = None
    owner: str | None = None
    file_size: int = 0
    can_edit: bool = False
    can_delete: bool = False
    original_location: list[GenericFile] | None = None
    """Folders from the namespace root down to the original parent.  Deleted entities only."""

    metadata: GenericFileMetadata | None = None
    custom_properties: dict[str, Any] = field(default_factory=dict)

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER_TYPE


@dataclass
class GenericFolder(GenericFile):
    """A folder.  Its type is fixed to ``"folder"``."""

    type: str = FOLDER_TYPE
    has_children: bool = False
    can_add_children: bool = False

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "type" and value != FOLDER_TYPE:
            raise ValueError(f"Type for a folder must be {FOLDER_TYPE!r}, got {value!r}")
        super().__setattr__(name, value)


@dataclass
class GenericFileTree:
    """A file plus its child trees.

    ``children`` is ``None`` for files and for folders that were not
    expanded; an expanded empty folder has an empty list.
    """

    file: GenericFile
    children: list[GenericFileTree] | None = None

    def add_child(self, child: GenericFileTree) -> None:
        if self.children is None:
            self.children = []
        self.children.append(child)


@dataclass
class GenericFileContent:
    """Readable content of a file (or a zip of a folder)."""

    stream: BinaryIO
    file_name: str
    mime_type: str

    def read(self) -> bytes:
        return self.stream.read()

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> GenericFileContent:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()
