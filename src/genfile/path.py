"""GenericFilePath — immutable path value for the unified namespace.

A path is a tuple of segments.  The first segment names the namespace
root and is either ``/`` (slash-rooted, e.g. ``/home/admin/report.txt``)
or ``scheme://`` (scheme-rooted, e.g. ``local://docs/a.txt``).  The
remaining segments are plain names.

Examples:
    GenericFilePath.parse("/home//admin/") -> "/home/admin"
    GenericFilePath.parse("local://a/b").segments -> ("local://", "a", "b")
    GenericFilePath.parse("") -> None
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .exceptions import InvalidPathError

ROOT_SEGMENT = "/"
MAX_PATH_LENGTH = 4096
MAX_NAME_LENGTH = 255

_SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*)://(.*)$", re.DOTALL)


def _check_characters(value: str) -> None:
    if "\x00" in value:
        raise InvalidPathError("Path contains null bytes")
    for ch in value:
        code = ord(ch)
        if 0x01 <= code <= 0x1F:
            raise InvalidPathError(f"Path contains control character: 0x{code:02x}")


def validate_name(name: str) -> str:
    """Validate a single path segment (a file or folder name).

    Returns the name unchanged, or raises ``InvalidPathError``.
    """
    if not name or not name.strip():
        raise InvalidPathError("Name must not be empty")
    if "/" in name or "\\" in name:
        raise InvalidPathError(f"Name must not contain path separators: {name!r}")
    if name in (".", ".."):
        raise InvalidPathError(f"Name is reserved: {name!r}")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidPathError(f"Name too long (max {MAX_NAME_LENGTH} characters)")
    _check_characters(name)
    return name


@dataclass(frozen=True, order=True, slots=True)
class GenericFilePath:
    """Immutable, hashable, ordered path in the unified namespace."""

    segments: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.segments:
            raise InvalidPathError("Path must have at least one segment")

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, path: str | None) -> GenericFilePath | None:
        """Parse *path*, returning ``None`` for a missing or blank string."""
        if path is None:
            return None

        path = path.strip()
        if not path:
            return None

        if len(path) > MAX_PATH_LENGTH:
            raise InvalidPathError(f"Path too long (max {MAX_PATH_LENGTH} characters)")
        _check_characters(path)

        match = _SCHEME_RE.match(path)
        if match is not None:
            first = f"{match.group(1)}://"
            rest = match.group(2)
        elif path.startswith(ROOT_SEGMENT):
            first = ROOT_SEGMENT
            rest = path[1:]
        else:
            raise InvalidPathError(f"Path must start with '/' or a scheme: {path!r}")

        names = [name for name in rest.split("/") if name]
        for name in names:
            validate_name(name)

        return cls((first, *names))

    @classmethod
    def parse_required(cls, path: str | None) -> GenericFilePath:
        """Like :meth:`parse`, but a missing or blank path is an error."""
        parsed = cls.parse(path)
        if parsed is None:
            raise InvalidPathError("Path is required")
        return parsed

    # ------------------------------------------------------------------
    # Decomposition
    # ------------------------------------------------------------------

    @property
    def first_segment(self) -> str:
        return self.segments[0]

    @property
    def last_segment(self) -> str:
        return self.segments[-1]

    @property
    def is_root(self) -> bool:
        return len(self.segments) == 1

    @property
    def parent(self) -> GenericFilePath | None:
        """The parent path, or ``None`` at a namespace root."""
        if self.is_root:
            return None
        return GenericFilePath(self.segments[:-1])

    def child(self, name: str) -> GenericFilePath:
        return GenericFilePath((*self.segments, validate_name(name)))

    def is_ancestor_of(self, other: GenericFilePath) -> bool:
        """True if *other* lies strictly below this path."""
        n = len(self.segments)
        return len(other.segments) > n and other.segments[:n] == self.segments

    def relative_to(self, ancestor: GenericFilePath) -> tuple[str, ...]:
        """Segments of this path below *ancestor* (empty when equal)."""
        if self != ancestor and not ancestor.is_ancestor_of(self):
            raise ValueError(f"{self} is not under {ancestor}")
        return self.segments[len(ancestor.segments):]

    def __str__(self) -> str:
        return self.segments[0] + "/".join(self.segments[1:])

    def __repr__(self) -> str:
        return f"GenericFilePath({str(self)!r})"
