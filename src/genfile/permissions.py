"""Permission enum for generic file access checks."""

from __future__ import annotations

from enum import Enum


class GenericFilePermission(str, Enum):
    """Permission requested when checking access to a path."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ACL_MANAGEMENT = "acl_management"
    ALL = "all"


READ_ONLY_PERMISSIONS = frozenset({GenericFilePermission.READ})
