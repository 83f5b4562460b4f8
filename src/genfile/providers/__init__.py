"""Storage providers — a SQL content repository and host directory mounts."""

from genfile.providers.base import BaseGenericFileProvider
from genfile.providers.local import LocalFileProvider
from genfile.providers.repository import (
    RepositoryFile,
    RepositoryFileProvider,
    RepositoryFolder,
    RepositoryObject,
)

__all__ = [
    "BaseGenericFileProvider",
    "LocalFileProvider",
    "RepositoryFile",
    "RepositoryFileProvider",
    "RepositoryFolder",
    "RepositoryObject",
]
