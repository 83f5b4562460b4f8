"""genfile: one file namespace over many storage providers.

Routes file operations to the provider that owns each path, aggregates
whole-namespace views, and decorates results on the way out.
"""

__version__ = "0.1.0"

from genfile.config import ProviderConfig, ServiceConfig, create_provider, create_service
from genfile.decorators import (
    BaseGenericFileDecorator,
    CompositeGenericFileDecorator,
    NullGenericFileDecorator,
)
from genfile.exceptions import (
    AccessDeniedError,
    BatchOperationFailedError,
    ConflictError,
    GenericFileError,
    InvalidPathError,
    InvalidProviderConfigurationError,
    NotFoundError,
    OperationFailedError,
    OperationWithPathFailedError,
    PathAlreadyExistsError,
    UnsupportedOperationError,
)
from genfile.options import GetFileOptions, GetTreeOptions, TreeFilter
from genfile.path import GenericFilePath
from genfile.permissions import GenericFilePermission
from genfile.protocol import GenericFileDecorator, GenericFileProvider
from genfile.providers import LocalFileProvider, RepositoryFileProvider
from genfile.service import GenericFileService
from genfile.types import (
    GenericFile,
    GenericFileContent,
    GenericFileMetadata,
    GenericFileTree,
    GenericFolder,
)

__all__ = [
    "AccessDeniedError",
    "BaseGenericFileDecorator",
    "BatchOperationFailedError",
    "CompositeGenericFileDecorator",
    "ConflictError",
    "GenericFile",
    "GenericFileContent",
    "GenericFileDecorator",
    "GenericFileError",
    "GenericFileMetadata",
    "GenericFilePath",
    "GenericFilePermission",
    "GenericFileProvider",
    "GenericFileService",
    "GenericFileTree",
    "GenericFolder",
    "GetFileOptions",
    "GetTreeOptions",
    "InvalidPathError",
    "InvalidProviderConfigurationError",
    "LocalFileProvider",
    "NotFoundError",
    "NullGenericFileDecorator",
    "OperationFailedError",
    "OperationWithPathFailedError",
    "PathAlreadyExistsError",
    "ProviderConfig",
    "RepositoryFileProvider",
    "ServiceConfig",
    "TreeFilter",
    "UnsupportedOperationError",
    "create_provider",
    "create_service",
]
