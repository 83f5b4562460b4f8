"""Custom exception hierarchy for the generic file layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .path import GenericFilePath


class GenericFileError(Exception):
    """Base exception for all generic file errors."""


class InvalidProviderConfigurationError(GenericFileError):
    """Raised when a service is built without any file provider."""

    def __init__(self, message: str = "At least one file provider is required.") -> None:
        super().__init__(message)


class OperationFailedError(GenericFileError):
    """Raised when a provider or decorator operation fails.

    The underlying cause, when there is one, is chained as ``__cause__``.
    """


class OperationWithPathFailedError(OperationFailedError):
    """An operation failure tied to a specific path."""

    def __init__(self, message: str = "", path: GenericFilePath | None = None) -> None:
        super().__init__(message)
        self.path = path


class NotFoundError(OperationWithPathFailedError):
    """Raised when no provider owns a path, or the path does not exist."""


class AccessDeniedError(OperationWithPathFailedError):
    """Raised when the current user may not perform an operation on a path."""


class InvalidPathError(OperationFailedError):
    """Raised when a path or file name cannot be parsed or is not allowed."""


class ConflictError(OperationFailedError):
    """Raised when an operation conflicts with the current state of a path."""


class PathAlreadyExistsError(ConflictError):
    """Raised when the target path of a create, copy, move or rename is taken."""


class UnsupportedOperationError(OperationFailedError):
    """Raised when an operation is not supported, e.g. copying across providers."""


class BatchOperationFailedError(OperationFailedError):
    """Raised at the end of a batch operation when one or more paths failed.

    ``failed_files`` maps every failing path, in input order, to its error.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.failed_files: dict[GenericFilePath | str, OperationFailedError] = {}

    def add_failed_path(self, path: GenericFilePath | str, error: OperationFailedError) -> None:
        self.failed_files[path] = error

    def __str__(self) -> str:
        base = super().__str__()
        if not self.failed_files:
            return base
        failed = ", ".join(str(p) for p in self.failed_files)
        return f"{base} Failed paths: {failed}"
