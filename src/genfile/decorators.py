"""File decorators — the decoration template, a null decorator and a composite.

Decoration failures never reach the caller.  Every hook invocation is
wrapped: an ``OperationFailedError`` is logged and the object is left
as it was, possibly only partially decorated.  Other exceptions are not
contained.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import OperationFailedError
from .options import GetFileOptions
from .path import GenericFilePath

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .options import GetTreeOptions
    from .protocol import GenericFileDecorator
    from .service import GenericFileService
    from .types import GenericFile, GenericFileMetadata, GenericFileTree

logger = logging.getLogger(__name__)


class BaseGenericFileDecorator:
    """Template decorator.

    The three entry points (``decorate_file``, ``decorate_file_metadata``
    and ``decorate_tree``) are fixed.  Subclasses override the hooks:

    - ``decorate_file_core``: called once per file.
    - ``decorate_file_metadata_core``: called for metadata, either fetched
      on its own or attached to a file requested with ``include_metadata``.
    - ``decorate_tree_node``: called once per tree node.  The default
      delegates to ``decorate_file``; an override that keeps that call
      must not decorate the file a second time.

    All hooks are no-ops by default.
    """

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def decorate_file_metadata(
        self,
        metadata: GenericFileMetadata,
        path: GenericFilePath,
        service: GenericFileService,
    ) -> None:
        try:
            self.decorate_file_metadata_core(metadata, path, service)
        except OperationFailedError:
            logger.error(
                "Error decorating file metadata at path=%s. Decoration skipped.",
                path,
                exc_info=True,
            )

    def decorate_file(
        self,
        file: GenericFile,
        service: GenericFileService,
        options: GetFileOptions,
    ) -> None:
        # Metadata first; a failure there does not block file decoration.
        if options.include_metadata and file.metadata is not None:
            try:
                path = GenericFilePath.parse_required(file.path)
                self.decorate_file_metadata_core(file.metadata, path, service)
            except OperationFailedError:
                logger.error(
                    "Error decorating file metadata at path=%s. Decoration skipped.",
                    file.path,
                    exc_info=True,
                )

        try:
            self.decorate_file_core(file, service, options)
        except OperationFailedError:
            logger.error(
                "Error decorating file at path=%s. Decoration skipped.",
                file.path,
                exc_info=True,
            )

    def decorate_tree(
        self,
        tree: GenericFileTree | None,
        service: GenericFileService,
        options: GetTreeOptions,
    ) -> None:
        """Decorate every node of *tree*, parents before children."""
        if tree is None:
            return

        try:
            self.decorate_tree_node(tree.file, tree, service, options)
        except OperationFailedError:
            logger.error(
                "Error decorating tree node at path=%s. Node left undecorated.",
                tree.file.path,
                exc_info=True,
            )

        for child in tree.children or ():
            self.decorate_tree(child, service, options)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def decorate_file_core(
        self,
        file: GenericFile,
        service: GenericFileService,
        options: GetFileOptions,
    ) -> None:
        """Decorate a single file.  No-op by default."""

    def decorate_file_metadata_core(
        self,
        metadata: GenericFileMetadata,
        path: GenericFilePath,
        service: GenericFileService,
    ) -> None:
        """Decorate file metadata.  No-op by default."""

    def decorate_tree_node(
        self,
        file: GenericFile,
        tree: GenericFileTree,
        service: GenericFileService,
        options: GetTreeOptions,
    ) -> None:
        self.decorate_file(file, service, self.derive_file_options(options))

    def derive_file_options(self, options: GetTreeOptions) -> GetFileOptions:
        """Narrow tree options to the file options they share."""
        return GetFileOptions(include_metadata=options.include_metadata)


class NullGenericFileDecorator:
    """Decorator that leaves everything untouched."""

    def decorate_file(
        self, file: GenericFile, service: GenericFileService, options: GetFileOptions
    ) -> None:
        pass

    def decorate_file_metadata(
        self, metadata: GenericFileMetadata, path: GenericFilePath, service: GenericFileService
    ) -> None:
        pass

    def decorate_tree(
        self, tree: GenericFileTree, service: GenericFileService, options: GetTreeOptions
    ) -> None:
        pass


class CompositeGenericFileDecorator:
    """Runs several decorators in order.

    A failure in one decorator is logged and the next one still runs.
    """

    def __init__(self, decorators: Sequence[GenericFileDecorator]) -> None:
        if not decorators:
            raise ValueError("CompositeGenericFileDecorator requires at least one decorator")
        self._decorators = tuple(decorators)

    @property
    def decorators(self) -> tuple[GenericFileDecorator, ...]:
        return self._decorators

    def decorate_file(
        self, file: GenericFile, service: GenericFileService, options: GetFileOptions
    ) -> None:
        for decorator in self._decorators:
            try:
                decorator.decorate_file(file, service, options)
            except OperationFailedError:
                logger.error("Decorator %r failed on file %s", decorator, file.path, exc_info=True)

    def decorate_file_metadata(
        self, metadata: GenericFileMetadata, path: GenericFilePath, service: GenericFileService
    ) -> None:
        for decorator in self._decorators:
            try:
                decorator.decorate_file_metadata(metadata, path, service)
            except OperationFailedError:
                logger.error(
                    "Decorator %r failed on file metadata %s", decorator, path, exc_info=True
                )

    def decorate_tree(
        self, tree: GenericFileTree, service: GenericFileService, options: GetTreeOptions
    ) -> None:
        for decorator in self._decorators:
            try:
                decorator.decorate_tree(tree, service, options)
            except OperationFailedError:
                logger.error(
                    "Decorator %r failed on tree %s", decorator, tree.file.path, exc_info=True
                )
