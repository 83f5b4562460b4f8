"""Provider and service configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exceptions import InvalidProviderConfigurationError
from .providers.local import LocalFileProvider
from .providers.repository import RepositoryFileProvider
from .service import GenericFileService

if TYPE_CHECKING:
    from .protocol import GenericFileDecorator, GenericFileProvider

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for a single provider."""

    source: str
    """Database URL (``sqlite:///repo.db``) or host directory (``/srv/files``)."""

    name: str = ""
    """Display name.  Defaults to ``"Repository"`` or the scheme."""

    scheme: str = "local"
    """Namespace scheme of a host directory mount, e.g. ``local://``."""

    read_only: bool = False
    """Host directory mounts only: deny every mutation."""

    user: str | None = None
    """Repository only: the user that owns new entries and is checked on writes."""

    def __post_init__(self) -> None:
        if not self.source:
            raise InvalidProviderConfigurationError("Provider source must not be empty.")

    @property
    def is_repository(self) -> bool:
        return "://" in self.source


@dataclass
class ServiceConfig:
    """Configuration for a service: providers in resolution order."""

    providers: list[ProviderConfig] = field(default_factory=list)


def create_provider(config: ProviderConfig) -> GenericFileProvider:
    """Build the provider described by *config*."""
    if config.is_repository:
        logger.debug("Creating repository provider for %s", config.source)
        return RepositoryFileProvider.from_url(
            config.source,
            name=config.name or "Repository",
            user=config.user,
        )

    logger.debug("Creating local provider for %s", config.source)
    return LocalFileProvider(
        config.source,
        scheme=config.scheme,
        name=config.name,
        read_only=config.read_only,
    )


def create_service(
    config: ServiceConfig, decorator: GenericFileDecorator | None = None
) -> GenericFileService:
    """Build every configured provider and a service over them."""
    if not config.providers:
        raise InvalidProviderConfigurationError()
    return GenericFileService(
        [create_provider(provider) for provider in config.providers],
        decorator,
    )
