"""Tests for provider and service configuration."""

from __future__ import annotations

import pytest

from genfile.config import ProviderConfig, ServiceConfig, create_provider, create_service
from genfile.decorators import BaseGenericFileDecorator
from genfile.exceptions import InvalidProviderConfigurationError
from genfile.providers.local import LocalFileProvider
from genfile.providers.repository import RepositoryFileProvider

# ---------------------------------------------------------------------------
# ProviderConfig
# ---------------------------------------------------------------------------


class TestProviderConfig:
    def test_url_is_repository(self):
        assert ProviderConfig("sqlite://").is_repository

    def test_directory_is_local(self, tmp_path):
        assert not ProviderConfig(str(tmp_path)).is_repository

    def test_defaults(self):
        cfg = ProviderConfig("/srv/files")
        assert cfg.scheme == "local"
        assert cfg.read_only is False
        assert cfg.user is None
        assert cfg.name == ""

    def test_empty_source(self):
        with pytest.raises(InvalidProviderConfigurationError):
            ProviderConfig("")


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


class TestCreateProvider:
    def test_repository(self):
        provider = create_provider(ProviderConfig("sqlite://", user="admin"))
        try:
            assert isinstance(provider, RepositoryFileProvider)
            assert provider.name == "Repository"
            assert provider.user == "admin"
            assert provider.does_folder_exist(provider.root_path)
        finally:
            provider.close()

    def test_local(self, tmp_path):
        provider = create_provider(
            ProviderConfig(str(tmp_path), scheme="disk", name="Disk", read_only=True)
        )
        assert isinstance(provider, LocalFileProvider)
        assert provider.name == "Disk"
        assert str(provider.root_path) == "disk://"
        assert provider.read_only

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            create_provider(ProviderConfig(str(tmp_path / "missing")))


class TestCreateService:
    def test_requires_providers(self):
        with pytest.raises(InvalidProviderConfigurationError):
            create_service(ServiceConfig())

    def test_providers_in_order(self, tmp_path):
        decorator = BaseGenericFileDecorator()
        service = create_service(
            ServiceConfig([ProviderConfig("sqlite://"), ProviderConfig(str(tmp_path))]),
            decorator,
        )
        with service:
            assert [p.type for p in service.providers] == ["repository", "local"]
            assert service.decorator is decorator
