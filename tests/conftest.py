"""Shared fixtures for genfile tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlmodel import SQLModel, create_engine

from genfile.providers.local import LocalFileProvider
from genfile.providers.repository import RepositoryFileProvider

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy import Engine


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite engine with all tables created."""
    eng = create_engine("sqlite://", echo=False)
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def repo(engine: Engine) -> RepositoryFileProvider:
    """Repository provider with no user, so every entry is writable."""
    provider = RepositoryFileProvider(engine)
    provider.open()
    return provider


@pytest.fixture
def host_dir(tmp_path: Path) -> Path:
    root = tmp_path / "host"
    root.mkdir()
    return root


@pytest.fixture
def local(host_dir: Path) -> LocalFileProvider:
    """Local provider mounted at ``local://``."""
    return LocalFileProvider(host_dir)
