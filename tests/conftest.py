"""
Shared pytest fixtures for spine-orm tests.

This module provides:
- File-backed SQLite data sources under ``tmp_path``
- A registry and environment built over the sample entities
- Settings cache isolation

File databases are used rather than shared-cache memory databases because
an open ``read_all`` cursor would otherwise lock the table against writes
from other connections.
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

from sample_entities import Article, Embedded, Main, Tag, TagHolder
from spineorm.config import OrmSettings, StartMode, clear_settings_cache
from spineorm.datasource import SQLiteDataSource
from spineorm.environment import DBEnvironment
from spineorm.logging import configure_logging
from spineorm.registry import Registry

ALL_ENTITIES = (Main, Embedded, Tag, Article, TagHolder)


@pytest.fixture(autouse=True)
def _quiet_logging() -> Generator[None, None, None]:
    """Keep structlog output at WARNING on the current stderr for every test."""
    configure_logging(level="WARNING", json_format=False, add_timestamp=False, stream=sys.stderr)
    yield


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.delenv("SPINEORM_DATABASE_URL", raising=False)
    monkeypatch.delenv("SPINEORM_START_MODE", raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "orm.sqlite"


@pytest.fixture
def data_source(db_path: Path) -> Generator[SQLiteDataSource, None, None]:
    ds = SQLiteDataSource(str(db_path))
    yield ds
    ds.close()


@pytest.fixture
def settings() -> OrmSettings:
    return OrmSettings(start_mode=StartMode.CREATE_IF_NOT_EXISTS, _env_file=None)


@pytest.fixture
def env(data_source: SQLiteDataSource, settings: OrmSettings) -> Generator[DBEnvironment, None, None]:
    """Environment with every sample entity initialized and its tables created."""
    environment = DBEnvironment(data_source, settings=settings)
    environment.initialize_entities(*ALL_ENTITIES)
    yield environment
    environment.close()


@pytest.fixture
def registry(env: DBEnvironment) -> Registry:
    return env.registry

