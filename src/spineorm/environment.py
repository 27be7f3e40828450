"""
Database environment: data source + registry + table bootstrap.

An explicit value with an explicit lifecycle. Create one, initialize the
entity types, use it, close it. Several environments can coexist (e.g. one
per test).

Usage::

    with DBEnvironment("sqlite:///data/app.db") as env:
        env.on_create(Tag, lambda registry: registry.crud(Tag).add_all(DEFAULT_TAGS))
        env.on_integrity_check(Main, lambda registry: registry.crud(Main).delete_all('"note" IS NULL'))
        env.initialize_entities(Main, Tag)
        env.persist(Main).save(main)

Start modes (:class:`~spineorm.config.StartMode`)::

    CREATE_IF_NOT_EXISTS   create missing tables, run on_create hooks for them
    DROP_AND_CREATE        drop every table (join tables first), then create
    AS_IT_IS               touch nothing

on_integrity_check hooks run after bootstrap in every start mode.

Tags:
    environment, bootstrap, lifecycle, spine-orm
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from spineorm.config import OrmSettings, StartMode, get_settings
from spineorm.datasource import SQLiteDataSource
from spineorm.dialect import Dialect, SQLiteDialect
from spineorm.errors import ConfigurationError
from spineorm.logging import get_logger
from spineorm.registry import Registry
from spineorm.repositories import CRUDRepository, PersistRepository
from spineorm.schema import SchemaManager

logger = get_logger(__name__)

OnCreateAction = Callable[[Registry], None]
IntegrityCheckAction = Callable[[Registry], None]


class DBEnvironment:
    """Owns a data source and the registry built over it.

    Parameters:
        data_source: A data source, or a database URL; ``None`` takes the URL
            from settings.
        settings: Defaults to :func:`~spineorm.config.get_settings`.
        start_mode: Overrides ``settings.start_mode``.
    """

    def __init__(
        self,
        data_source: Any = None,
        *,
        settings: OrmSettings | None = None,
        start_mode: StartMode | None = None,
        dialect: Dialect | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.start_mode = start_mode or self.settings.start_mode
        self.dialect: Dialect = dialect or SQLiteDialect()
        if data_source is None:
            data_source = SQLiteDataSource.from_settings(self.settings)
        elif isinstance(data_source, str):
            data_source = SQLiteDataSource(
                data_source,
                enforce_foreign_keys=self.settings.enforce_foreign_keys,
                case_sensitive_like=self.settings.case_sensitive_like,
            )
        self.data_source = data_source
        self.registry = Registry(data_source, self.dialect, formatted_sql=self.settings.formatted_sql)
        self.schema = SchemaManager(data_source, self.dialect)
        self._on_create: dict[type, list[OnCreateAction]] = {}
        self._integrity_checks: list[tuple[type, IntegrityCheckAction]] = []
        self._initialized = False
        self._closed = False

    def on_create(self, entity_type: type, action: OnCreateAction) -> None:
        """Run *action* after the table of *entity_type* is newly created."""
        if self._initialized:
            raise ConfigurationError("on_create hooks must be registered before initialize_entities")
        self._on_create.setdefault(entity_type, []).append(action)

    def on_integrity_check(self, entity_type: type, action: IntegrityCheckAction) -> None:
        """Run *action* once every entity is initialized, in any start mode.

        Checks run in the order they were registered, after tables are
        bootstrapped and after any ``on_create`` hooks.
        """
        if self._initialized:
            raise ConfigurationError("on_integrity_check hooks must be registered before initialize_entities")
        self._integrity_checks.append((entity_type, action))

    def initialize_entities(self, *entity_types: type) -> Registry:
        """Build the registry for *entity_types* and bootstrap their tables."""
        if self._initialized:
            raise ConfigurationError("Entities are already initialized")
        self.registry.build(*entity_types)
        self._initialized = True
        self._bootstrap()
        self._run_integrity_checks()
        return self.registry

    def _bootstrap(self) -> None:
        if self.start_mode is StartMode.AS_IT_IS:
            return
        entries = self.registry.entries()
        if self.start_mode is StartMode.DROP_AND_CREATE:
            for entry in reversed(entries):
                self.schema.drop_table_if_exists(entry.profile)
        created: list[type] = []
        for entry in entries:
            if self.schema.table_exists(entry.profile.table_name):
                continue
            self.schema.create_table_if_not_exists(entry.profile)
            if not entry.is_join:
                created.append(entry.profile.entity_type)
        for entity_type in created:
            for action in self._on_create.get(entity_type, []):
                action(self.registry)
        logger.info(
            "environment_initialized",
            url=self.data_source.info.url,
            start_mode=self.start_mode.value,
            tables=len(entries),
            created=len(created),
        )

    def _run_integrity_checks(self) -> None:
        for entity_type, action in self._integrity_checks:
            logger.debug("integrity_check", entity=entity_type.__name__)
            action(self.registry)

    # -- Access -------------------------------------------------------------

    def crud(self, entity_type: type) -> CRUDRepository[Any]:
        return self.registry.crud(entity_type)

    def persist(self, entity_type: type) -> PersistRepository[Any]:
        return self.registry.persist(entity_type)

    # -- Lifecycle ----------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.data_source.close()
        logger.info("environment_closed", url=self.data_source.info.url)

    def __enter__(self) -> DBEnvironment:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DBEnvironment({self.data_source.info!r}, start_mode={self.start_mode.value!r})"


__all__ = ["DBEnvironment", "IntegrityCheckAction", "OnCreateAction"]
