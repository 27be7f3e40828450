"""
Registry: entity type / table name → profile, executor and repositories.

Built once at startup in three explicit phases, read-only afterwards::

    registry = Registry(data_source)
    registry.register(Main)          # phase 1: profile + executor per type
    registry.register(Tag)
    registry.wire_associations()     # phase 2: join profiles + join executors
    registry.build_repositories()    # phase 3: CRUD / Join / Persist repos

Phase 2 needs every sibling profile to exist, which is why association
wiring is a separate call rather than a side effect of registration.
Registration order is preserved everywhere (``profiles()`` lists entity
tables first, then join tables), so table creation order is deterministic.

Tags:
    registry, container, wiring, two-phase, spine-orm
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from spineorm.dialect import Dialect, SQLiteDialect
from spineorm.entities import JoinTableEntity
from spineorm.errors import ArgumentError, ConfigurationError
from spineorm.executor import EntityExecutor
from spineorm.logging import get_logger
from spineorm.profile import JoinProfile, Profile
from spineorm.profile_factory import derive_profile, synthesize_join
from spineorm.repositories.crud import CRUDRepository
from spineorm.repositories.join import JoinRepository
from spineorm.repositories.persist import PersistRepository

logger = get_logger(__name__)


class RegistryPhase(str, Enum):
    REGISTERING = "registering"
    WIRED = "wired"
    BUILT = "built"


@dataclass
class RegistryEntry:
    """Everything the ORM holds for one table."""

    profile: Profile
    executor: EntityExecutor[Any]
    crud: CRUDRepository[Any] | None = None
    persist: PersistRepository[Any] | None = None

    @property
    def is_join(self) -> bool:
        return isinstance(self.profile, JoinProfile)


class Registry:
    """Two-pass-wired container of per-entity ORM components."""

    def __init__(
        self,
        data_source: Any,
        dialect: Dialect | None = None,
        *,
        formatted_sql: bool = False,
    ) -> None:
        self.data_source = data_source
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.formatted_sql = formatted_sql
        self.phase = RegistryPhase.REGISTERING
        self._by_type: dict[type, RegistryEntry] = {}
        self._by_table: dict[str, RegistryEntry] = {}

    def _require(self, phase: RegistryPhase, action: str) -> None:
        if self.phase is not phase:
            raise ConfigurationError(
                f"Cannot {action} in phase {self.phase.value!r}, expected {phase.value!r}"
            )

    def _add_table(self, entry: RegistryEntry) -> None:
        key = entry.profile.table_name.lower()
        if key in self._by_table:
            raise ConfigurationError(
                f"Table {entry.profile.table_name} is already registered"
            ).with_context(table=entry.profile.table_name)
        self._by_table[key] = entry

    def _executor(self, profile: Profile) -> EntityExecutor[Any]:
        return EntityExecutor(profile, self.data_source, self.dialect, formatted_sql=self.formatted_sql)

    # -- Phase 1 ------------------------------------------------------------

    def register(self, entity_type: type) -> RegistryEntry:
        """Derive the profile of *entity_type* and create its executor.

        Registering the same type twice returns the existing entry.
        """
        self._require(RegistryPhase.REGISTERING, f"register {entity_type!r}")
        if entity_type in self._by_type:
            return self._by_type[entity_type]
        profile = derive_profile(entity_type, self.dialect)
        entry = RegistryEntry(profile, self._executor(profile))
        self._add_table(entry)
        self._by_type[entity_type] = entry
        logger.debug("entity_registered", entity=entity_type.__qualname__, table=profile.table_name)
        return entry

    # -- Phase 2 ------------------------------------------------------------

    def wire_associations(self) -> None:
        """Synthesize a join profile and executor for every many-to-many owner column."""
        self._require(RegistryPhase.REGISTERING, "wire associations")
        for entry in list(self._by_type.values()):
            owner = entry.profile
            for column in owner.many_to_many_columns:
                target = self._by_type.get(column.target_type)
                if target is None:
                    raise ConfigurationError(
                        f"Entity {column.target_type!r} joined by {owner.table_name}.{column.field_name} "
                        "is not registered"
                    ).with_context(table=owner.table_name, column=column.field_name)
                join_profile = synthesize_join(column, owner, target.profile, self.dialect)
                self._add_table(RegistryEntry(join_profile, self._executor(join_profile)))
        self.phase = RegistryPhase.WIRED

    # -- Phase 3 ------------------------------------------------------------

    def build_repositories(self) -> None:
        self._require(RegistryPhase.WIRED, "build repositories")
        for entry in self._by_table.values():
            if entry.is_join:
                entry.crud = JoinRepository(entry.executor)
            else:
                entry.crud = CRUDRepository(entry.executor)
                entry.persist = PersistRepository(entry.crud, self)
        self.phase = RegistryPhase.BUILT
        logger.debug("registry_built", tables=[e.profile.table_name for e in self._by_table.values()])

    def build(self, *entity_types: type) -> Registry:
        """Run all three phases for *entity_types*."""
        for entity_type in entity_types:
            self.register(entity_type)
        self.wire_associations()
        self.build_repositories()
        return self

    # -- Queries ------------------------------------------------------------

    def resolve_by_type(self, entity_type: type) -> RegistryEntry:
        try:
            return self._by_type[entity_type]
        except KeyError:
            name = getattr(entity_type, "__qualname__", repr(entity_type))
            if entity_type is JoinTableEntity:
                raise ArgumentError(
                    "Join rows are resolved by table name, not by type"
                ).with_context(entity_type=name) from None
            raise ArgumentError(f"Entity {name} is not registered").with_context(
                entity_type=name
            ) from None

    def resolve_by_table_name(self, table_name: str) -> RegistryEntry:
        try:
            return self._by_table[table_name.lower()]
        except KeyError:
            raise ArgumentError(f"No table {table_name} is registered").with_context(
                table=table_name
            ) from None

    def _built_entry(self, entity_type: type) -> RegistryEntry:
        self._require(RegistryPhase.BUILT, "resolve repositories")
        return self.resolve_by_type(entity_type)

    def crud(self, entity_type: type) -> CRUDRepository[Any]:
        entry = self._built_entry(entity_type)
        assert entry.crud is not None
        return entry.crud

    def persist(self, entity_type: type) -> PersistRepository[Any]:
        entry = self._built_entry(entity_type)
        assert entry.persist is not None
        return entry.persist

    def profiles(self) -> list[Profile]:
        """Every profile in creation order: entities first, then join tables."""
        return [entry.profile for entry in self._by_table.values()]

    def entries(self) -> list[RegistryEntry]:
        return list(self._by_table.values())

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._by_type

    def __repr__(self) -> str:
        return f"Registry(phase={self.phase.value!r}, tables={len(self._by_table)})"


__all__ = [
    "Registry",
    "RegistryEntry",
    "RegistryPhase",
]
