"""CRUD repository: domain error taxonomy and identity-or-unique-key merge.

Store-level constraint violations raised by the executor are translated
here, exactly once, into :class:`~spineorm.errors.DAOError` subclasses
carrying the offending value.

Merge search order::

    1. identity           row with the same id exists?        → enrich + update
    2. unique columns     declared order, non-null values only → first match
    3. unique constraints declared order, no null members      → first match
    4. nothing matched                                         → add

Tags:
    repository, crud, merge, upsert, spine-orm
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any, Generic, TypeVar

from spineorm.errors import ArgumentError, RecordNotFoundError, translate_integrity_error
from spineorm.executor import EntityCursor, EntityExecutor
from spineorm.logging import get_logger
from spineorm.profile import Profile

logger = get_logger(__name__)

T = TypeVar("T")


class CRUDRepository(Generic[T]):
    """Per-entity-type CRUD over an :class:`EntityExecutor`."""

    def __init__(self, executor: EntityExecutor[T]) -> None:
        self.executor = executor

    @property
    def profile(self) -> Profile:
        return self.executor.profile

    @property
    def entity_type(self) -> type[T]:
        return self.executor.entity_type

    @contextmanager
    def _translating(self, entity: Any = None) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError as e:
            error = translate_integrity_error(e, entity, table=self.profile.table_name)
            logger.debug(
                "constraint_violation",
                table=self.profile.table_name,
                error_code=error.error_code.value,
                entity=repr(entity),
            )
            raise error from e

    # -- Create -------------------------------------------------------------

    def add(self, entity: T) -> None:
        """Insert *entity*.

        Raises:
            RecordExistsError: primary-key or unique violation.
            ForeignKeyError: referential violation.
        """
        with self._translating(entity):
            self.executor.create(entity)

    def add_all(self, entities: Iterable[T]) -> None:
        batch = list(entities)
        with self._translating(batch):
            self.executor.create_all(batch)

    # -- Read ---------------------------------------------------------------

    def get(self, id: Any) -> T | None:
        return self.executor.read(id)

    def get_by_entity(self, entity: T) -> T | None:
        return self.executor.read_by_natural_key(entity)

    def get_all(self) -> EntityCursor[T]:
        """Lazy full-table scan; close it (or use ``with``) if not exhausted."""
        return self.executor.read_all()

    def find_by_unique(self, column_names: str | Sequence[str], values: Any) -> T | None:
        return self.executor.find_by_unique(column_names, values)

    def find_all(self, where: str, *args: Any) -> list[T]:
        return self.executor.find_all(where, *args)

    def query(self, sql: str, *args: Any) -> list[T]:
        return self.executor.query(sql, *args)

    def refresh(self, entity: T) -> None:
        """Re-read *entity* by identity in place.

        Raises:
            RecordNotFoundError: no row has the entity's identity.
        """
        if self.executor.refresh(entity) == 0:
            raise RecordNotFoundError(
                f"Record not found: {entity!r}", cause_entity=entity
            ).with_context(table=self.profile.table_name)

    # -- Update -------------------------------------------------------------

    def update(self, entity: T) -> None:
        if self.profile.get_id_value(entity) is None:
            raise ArgumentError(
                f"Wrong ID for update. Expected not null ID for entity {entity!r}"
            ).with_context(table=self.profile.table_name)
        with self._translating(entity):
            self.executor.update(entity)

    def update_field(self, id: Any, field_name: str, value: Any) -> None:
        with self._translating(value):
            self.executor.update_field(id, field_name, value)

    def add_or_update(self, entity: T) -> None:
        """Insert when the identity is null or unknown, else update."""
        id_value = self.profile.get_id_value(entity)
        if id_value is None or self.get(id_value) is None:
            self.add(entity)
        else:
            self.update(entity)

    def _find_by_unique_keys(self, entity: T) -> T | None:
        profile = self.profile
        for column in profile.unique_columns:
            if column.id:
                continue
            value = column.get_value(entity)
            if value is None:
                continue
            found = self.find_by_unique(column.column_name, value)
            if found is not None:
                return found
        for constraint in profile.unique_constraints:
            values = profile.values(constraint.column_names, entity)
            if any(v is None for v in values):
                continue
            found = self.find_by_unique(constraint.column_names, values)
            if found is not None:
                return found
        return None

    def merge(self, entity: T) -> T:
        """Upsert by identity, then unique columns, then unique constraints.

        Null fields of *entity* are filled from the matched stored row
        before the update, so omitted values keep what was stored.
        """
        profile = self.profile
        id_value = profile.get_id_value(entity)
        if id_value is not None:
            found = self.get(id_value)
            if found is not None:
                profile.enrich(entity, found)
                self.update(entity)
                return entity

        found = self._find_by_unique_keys(entity)
        if found is None:
            self.add(entity)
        else:
            profile.set_id_value(entity, profile.get_id_value(found))
            profile.enrich(entity, found)
            self.update(entity)
        return entity

    # -- Delete -------------------------------------------------------------

    def delete(self, id: Any) -> None:
        with self._translating():
            self.executor.delete(id)

    def delete_all(self, where: str = "", *args: Any) -> int:
        with self._translating():
            return self.executor.delete_all(where, *args)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.profile.table_name})"


__all__ = ["CRUDRepository"]
