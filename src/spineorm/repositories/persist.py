"""Persist repository: cascading save / update / load / persist.

Each cascade covers one owner entity, its many-to-many collections and the
join rows linking them. Cascades run inside one
:meth:`~spineorm.datasource.DataSource.transaction`, so a failure part-way
through rolls back the owner, embedded and join-row writes together.

Cascade semantics per many-to-many owner column::

    save     add owner → [add embedded if insertable] → add join row
    update   update owner → delete all join rows → [update embedded if
             updatable] → add join rows for the current collection
    persist  merge owner → merge embedded (insertable and updatable) or
             refresh it → add join row
    load     get owner → eager columns: join rows → embedded by id

A ``None`` collection is skipped entirely; an empty one clears membership
on update. Join-row ``RECORD_EXISTS`` is idempotent and ignored.

Tags:
    repository, cascade, many-to-many, transaction, spine-orm
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from spineorm.errors import ArgumentError, RecordExistsError
from spineorm.logging import get_logger
from spineorm.profile import Column, Profile
from spineorm.repositories.crud import CRUDRepository
from spineorm.repositories.join import JoinRepository

if TYPE_CHECKING:
    from spineorm.registry import Registry

logger = get_logger(__name__)

T = TypeVar("T")


class PersistRepository(Generic[T]):
    """Cascading orchestrator for one owner entity type.

    Embedded and join repositories are resolved through the registry at call
    time.
    """

    def __init__(self, crud: CRUDRepository[T], registry: Registry) -> None:
        self.crud = crud
        self.registry = registry

    @property
    def profile(self) -> Profile:
        return self.crud.profile

    @property
    def data_source(self) -> Any:
        return self.crud.executor.data_source

    # -- Resolution ---------------------------------------------------------

    def _embedded_crud(self, column: Column) -> CRUDRepository[Any]:
        return self.registry.crud(column.target_type)

    def _join_crud(self, column: Column) -> JoinRepository:
        assert column.join_profile is not None, f"{column!r} was never wired"
        entry = self.registry.resolve_by_table_name(column.join_profile.table_name)
        return entry.crud  # type: ignore[return-value]

    def _collection(self, entity: T, column: Column) -> Iterable[Any] | None:
        return column.get_value(entity)

    def _link(self, join: JoinRepository, owner: T, column: Column, embedded: Any) -> None:
        owner_id = self.profile.get_id_value(owner)
        assert column.target_profile is not None
        embedded_id = column.target_profile.get_id_value(embedded)
        if embedded_id is None:
            raise ArgumentError(
                f"Unexpected ID=None in embedded entity {embedded!r}"
            ).with_context(table=join.profile.table_name, column=column.field_name)
        try:
            join.add(join.create_entity(owner_id, embedded_id))
        except RecordExistsError:
            logger.debug(
                "join_row_exists",
                table=join.profile.table_name,
                owner_id=owner_id,
                embedded_id=embedded_id,
            )

    # -- Cascades -----------------------------------------------------------

    def save(self, entity: T) -> None:
        """Add the owner, its embedded elements (if insertable) and join rows."""
        with self.data_source.transaction():
            self.crud.add(entity)
            for column in self.profile.many_to_many_columns:
                elements = self._collection(entity, column)
                if elements is None:
                    continue
                embedded_crud = self._embedded_crud(column)
                join = self._join_crud(column)
                for element in elements:
                    if column.insertable:
                        embedded_crud.add(element)
                    self._link(join, entity, column, element)

    def update(self, entity: T) -> None:
        """Update the owner and fully replace each association's membership."""
        with self.data_source.transaction():
            self.crud.update(entity)
            owner_id = self.profile.get_id_value(entity)
            for column in self.profile.many_to_many_columns:
                elements = self._collection(entity, column)
                if elements is None:
                    continue
                embedded_crud = self._embedded_crud(column)
                join = self._join_crud(column)
                join.delete_all_embedded(owner_id)
                for element in elements:
                    if column.updatable:
                        embedded_crud.update(element)
                    self._link(join, entity, column, element)

    def save_or_update(self, entity: T) -> None:
        if self.profile.get_id_value(entity) is None:
            self.save(entity)
        else:
            self.update(entity)

    def _persist_embedded(self, column: Column, embedded_crud: CRUDRepository[Any], element: Any) -> None:
        assert column.target_profile is not None
        has_id = column.target_profile.get_id_value(element) is not None
        if not has_id and not column.insertable:
            raise ArgumentError(
                f"Try add record in non-insertable column: {column.column_name}"
            ).with_context(table=self.profile.table_name, column=column.column_name)
        if not has_id and not column.updatable:
            raise ArgumentError(
                f"Try update record in non-updatable column: {column.column_name}"
            ).with_context(table=self.profile.table_name, column=column.column_name)
        if column.insertable and column.updatable:
            embedded_crud.merge(element)
        else:
            embedded_crud.refresh(element)

    def persist(self, entity: T) -> None:
        """Merge the owner and its embedded elements, then upsert join rows."""
        with self.data_source.transaction():
            self.crud.merge(entity)
            for column in self.profile.many_to_many_columns:
                elements = self._collection(entity, column)
                if elements is None:
                    continue
                embedded_crud = self._embedded_crud(column)
                join = self._join_crud(column)
                for element in elements:
                    self._persist_embedded(column, embedded_crud, element)
                    self._link(join, entity, column, element)

    # -- Loading ------------------------------------------------------------

    def _load_embedded(self, entity: T) -> None:
        owner_id = self.profile.get_id_value(entity)
        for column in self.profile.many_to_many_columns:
            if not column.fetch_eager:
                continue
            embedded_crud = self._embedded_crud(column)
            join = self._join_crud(column)
            found = (embedded_crud.get(row.embedded_id) for row in join.find_all_embedded(owner_id))
            assert column.container is not None
            column.set_value(entity, column.container(e for e in found if e is not None))

    def load(self, id: Any) -> T | None:
        """Get the owner and populate its eager collections."""
        with self.data_source.transaction():
            entity = self.crud.get(id)
            if entity is not None:
                self._load_embedded(entity)
        return entity

    def refresh(self, entity: T) -> None:
        """Re-read the owner in place and re-populate eager collections.

        Raises:
            RecordNotFoundError: the owner row no longer exists.
        """
        with self.data_source.transaction():
            self.crud.refresh(entity)
            self._load_embedded(entity)

    def __repr__(self) -> str:
        return f"PersistRepository({self.profile.table_name})"


__all__ = ["PersistRepository"]
