"""Join repository: CRUD over the synthetic rows of one association table."""

from __future__ import annotations

from typing import Any

from spineorm.entities import JoinTableEntity
from spineorm.profile import JoinProfile
from spineorm.repositories.crud import CRUDRepository


class JoinRepository(CRUDRepository[JoinTableEntity]):
    """Directional lookups and bulk delete for (owner, embedded) rows.

    Used by :class:`~spineorm.repositories.persist.PersistRepository` to
    implement cascades.
    """

    @property
    def profile(self) -> JoinProfile:
        return self.executor.profile  # type: ignore[return-value]

    def _predicate(self, field_name: str) -> str:
        column = self.profile.column_by_field(field_name)
        return f'"{column.column_name}"={self.executor.dialect.placeholder(0)}'

    def find_all_embedded(self, owner_id: Any) -> list[JoinTableEntity]:
        return self.find_all(self._predicate("owner_id"), owner_id)

    def find_all_owners(self, embedded_id: Any) -> list[JoinTableEntity]:
        return self.find_all(self._predicate("embedded_id"), embedded_id)

    def delete_all_embedded(self, owner_id: Any) -> int:
        return self.delete_all(self._predicate("owner_id"), owner_id)

    def create_entity(self, owner_id: Any, embedded_id: Any) -> JoinTableEntity:
        return JoinTableEntity(owner_id=owner_id, embedded_id=embedded_id)


__all__ = ["JoinRepository"]
