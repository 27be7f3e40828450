"""Built-in entity types used by the ORM itself."""

from __future__ import annotations

from dataclasses import dataclass

from spineorm.annotations import column, entity, id_column


@entity
@dataclass
class JoinTableEntity:
    """One association row: a generated identity plus the (owner, embedded) pair.

    Column names and types of ``owner_id`` / ``embedded_id`` are replaced per
    association when the join profile is synthesized.
    """

    id: int | None = id_column()
    owner_id: int | None = column()
    embedded_id: int | None = column()


__all__ = ["JoinTableEntity"]
