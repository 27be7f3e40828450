"""Entity declaration surface: the ``@entity`` marker and field options.

Entities are ordinary dataclasses. The ``@entity`` decorator marks a class as
persistable and records table-level options; per-field options travel in the
dataclass field metadata under :data:`METADATA_KEY`.

Usage::

    @entity(table="MainTable", unique_constraints=[UniqueConstraint(("str_field", "tag"))])
    @dataclass
    class Main:
        id: int | None = id_column()
        str_field: str | None = column()
        unique_field: str | None = column(name="UniqueField", unique=True)
        tags: list[Tag] = many_to_many(fetch=FetchType.EAGER)
        scratch: str = transient(default="")

Tags:
    entity, annotations, metadata, dataclasses, spine-orm
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

METADATA_KEY = "spineorm"
ENTITY_ATTR = "__spineorm_entity__"

T = TypeVar("T", bound=type)


class GenerationType(str, Enum):
    """Identity generation strategy."""

    NONE = "none"
    AUTO = "auto"
    IDENTITY = "identity"


class FetchType(str, Enum):
    """When association collections are loaded."""

    LAZY = "lazy"
    EAGER = "eager"


@dataclass(frozen=True)
class UniqueConstraint:
    """Composite unique constraint over column names (not field names)."""

    column_names: tuple[str, ...]
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "column_names", tuple(self.column_names))


@dataclass(frozen=True)
class JoinColumn:
    name: str = ""
    referenced_column_name: str = ""


@dataclass(frozen=True)
class JoinTable:
    """Explicit naming for a synthesized association table."""

    name: str = ""
    join_column: JoinColumn | None = None
    inverse_join_column: JoinColumn | None = None


@dataclass(frozen=True)
class ManyToManyOptions:
    fetch: FetchType = FetchType.LAZY
    mapped_by: str = ""
    join_table: JoinTable | None = None


@dataclass(frozen=True)
class ColumnOptions:
    """Per-field naming and constraint options with their declared defaults."""

    name: str = ""
    nullable: bool = True
    unique: bool = False
    insertable: bool = True
    updatable: bool = True
    length: int = 255
    column_definition: str = ""
    id: bool = False
    generation: GenerationType = GenerationType.NONE
    transient: bool = False
    many_to_many: ManyToManyOptions | None = None


@dataclass(frozen=True)
class EntityOptions:
    table: str = ""
    unique_constraints: tuple[UniqueConstraint, ...] = ()


def entity(
    cls: T | None = None,
    *,
    table: str = "",
    unique_constraints: Sequence[UniqueConstraint] = (),
) -> T | Callable[[T], T]:
    """Mark a dataclass as a persistable entity.

    Usable bare (``@entity``) or with options (``@entity(table="t")``). The
    marker is not inherited: subclasses of an entity need their own.
    """

    def wrap(target: T) -> T:
        setattr(
            target,
            ENTITY_ATTR,
            EntityOptions(table=table, unique_constraints=tuple(unique_constraints)),
        )
        return target

    if cls is None:
        return wrap
    return wrap(cls)


def entity_options(entity_type: type) -> EntityOptions | None:
    """Options declared directly on *entity_type*, ``None`` if unmarked."""
    return entity_type.__dict__.get(ENTITY_ATTR)


def _field(options: ColumnOptions, default: Any, default_factory: Any) -> Any:
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata={METADATA_KEY: options},
    )


def column(
    *,
    name: str = "",
    nullable: bool = True,
    unique: bool = False,
    insertable: bool = True,
    updatable: bool = True,
    length: int = 255,
    column_definition: str = "",
    default: Any = None,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """Declare a mapped scalar field."""
    if default_factory is not dataclasses.MISSING:
        default = dataclasses.MISSING
    options = ColumnOptions(
        name=name,
        nullable=nullable,
        unique=unique,
        insertable=insertable,
        updatable=updatable,
        length=length,
        column_definition=column_definition,
    )
    return _field(options, default, default_factory)


def id_column(
    *,
    name: str = "",
    generation: GenerationType = GenerationType.AUTO,
    unique: bool = False,
    updatable: bool = False,
    column_definition: str = "",
    default: Any = None,
) -> Any:
    """Declare the identity field. Generated identities must be ``int``."""
    options = ColumnOptions(
        name=name,
        unique=unique,
        updatable=updatable,
        column_definition=column_definition,
        id=True,
        generation=generation,
    )
    return _field(options, default, dataclasses.MISSING)


def many_to_many(
    *,
    fetch: FetchType = FetchType.LAZY,
    mapped_by: str = "",
    join_table: JoinTable | None = None,
    insertable: bool = True,
    updatable: bool = True,
    default_factory: Callable[[], Any] = list,
) -> Any:
    """Declare a collection association persisted through a join table.

    A non-empty ``mapped_by`` marks the inverse side, which is neither stored
    nor cascaded.
    """
    options = ColumnOptions(
        insertable=insertable,
        updatable=updatable,
        many_to_many=ManyToManyOptions(fetch=fetch, mapped_by=mapped_by, join_table=join_table),
    )
    return _field(options, dataclasses.MISSING, default_factory)


def transient(*, default: Any = None, default_factory: Any = dataclasses.MISSING) -> Any:
    """Declare a field that is never persisted."""
    if default_factory is not dataclasses.MISSING:
        default = dataclasses.MISSING
    return _field(ColumnOptions(transient=True), default, default_factory)


__all__ = [
    "METADATA_KEY",
    "ENTITY_ATTR",
    "GenerationType",
    "FetchType",
    "UniqueConstraint",
    "JoinColumn",
    "JoinTable",
    "ManyToManyOptions",
    "ColumnOptions",
    "EntityOptions",
    "entity",
    "entity_options",
    "column",
    "id_column",
    "many_to_many",
    "transient",
]
