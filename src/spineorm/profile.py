"""
Entity profiles: the canonical schema description of one entity type.

A :class:`Profile` is derived once per entity type by
:mod:`spineorm.profile_factory` and drives every statement, bind and
hydration afterwards. Column ``order`` is the single source of positional
parameter order: CREATE, INSERT, UPDATE and row hydration all walk the same
ordered views.

Architecture:
    ::

        Profile (MainTable)
        ├── columns (ordered, root class first)
        │     1 id            INTEGER  id, generated
        │     2 str_field     TEXT
        │     3 UniqueField   TEXT     unique
        │     4 tags          ──────── many-to-many owner → JoinProfile
        ├── unique_constraints  (("str_field", "UniqueField"),)
        ├── foreign_keys        ()
        └── statements          INSERT / UPDATE_BY_ID / READ_BY_ENTITY

        JoinProfile (MainTable_TagTable)
        ├── id, MainTable_Id, TagTable_Id
        ├── UNIQUE(MainTable_Id, TagTable_Id)
        └── 2 x FOREIGN KEY ... ON DELETE CASCADE

Value access goes through accessor pairs built once per column, never
through ad-hoc ``getattr`` with computed names at call sites.

Tags:
    profile, schema, metadata, columns, spine-orm
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from spineorm.annotations import GenerationType, UniqueConstraint
from spineorm.errors import ArgumentError, ConfigurationError

SUPPORTED_TYPES: tuple[type, ...] = (str, int, float, bool)

STATEMENT_INSERT = "INSERT"
STATEMENT_UPDATE_BY_ID = "UPDATE_BY_ID"
STATEMENT_READ_BY_ENTITY = "READ_BY_ENTITY"


# ── Scalar conversion (closed set) ───────────────────────────────────────


def _read_bool(value: Any) -> bool:
    return bool(value)


_READERS: dict[type, Callable[[Any], Any]] = {
    str: str,
    int: int,
    float: float,
    bool: _read_bool,
}


def reader_for(target_type: type) -> Callable[[Any], Any]:
    """Return the row-value converter for a supported scalar type."""
    try:
        convert = _READERS[target_type]
    except KeyError:
        raise ConfigurationError(f"Unsupported column type: {target_type!r}") from None

    def read(value: Any) -> Any:
        return None if value is None else convert(value)

    return read


def to_db_value(value: Any) -> Any:
    """Convert a Python value to its bound parameter form.

    Raises:
        ConfigurationError: for a type outside {str, int, float, bool}.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (str, int, float)):
        return value
    raise ConfigurationError(f"Unexpected value type: {type(value).__qualname__}")


# ── Column / keys ────────────────────────────────────────────────────────


@dataclass(eq=False)
class Column:
    """One mapped field with storage name, type and constraint flags."""

    field_name: str
    column_name: str
    target_type: type
    order: int = 0
    id: bool = False
    generation: GenerationType = GenerationType.NONE
    insertable: bool = True
    updatable: bool = True
    unique: bool = False
    nullable: bool = True
    length: int = 255
    column_definition: str = ""
    primitive: bool = True
    many_to_many_owner: bool = False
    fetch_eager: bool = False
    container: Callable[[Iterable[Any]], Any] | None = None
    join_table: Any = None
    target_profile: Profile | None = None
    join_profile: JoinProfile | None = None
    get_value: Callable[[Any], Any] = field(default=None, repr=False)  # type: ignore[assignment]
    set_value: Callable[[Any, Any], None] = field(default=None, repr=False)  # type: ignore[assignment]
    from_db: Callable[[Any], Any] = field(default=None, repr=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        name = self.field_name

        def get_value(entity: Any) -> Any:
            return getattr(entity, name)

        def set_value(entity: Any, value: Any) -> None:
            setattr(entity, name, value)

        self.get_value = get_value
        self.set_value = set_value
        if self.primitive:
            self.from_db = reader_for(self.target_type)

    @property
    def generated(self) -> bool:
        return self.generation is not GenerationType.NONE

    def __repr__(self) -> str:
        return (
            f"Column(field={self.field_name!r}, column_name={self.column_name!r}, "
            f"target_type={getattr(self.target_type, '__name__', self.target_type)})"
        )


@dataclass(frozen=True)
class ForeignKey:
    reference_table: str
    columns: tuple[str, ...]
    reference_columns: tuple[str, ...]


# ── Profile ──────────────────────────────────────────────────────────────


class Profile:
    """Derived schema and cached statement text for one entity type.

    Immutable after derivation, except for the one-time attachment of a
    join profile to each many-to-many owner column.
    """

    def __init__(
        self,
        entity_type: type,
        table_name: str,
        columns: Sequence[Column],
        unique_constraints: Sequence[UniqueConstraint] = (),
        foreign_keys: Sequence[ForeignKey] = (),
    ) -> None:
        self.entity_type = entity_type
        self.table_name = table_name
        self._columns = sorted(columns, key=lambda c: c.order)
        self.unique_constraints: tuple[UniqueConstraint, ...] = tuple(unique_constraints)
        self.foreign_keys: tuple[ForeignKey, ...] = tuple(foreign_keys)
        self.statements: dict[str, str] = {}
        self._by_field: dict[str, Column] = {}
        self._by_column: dict[str, Column] = {}
        self._reindex()

        ids = [c for c in self._columns if c.id]
        if len(ids) != 1:
            raise ConfigurationError(
                f"Exactly one ID column expected in {entity_type.__qualname__}, found {len(ids)}"
            )
        self.id_column = ids[0]

    def _reindex(self) -> None:
        self._by_field = {}
        self._by_column = {}
        for column in self._columns:
            if column.field_name in self._by_field:
                raise ConfigurationError(f"Duplicate field {column.field_name!r} in {self.table_name}")
            if column.column_name in self._by_column:
                raise ConfigurationError(f"Duplicate column {column.column_name!r} in {self.table_name}")
            self._by_field[column.field_name] = column
            self._by_column[column.column_name] = column

    # -- Ordered views -----------------------------------------------------

    @property
    def columns(self) -> list[Column]:
        return list(self._columns)

    @property
    def create_table_columns(self) -> list[Column]:
        """Stored columns in order; also the projection order of ``SELECT *``."""
        return [c for c in self._columns if c.primitive]

    @property
    def insertable_columns(self) -> list[Column]:
        return [c for c in self._columns if c.primitive and c.insertable]

    @property
    def updatable_columns(self) -> list[Column]:
        return [c for c in self._columns if c.primitive and c.updatable and not c.id]

    @property
    def unique_columns(self) -> list[Column]:
        return [c for c in self._columns if c.primitive and c.unique]

    @property
    def many_to_many_columns(self) -> list[Column]:
        return [c for c in self._columns if c.many_to_many_owner]

    # -- Lookups -----------------------------------------------------------

    def column_by_field(self, field_name: str) -> Column:
        try:
            return self._by_field[field_name]
        except KeyError:
            raise ArgumentError(f"No such field: {field_name}").with_context(
                table=self.table_name, column=field_name
            ) from None

    def column(self, column_name: str) -> Column:
        try:
            return self._by_column[column_name]
        except KeyError:
            raise ArgumentError(f"No such column: {column_name}").with_context(
                table=self.table_name, column=column_name
            ) from None

    def has_column(self, column_name: str) -> bool:
        return column_name in self._by_column

    def statement(self, key: str) -> str:
        return self.statements[key]

    # -- Instances ---------------------------------------------------------

    def new_instance(self) -> Any:
        return self.entity_type()

    def get_id_value(self, entity: Any) -> Any:
        return self.id_column.get_value(entity)

    def set_id_value(self, entity: Any, value: Any) -> None:
        self.id_column.set_value(entity, value)

    def values(self, column_names: Sequence[str], entity: Any) -> list[Any]:
        return [self.column(name).get_value(entity) for name in column_names]

    def _check_types(self, a: Any, b: Any) -> None:
        if type(a) is not type(b):
            raise ArgumentError(f"Wrong class types: {type(a).__qualname__} and {type(b).__qualname__}")

    def copy(self, source: Any, destination: Any) -> None:
        """Copy every stored column value from *source* onto *destination*."""
        self._check_types(source, destination)
        for column in self.create_table_columns:
            column.set_value(destination, column.get_value(source))

    def enrich(self, entity: Any, from_entity: Any) -> None:
        """Fill the null stored columns of *entity* from *from_entity*."""
        self._check_types(entity, from_entity)
        for column in self.create_table_columns:
            if column.get_value(entity) is None:
                column.set_value(entity, column.get_value(from_entity))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table_name={self.table_name!r}, id_column={self.id_column!r})"


class JoinProfile(Profile):
    """Profile of a synthesized association table."""

    @property
    def owner_column(self) -> Column:
        return self.column_by_field("owner_id")

    @property
    def embedded_column(self) -> Column:
        return self.column_by_field("embedded_id")


__all__ = [
    "SUPPORTED_TYPES",
    "STATEMENT_INSERT",
    "STATEMENT_UPDATE_BY_ID",
    "STATEMENT_READ_BY_ENTITY",
    "Column",
    "ForeignKey",
    "Profile",
    "JoinProfile",
    "reader_for",
    "to_db_value",
]
