"""
Profile derivation: reflect over an entity dataclass once and build its
:class:`~spineorm.profile.Profile`.

Manifesto:
    Every defect in entity metadata is found here, at registration time,
    and reported as :class:`~spineorm.errors.ConfigurationError`. Nothing
    downstream re-inspects the class.

Algorithm:
    1. Verify the ``@entity`` marker, dataclass-ness, mutability and a
       parameterless constructor.
    2. Walk ``dataclasses.fields`` (root ancestor first) and build one
       :class:`~spineorm.profile.Column` per non-transient field, numbering
       ``order`` from 1.
    3. Resolve ``Optional[...]`` scalars and collection element types of
       many-to-many fields.
    4. Designate the single id column.
    5. Cache INSERT, UPDATE_BY_ID and READ_BY_ENTITY statement text.

Join synthesis (:func:`synthesize_join`) runs later, in the registry's
wiring phase, once both sides of an association have profiles.

Tags:
    profile, reflection, dataclasses, metadata, spine-orm
"""

from __future__ import annotations

import collections.abc
import dataclasses
import inspect
import types
import typing
from typing import Any, Final, Union

from spineorm import statements
from spineorm.annotations import (
    METADATA_KEY,
    ColumnOptions,
    FetchType,
    GenerationType,
    UniqueConstraint,
    entity_options,
)
from spineorm.dialect import Dialect, SQLiteDialect
from spineorm.entities import JoinTableEntity
from spineorm.errors import ConfigurationError
from spineorm.logging import get_logger
from spineorm.profile import (
    STATEMENT_INSERT,
    STATEMENT_READ_BY_ENTITY,
    STATEMENT_UPDATE_BY_ID,
    SUPPORTED_TYPES,
    Column,
    ForeignKey,
    JoinProfile,
    Profile,
)

logger = get_logger(__name__)

_DEFAULT_OPTIONS = ColumnOptions()

# Collection origin → container used when hydrating the association.
_CONTAINERS: dict[Any, Any] = {
    list: list,
    set: set,
    frozenset: frozenset,
    tuple: tuple,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Collection: list,
    collections.abc.Iterable: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
}


def _unwrap_optional(annotation: Any) -> Any:
    """Strip ``None`` from ``X | None`` / ``Optional[X]``."""
    if typing.get_origin(annotation) in (Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _check_constructible(entity_type: type) -> None:
    try:
        signature = inspect.signature(entity_type)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Cannot inspect constructor of {entity_type.__qualname__}", cause=e
        ) from e
    required = [
        p.name
        for p in signature.parameters.values()
        if p.default is inspect.Parameter.empty
        and p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]
    if required:
        raise ConfigurationError(
            f"Parameterless constructor not found in {entity_type.__qualname__}; "
            f"fields without defaults: {', '.join(required)}"
        ).with_context(entity_type=entity_type.__qualname__)


def _resolve_hints(entity_type: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(entity_type, include_extras=True)
    except (NameError, TypeError) as e:
        raise ConfigurationError(
            f"Cannot resolve field annotations of {entity_type.__qualname__}: {e}",
            cause=e,
        ) from e


def _build_collection_column(
    entity_type: type,
    f: dataclasses.Field,
    annotation: Any,
    options: ColumnOptions,
    order: int,
) -> Column:
    m2m = options.many_to_many
    assert m2m is not None
    annotation = _unwrap_optional(annotation)
    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin not in _CONTAINERS or not args:
        raise ConfigurationError(
            f"Many-to-many field {entity_type.__qualname__}.{f.name} must be a "
            f"parameterized collection (list[X], set[X], ...), got {annotation!r}"
        ).with_context(entity_type=entity_type.__qualname__, column=f.name)
    element = args[0]
    if not isinstance(element, type):
        raise ConfigurationError(
            f"Cannot resolve element type of {entity_type.__qualname__}.{f.name}: {element!r}"
        ).with_context(entity_type=entity_type.__qualname__, column=f.name)
    owner = not m2m.mapped_by
    return Column(
        field_name=f.name,
        column_name=options.name or f.name,
        target_type=element,
        order=order,
        insertable=options.insertable,
        updatable=options.updatable,
        primitive=False,
        many_to_many_owner=owner,
        fetch_eager=m2m.fetch is FetchType.EAGER,
        container=_CONTAINERS[origin],
        join_table=m2m.join_table,
    )


def _build_scalar_column(
    entity_type: type,
    f: dataclasses.Field,
    annotation: Any,
    options: ColumnOptions,
    order: int,
) -> Column:
    target = _unwrap_optional(annotation)
    if target not in SUPPORTED_TYPES:
        raise ConfigurationError(
            f"Unsupported type {target!r} for field {entity_type.__qualname__}.{f.name}"
        ).with_context(entity_type=entity_type.__qualname__, column=f.name)
    if options.id and options.generation is not GenerationType.NONE and target is not int:
        raise ConfigurationError(
            f"Generated ID {entity_type.__qualname__}.{f.name} must be int, got {target.__name__}"
        ).with_context(entity_type=entity_type.__qualname__, column=f.name)
    return Column(
        field_name=f.name,
        column_name=options.name or f.name,
        target_type=target,
        order=order,
        id=options.id,
        generation=options.generation if options.id else GenerationType.NONE,
        insertable=options.insertable,
        updatable=options.updatable,
        unique=options.unique,
        nullable=options.nullable,
        length=options.length,
        column_definition=options.column_definition,
    )


def _build_columns(entity_type: type) -> list[Column]:
    hints = _resolve_hints(entity_type)
    columns: list[Column] = []
    # dataclasses.fields already yields base-class fields first.
    for f in dataclasses.fields(entity_type):
        options: ColumnOptions = f.metadata.get(METADATA_KEY, _DEFAULT_OPTIONS)
        if options.transient:
            continue
        annotation = hints.get(f.name, f.type)
        if typing.get_origin(annotation) is typing.Annotated:
            annotation = typing.get_args(annotation)[0]
        if annotation is Final or typing.get_origin(annotation) is Final:
            raise ConfigurationError(
                f"Final field {entity_type.__qualname__}.{f.name} must be declared transient"
            ).with_context(entity_type=entity_type.__qualname__, column=f.name)
        order = len(columns) + 1
        if options.many_to_many is not None:
            columns.append(_build_collection_column(entity_type, f, annotation, options, order))
        else:
            columns.append(_build_scalar_column(entity_type, f, annotation, options, order))
    return columns


def _cache_statements(profile: Profile, dialect: Dialect) -> None:
    profile.statements[STATEMENT_INSERT] = statements.build_insert(profile, dialect)
    profile.statements[STATEMENT_UPDATE_BY_ID] = statements.build_update_by_id(profile, dialect)
    profile.statements[STATEMENT_READ_BY_ENTITY] = statements.build_read_by_natural_key(profile)


def derive_profile(entity_type: type, dialect: Dialect | None = None) -> Profile:
    """Derive the immutable schema description of *entity_type*.

    Raises:
        ConfigurationError: on any metadata defect (missing marker, no
            persistable fields, no parameterless constructor, immutable
            fields, unsupported types, id column count other than one).
    """
    dialect = dialect or SQLiteDialect()
    name = getattr(entity_type, "__qualname__", repr(entity_type))
    options = entity_options(entity_type)
    if options is None:
        raise ConfigurationError(f"{name} is not marked with @entity").with_context(entity_type=name)
    if not dataclasses.is_dataclass(entity_type):
        raise ConfigurationError(f"{name} must be a dataclass").with_context(entity_type=name)
    if entity_type.__dataclass_params__.frozen:  # type: ignore[attr-defined]
        raise ConfigurationError(
            f"{name} is frozen; rows are hydrated by field assignment"
        ).with_context(entity_type=name)
    _check_constructible(entity_type)

    columns = _build_columns(entity_type)
    if not any(c.primitive for c in columns):
        raise ConfigurationError(f"No persistable fields in {name}").with_context(entity_type=name)

    table_name = options.table or entity_type.__name__
    profile = Profile(entity_type, table_name, columns, options.unique_constraints)
    for constraint in profile.unique_constraints:
        for column_name in constraint.column_names:
            if not profile.has_column(column_name):
                raise ConfigurationError(
                    f"Unique constraint on {table_name} names unknown column {column_name!r}"
                ).with_context(entity_type=name, table=table_name, column=column_name)

    _cache_statements(profile, dialect)
    logger.debug(
        "profile_derived",
        entity=name,
        table=table_name,
        columns=[c.column_name for c in profile.create_table_columns],
    )
    return profile


def _join_column_names(owner_column: Column, owner: Profile, embedded: Profile) -> tuple[str, str]:
    join_table = owner_column.join_table
    owner_name = f"{owner.table_name}_Id"
    embedded_name = f"{embedded.table_name}_Id"
    if join_table is not None:
        if join_table.join_column is not None and join_table.join_column.name:
            owner_name = join_table.join_column.name
        if join_table.inverse_join_column is not None and join_table.inverse_join_column.name:
            embedded_name = join_table.inverse_join_column.name
    return owner_name, embedded_name


def _referenced_column(join_column: Any, profile: Profile) -> str:
    if join_column is not None and join_column.referenced_column_name:
        return join_column.referenced_column_name
    return profile.id_column.column_name


def synthesize_join(
    owner_column: Column,
    owner_profile: Profile,
    embedded_profile: Profile,
    dialect: Dialect | None = None,
) -> JoinProfile:
    """Build (once) the association-table profile for a many-to-many column.

    The result is cached on ``owner_column.join_profile``; calling again
    returns the same object.
    """
    if owner_column.join_profile is not None:
        return owner_column.join_profile
    dialect = dialect or SQLiteDialect()

    join_table = owner_column.join_table
    table_name = (
        join_table.name
        if join_table is not None and join_table.name
        else f"{owner_profile.table_name}_{embedded_profile.table_name}"
    )
    owner_name, embedded_name = _join_column_names(owner_column, owner_profile, embedded_profile)
    if owner_name == embedded_name:
        raise ConfigurationError(
            f"Join table {table_name} needs distinct column names, both resolve to {owner_name!r}"
        ).with_context(table=table_name, column=owner_column.field_name)

    base = derive_profile(JoinTableEntity, dialect)
    columns: list[Column] = []
    for c in base.create_table_columns:
        if c.field_name == "owner_id":
            c = dataclasses.replace(
                c, column_name=owner_name, target_type=owner_profile.id_column.target_type
            )
        elif c.field_name == "embedded_id":
            c = dataclasses.replace(
                c, column_name=embedded_name, target_type=embedded_profile.id_column.target_type
            )
        columns.append(c)

    jt_owner = join_table.join_column if join_table is not None else None
    jt_embedded = join_table.inverse_join_column if join_table is not None else None
    foreign_keys = (
        ForeignKey(
            owner_profile.table_name,
            (owner_name,),
            (_referenced_column(jt_owner, owner_profile),),
        ),
        ForeignKey(
            embedded_profile.table_name,
            (embedded_name,),
            (_referenced_column(jt_embedded, embedded_profile),),
        ),
    )
    profile = JoinProfile(
        JoinTableEntity,
        table_name,
        columns,
        unique_constraints=(UniqueConstraint((owner_name, embedded_name)),),
        foreign_keys=foreign_keys,
    )
    _cache_statements(profile, dialect)
    owner_column.target_profile = embedded_profile
    owner_column.join_profile = profile
    logger.debug(
        "join_synthesized",
        owner=owner_profile.table_name,
        embedded=embedded_profile.table_name,
        table=table_name,
    )
    return profile


__all__ = [
    "derive_profile",
    "synthesize_join",
]
