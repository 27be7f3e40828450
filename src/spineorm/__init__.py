"""
spine-orm — metadata-driven schema derivation and cascading persistence.

Entities are dataclasses marked with :func:`~spineorm.annotations.entity`.
Their profiles drive deterministic SQL, CRUD with identity-or-unique-key
merge, and cascades over many-to-many associations through synthesized join
tables.

Quick start::

    from dataclasses import dataclass
    from spineorm import DBEnvironment, FetchType, column, entity, id_column, many_to_many

    @entity(table="TagTable")
    @dataclass(unsafe_hash=True)
    class Tag:
        id: int | None = id_column()
        name: str | None = column(unique=True)

    @entity(table="MainTable")
    @dataclass
    class Main:
        id: int | None = id_column()
        title: str | None = column()
        tags: list[Tag] = many_to_many(fetch=FetchType.EAGER)

    with DBEnvironment("memory") as env:
        env.initialize_entities(Main, Tag)
        env.persist(Main).save(Main(title="a", tags=[Tag(name="x")]))

Tags:
    spine-orm, orm, sqlite, dataclasses
"""

from spineorm.annotations import (
    FetchType,
    GenerationType,
    JoinColumn,
    JoinTable,
    UniqueConstraint,
    column,
    entity,
    id_column,
    many_to_many,
    transient,
)
from spineorm.config import OrmSettings, StartMode, get_settings
from spineorm.datasource import ConnectionInfo, DataSource, SQLiteDataSource
from spineorm.entities import JoinTableEntity
from spineorm.environment import DBEnvironment
from spineorm.errors import (
    ArgumentError,
    ConfigurationError,
    DAOError,
    ErrorCode,
    ForeignKeyError,
    OrmError,
    RecordExistsError,
    RecordNotFoundError,
)
from spineorm.executor import EntityCursor, EntityExecutor
from spineorm.profile import Column, JoinProfile, Profile
from spineorm.profile_factory import derive_profile, synthesize_join
from spineorm.registry import Registry, RegistryEntry
from spineorm.repositories import CRUDRepository, JoinRepository, PersistRepository
from spineorm.schema import SchemaManager

__version__ = "0.1.0"

__all__ = [
    # Declaration
    "entity",
    "column",
    "id_column",
    "many_to_many",
    "transient",
    "FetchType",
    "GenerationType",
    "JoinColumn",
    "JoinTable",
    "UniqueConstraint",
    "JoinTableEntity",
    # Profiles
    "Column",
    "Profile",
    "JoinProfile",
    "derive_profile",
    "synthesize_join",
    # Execution
    "DataSource",
    "SQLiteDataSource",
    "ConnectionInfo",
    "EntityExecutor",
    "EntityCursor",
    # Repositories
    "CRUDRepository",
    "JoinRepository",
    "PersistRepository",
    "Registry",
    "RegistryEntry",
    "SchemaManager",
    "DBEnvironment",
    # Config
    "OrmSettings",
    "StartMode",
    "get_settings",
    # Errors
    "OrmError",
    "ConfigurationError",
    "ArgumentError",
    "DAOError",
    "ErrorCode",
    "RecordExistsError",
    "ForeignKeyError",
    "RecordNotFoundError",
]
