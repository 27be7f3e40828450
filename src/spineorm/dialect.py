"""SQL dialect abstraction for the statement builder and schema manager.

Provides a ``Dialect`` protocol and the SQLite implementation. The statement
builder asks the dialect for every backend-specific fragment: placeholder
style, the storage affinity of a semantic Python type, the auto-increment
marker and the schema introspection queries.

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                     Dialect Abstraction Layer                     │
    └──────────────────────────────────────────────────────────────────┘

    statements.build_create(profile, dialect)
        │  dialect.data_type(int)          → "INTEGER"
        │  dialect.auto_increment_marker() → "AUTOINCREMENT"
        ▼
    schema.SchemaManager
        │  dialect.create_statement_query() → SELECT sql FROM sqlite_master ...
        │  dialect.table_exists_query()     → SELECT name FROM sqlite_master ...

Examples:
    >>> from spineorm.dialect import SQLiteDialect
    >>> d = SQLiteDialect()
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.data_type(float)
    'REAL'

Tags:
    dialect, sql, abstraction, sqlite, spine-orm
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** (string) valid for the target
    database.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def data_type(self, python_type: type) -> str:
        """Storage affinity for a semantic Python type, ``''`` if unknown."""
        ...

    def auto_increment_marker(self) -> str:
        """Column-constraint keyword appended to a generated primary key."""
        ...

    def create_statement_query(self) -> str:
        """Query returning the stored CREATE text for one table name."""
        ...

    def table_exists_query(self) -> str:
        """Query returning a row if the table named by the parameter exists."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect — ``?`` placeholders, type affinities.

    See https://www.sqlite.org/datatype3.html#affinity
    """

    _TYPES: dict[type, str] = {
        str: "TEXT",
        int: "INTEGER",
        bool: "INTEGER",
        float: "REAL",
    }

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def data_type(self, python_type: type) -> str:
        return self._TYPES.get(python_type, "")

    def auto_increment_marker(self) -> str:
        return "AUTOINCREMENT"

    def create_statement_query(self) -> str:
        return "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?"

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ? COLLATE NOCASE"


# =========================================================================
# Registry / Factory
# =========================================================================

_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ValueError: If ``db_type`` is not registered.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. Supported: {sorted(_DIALECTS)}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lower-cased key)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "get_dialect",
    "register_dialect",
]
