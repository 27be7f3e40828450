"""
Statement builder: pure functions from a :class:`~spineorm.profile.Profile`
to SQL text.

Every function is deterministic and walks the profile's ordered column
views, so positional parameter order here always matches the bind order in
:mod:`spineorm.executor`.

Conventions:
    - Column names are double-quoted; table names are emitted as declared.
    - CREATE text is laid out one definition per line so that it compares
      equal (case-insensitively) to SQLite's stored ``sqlite_master.sql``.

Examples:
    >>> print(build_create(profile, if_not_exists=False))
    CREATE TABLE MainTable(
    "id"	INTEGER PRIMARY KEY AUTOINCREMENT,
    "str_field"	TEXT,
    "UniqueField"	TEXT UNIQUE,
    UNIQUE("str_field","UniqueField")
    )

Tags:
    sql, ddl, dml, statement-builder, spine-orm
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from spineorm.dialect import Dialect, SQLiteDialect
from spineorm.profile import Column, Profile

_DEFAULT_DIALECT = SQLiteDialect()


def _quote(name: str) -> str:
    return f'"{name}"'


def _quoted_list(names: Sequence[str]) -> str:
    return ",".join(_quote(n) for n in names)


def _projection(profile: Profile) -> str:
    return ", ".join(_quote(c.column_name) for c in profile.create_table_columns)


def _select_from(profile: Profile) -> str:
    return f"SELECT {_projection(profile)} FROM {profile.table_name}"


# =========================================================================
# DDL
# =========================================================================


def _field_line(column: Column, dialect: Dialect) -> str:
    parts = [f"{_quote(column.column_name)}\t"]
    parts.append(column.column_definition or dialect.data_type(column.target_type))
    if column.id:
        parts.append(" PRIMARY KEY")
    if column.generated:
        parts.append(f" {dialect.auto_increment_marker()}")
    if not column.nullable:
        parts.append(" NOT NULL")
    if column.unique:
        parts.append(" UNIQUE")
    return "".join(parts)


def build_create(profile: Profile, if_not_exists: bool = True, dialect: Dialect | None = None) -> str:
    """CREATE TABLE text: field lines, then UNIQUE lines, then FOREIGN KEY lines."""
    dialect = dialect or _DEFAULT_DIALECT
    lines = [_field_line(c, dialect) for c in profile.create_table_columns]
    lines.extend(f"UNIQUE({_quoted_list(u.column_names)})" for u in profile.unique_constraints)
    lines.extend(
        f"FOREIGN KEY ({_quoted_list(fk.columns)}) REFERENCES {fk.reference_table} "
        f"({_quoted_list(fk.reference_columns)}) ON DELETE CASCADE"
        for fk in profile.foreign_keys
    )
    header = f"CREATE TABLE {'IF NOT EXISTS ' if if_not_exists else ''}{profile.table_name}"
    return header + "(\n" + ",\n".join(lines) + "\n)"


def build_drop(profile: Profile, if_exists: bool = True) -> str:
    return f"DROP TABLE {'IF EXISTS ' if if_exists else ''}{profile.table_name}"


# =========================================================================
# DML
# =========================================================================


def build_insert(profile: Profile, dialect: Dialect | None = None) -> str:
    dialect = dialect or _DEFAULT_DIALECT
    columns = profile.insertable_columns
    return (
        f"INSERT INTO {profile.table_name} ({_quoted_list([c.column_name for c in columns])}) "
        f"VALUES ({dialect.placeholders(len(columns))})"
    )


def build_update(profile: Profile, dialect: Dialect | None = None) -> str:
    """UPDATE over the updatable columns, without a WHERE clause."""
    dialect = dialect or _DEFAULT_DIALECT
    assignments = ", ".join(
        f"{_quote(c.column_name)}={dialect.placeholder(i)}"
        for i, c in enumerate(profile.updatable_columns)
    )
    return f"UPDATE {profile.table_name} SET {assignments}"


def build_update_by_id(profile: Profile, dialect: Dialect | None = None) -> str:
    dialect = dialect or _DEFAULT_DIALECT
    index = len(profile.updatable_columns)
    return (
        f"{build_update(profile, dialect)}\n"
        f"WHERE {_quote(profile.id_column.column_name)}={dialect.placeholder(index)}"
    )


def build_update_field(profile: Profile, column: Column, dialect: Dialect | None = None) -> str:
    dialect = dialect or _DEFAULT_DIALECT
    return (
        f"UPDATE {profile.table_name} SET {_quote(column.column_name)}={dialect.placeholder(0)}\n"
        f"WHERE {_quote(profile.id_column.column_name)}={dialect.placeholder(1)}"
    )


def build_read_by_natural_key(profile: Profile, entity: Any = None, dialect: Dialect | None = None) -> str:
    """SELECT matching every non-id stored column.

    Without *entity* every predicate is ``=?`` (the cached canonical form).
    With *entity*, columns whose value is ``None`` become ``IS NULL`` and
    take no parameter.
    """
    dialect = dialect or _DEFAULT_DIALECT
    predicates = []
    index = 0
    for column in profile.create_table_columns:
        if column.id:
            continue
        if entity is not None and column.get_value(entity) is None:
            predicates.append(f"{_quote(column.column_name)} IS NULL")
        else:
            predicates.append(f"{_quote(column.column_name)}={dialect.placeholder(index)}")
            index += 1
    if not predicates:
        return _select_from(profile)
    return f"{_select_from(profile)}\nWHERE " + " AND ".join(predicates)


def build_read_by_id(profile: Profile, dialect: Dialect | None = None) -> str:
    dialect = dialect or _DEFAULT_DIALECT
    return f"{_select_from(profile)}\nWHERE {_quote(profile.id_column.column_name)}={dialect.placeholder(0)}"


def build_read_by_columns(profile: Profile, column_names: Sequence[str], dialect: Dialect | None = None) -> str:
    dialect = dialect or _DEFAULT_DIALECT
    predicates = " AND ".join(
        f"{_quote(name)}={dialect.placeholder(i)}" for i, name in enumerate(column_names)
    )
    return f"{_select_from(profile)}\nWHERE {predicates}"


def build_select_all(profile: Profile) -> str:
    return _select_from(profile)


def build_find_all(profile: Profile, where: str) -> str:
    """SELECT with a caller-supplied WHERE fragment (keyword omitted)."""
    return f"{_select_from(profile)}\nWHERE {where}"


def build_delete_by_id(profile: Profile, dialect: Dialect | None = None) -> str:
    dialect = dialect or _DEFAULT_DIALECT
    return f"DELETE FROM {profile.table_name}\nWHERE {_quote(profile.id_column.column_name)}={dialect.placeholder(0)}"


def build_delete_all(profile: Profile, where: str = "") -> str:
    if not where:
        return f"DELETE FROM {profile.table_name}"
    return f"DELETE FROM {profile.table_name}\nWHERE {where}"


# =========================================================================
# Helpers
# =========================================================================


def count_placeholders(sql: str) -> int:
    """Count ``?`` placeholders outside quoted literals, identifiers and comments."""
    count = 0
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]
        if ch in ("'", '"', "`"):
            end = sql.find(ch, i + 1)
            i = n if end < 0 else end + 1
        elif sql.startswith("--", i):
            end = sql.find("\n", i + 2)
            i = n if end < 0 else end + 1
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = n if end < 0 else end + 2
        else:
            if ch == "?":
                count += 1
            i += 1
    return count


__all__ = [
    "build_create",
    "build_drop",
    "build_insert",
    "build_update",
    "build_update_by_id",
    "build_update_field",
    "build_read_by_natural_key",
    "build_read_by_id",
    "build_read_by_columns",
    "build_select_all",
    "build_find_all",
    "build_delete_by_id",
    "build_delete_all",
    "count_placeholders",
]
