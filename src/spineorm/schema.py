"""
Schema manager: create, drop, introspect and compare tables.

``table_equals`` is the round-trip check between what the statement
builder produces for a profile and what the live store recorded when the
table was created. SQLite stores the CREATE text verbatim (minus
``IF NOT EXISTS``), so the comparison is against
``build_create(profile, if_not_exists=False)``, case-insensitively.

Tags:
    schema, ddl, introspection, sqlite, spine-orm
"""

from __future__ import annotations

from typing import Any

from spineorm import statements
from spineorm.dialect import Dialect, SQLiteDialect
from spineorm.logging import get_logger
from spineorm.profile import Profile

logger = get_logger(__name__)


class SchemaManager:
    """DDL operations over a data source."""

    def __init__(self, data_source: Any, dialect: Dialect | None = None) -> None:
        self.data_source = data_source
        self.dialect: Dialect = dialect or SQLiteDialect()

    def table_exists(self, table_name: str) -> bool:
        """Case-insensitive existence check."""
        with self.data_source.connection() as conn:
            row = conn.execute(self.dialect.table_exists_query(), (table_name,)).fetchone()
        return row is not None

    def get_create_statement(self, table_name: str) -> str:
        """CREATE text recorded by the store, ``""`` if the table is absent."""
        with self.data_source.connection() as conn:
            row = conn.execute(self.dialect.create_statement_query(), (table_name,)).fetchone()
        return row[0] if row is not None and row[0] is not None else ""

    def table_equals(self, profile: Profile) -> bool:
        live = self.get_create_statement(profile.table_name)
        built = statements.build_create(profile, if_not_exists=False, dialect=self.dialect)
        equal = live.lower() == built.lower()
        if not equal:
            logger.debug("table_differs", table=profile.table_name, live=live, built=built)
        return equal

    def create_table_if_not_exists(self, profile: Profile) -> bool:
        """Returns True if the table exists afterwards."""
        sql = statements.build_create(profile, if_not_exists=True, dialect=self.dialect)
        logger.info("table_create", table=profile.table_name)
        logger.debug("sql_executed", table=profile.table_name, sql=sql)
        with self.data_source.connection() as conn:
            conn.execute(sql)
        return self.table_exists(profile.table_name)

    def drop_table_if_exists(self, profile: Profile) -> bool:
        """Returns True if the table is gone afterwards."""
        logger.info("table_drop", table=profile.table_name)
        with self.data_source.connection() as conn:
            conn.execute(statements.build_drop(profile, if_exists=True))
        return not self.table_exists(profile.table_name)


__all__ = ["SchemaManager"]
