"""
Entity executor: the per-entity-type bind / execute / hydrate primitive.

One :class:`EntityExecutor` exists per registered entity type. It owns no
connection: every call scopes one through the data source. Store-level
constraint violations pass through untranslated (``sqlite3.IntegrityError``);
translation happens one layer up, in the CRUD repository.

Architecture::

    EntityExecutor(profile, data_source)
        create(e)          INSERT  insertable columns  → copy generated id back
        read(id)           SELECT  ... WHERE "id"=?
        read_by_natural_key(e)     ... WHERE a=? AND b IS NULL ...
        read_all()         EntityCursor (lazy, closable, single pass)
        update(e)          UPDATE  updatable columns, then id
        update_field(id, field, value)
        delete(id) / delete_all(where, *args)
        find_all(where, *args) / query(sql, *args)
        find_by_unique(names, values) / refresh(e)

Hydration allocates a fresh instance through the parameterless constructor
and assigns each stored column by position.

Tags:
    dao, executor, sql, hydration, spine-orm
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any, Generic, TypeVar

from spineorm import statements
from spineorm.dialect import Dialect, SQLiteDialect
from spineorm.errors import ArgumentError
from spineorm.logging import get_logger
from spineorm.profile import (
    STATEMENT_INSERT,
    STATEMENT_UPDATE_BY_ID,
    Column,
    Profile,
    to_db_value,
)

logger = get_logger(__name__)

T = TypeVar("T")


class EntityCursor(Generic[T]):
    """Forward-only, single-pass producer over a full-table scan.

    Holds one cursor (and, unless transaction-bound, one connection) open
    until exhausted or closed. Closing happens exactly once; use it as a
    context manager to guarantee release on early exit::

        with executor.read_all() as rows:
            for row in rows:
                if done(row):
                    break
    """

    def __init__(
        self,
        connection: Any,
        cursor: Any,
        hydrate: Callable[[Sequence[Any]], T],
        *,
        owns_connection: bool,
    ) -> None:
        self._connection = connection
        self._cursor = cursor
        self._hydrate = hydrate
        self._owns_connection = owns_connection
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        try:
            row = self._cursor.fetchone()
        except BaseException:
            self.close()
            raise
        if row is None:
            self.close()
            raise StopIteration
        try:
            return self._hydrate(row)
        except BaseException:
            self.close()
            raise

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        finally:
            if self._owns_connection:
                self._connection.close()
        logger.debug("cursor_closed")

    def __enter__(self) -> EntityCursor[T]:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class EntityExecutor(Generic[T]):
    """CRUD primitive for one entity type.

    Parameters:
        profile: The derived profile of the entity type.
        data_source: Connection provider (see :mod:`spineorm.datasource`).
        dialect: SQL dialect, defaults to SQLite.
        formatted_sql: Keep newlines in logged SQL.
    """

    def __init__(
        self,
        profile: Profile,
        data_source: Any,
        dialect: Dialect | None = None,
        *,
        formatted_sql: bool = False,
    ) -> None:
        self.profile = profile
        self.data_source = data_source
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.formatted_sql = formatted_sql
        self._read_by_id = statements.build_read_by_id(profile, self.dialect)
        self._delete_by_id = statements.build_delete_by_id(profile, self.dialect)
        self._select_all = statements.build_select_all(profile)

    @property
    def entity_type(self) -> type[T]:
        return self.profile.entity_type

    # -- Plumbing -----------------------------------------------------------

    def _log_sql(self, sql: str, params: Sequence[Any]) -> None:
        text = sql if self.formatted_sql else " ".join(sql.split())
        logger.debug("sql_executed", table=self.profile.table_name, sql=text, params=tuple(params))

    def _execute(self, conn: Any, sql: str, params: Sequence[Any] = ()) -> Any:
        bound = tuple(to_db_value(p) for p in params)
        self._log_sql(sql, bound)
        return conn.execute(sql, bound)

    def _hydrate(self, row: Sequence[Any]) -> T:
        columns = self.profile.create_table_columns
        if len(row) < len(columns):
            raise ArgumentError(
                f"Row has {len(row)} values, {self.profile.table_name} needs {len(columns)}; "
                "the query must project every column"
            ).with_context(table=self.profile.table_name)
        entity = self.profile.new_instance()
        for column, value in zip(columns, row):
            column.set_value(entity, column.from_db(value))
        return entity

    def _fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[T]:
        with self.data_source.connection() as conn:
            cursor = self._execute(conn, sql, params)
            try:
                return [self._hydrate(row) for row in cursor.fetchall()]
            finally:
                cursor.close()

    def _fetch_one(self, sql: str, params: Sequence[Any] = ()) -> T | None:
        with self.data_source.connection() as conn:
            cursor = self._execute(conn, sql, params)
            try:
                row = cursor.fetchone()
            finally:
                cursor.close()
        return None if row is None else self._hydrate(row)

    def _write(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self.data_source.connection() as conn:
            return self._execute(conn, sql, params).rowcount

    @staticmethod
    def _check_arguments(sql: str, args: Sequence[Any]) -> None:
        expected = statements.count_placeholders(sql)
        if expected != len(args):
            raise ArgumentError(
                f"Statement has {expected} placeholders but {len(args)} arguments were given"
            ).with_context(sql=sql)

    def _stored_column(self, name: str) -> Column:
        try:
            column = self.profile.column_by_field(name)
        except ArgumentError:
            column = self.profile.column(name)
        if not column.primitive:
            raise ArgumentError(f"{name} is not a stored column").with_context(
                table=self.profile.table_name, column=name
            )
        return column

    # -- Create -------------------------------------------------------------

    def _insert(self, conn: Any, entity: T) -> int:
        values = [c.get_value(entity) for c in self.profile.insertable_columns]
        cursor = self._execute(conn, self.profile.statement(STATEMENT_INSERT), values)
        id_column = self.profile.id_column
        if cursor.rowcount > 0 and id_column.generated and id_column.get_value(entity) is None:
            id_column.set_value(entity, cursor.lastrowid)
        return cursor.rowcount

    def create(self, entity: T) -> int:
        """Insert *entity*; a generated identity is copied back onto it."""
        with self.data_source.connection() as conn:
            return self._insert(conn, entity)

    def create_all(self, entities: Iterable[T]) -> int:
        """Insert sequentially on one connection."""
        count = 0
        with self.data_source.connection() as conn:
            for entity in entities:
                count += self._insert(conn, entity)
        return count

    # -- Read ---------------------------------------------------------------

    def read(self, id: Any) -> T | None:
        return self._fetch_one(self._read_by_id, (id,))

    def read_by_natural_key(self, entity: T) -> T | None:
        """First stored row whose non-id columns all equal *entity*'s values.

        ``None``-valued fields match ``IS NULL``.
        """
        sql = statements.build_read_by_natural_key(self.profile, entity, self.dialect)
        params = [
            c.get_value(entity)
            for c in self.profile.create_table_columns
            if not c.id and c.get_value(entity) is not None
        ]
        return self._fetch_one(sql, params)

    def read_all(self) -> EntityCursor[T]:
        conn, owned = self.data_source.acquire()
        try:
            cursor = self._execute(conn, self._select_all)
        except BaseException:
            if owned:
                conn.close()
            raise
        return EntityCursor(conn, cursor, self._hydrate, owns_connection=owned)

    def find_all(self, where: str, *args: Any) -> list[T]:
        """Rows matching a WHERE fragment (without the keyword)."""
        self._check_arguments(where, args)
        return self._fetch_all(statements.build_find_all(self.profile, where), args)

    def query(self, sql: str, *args: Any) -> list[T]:
        """Run raw SQL that projects every column of this entity, in order."""
        self._check_arguments(sql, args)
        return self._fetch_all(sql, args)

    def find_by_unique(self, column_names: str | Sequence[str], values: Any) -> T | None:
        """Look up by a unique column or column set.

        Raises:
            ArgumentError: unknown column, mismatched lengths, or more than
                one matching row.
        """
        if isinstance(column_names, str):
            names: list[str] = [column_names]
            params: list[Any] = [values]
        else:
            names = list(column_names)
            params = list(values)
        if not names or len(names) != len(params):
            raise ArgumentError(
                f"{len(names)} column names but {len(params)} values"
            ).with_context(table=self.profile.table_name)
        for name in names:
            if not self.profile.has_column(name) or not self.profile.column(name).primitive:
                raise ArgumentError(f"No such column: {name}").with_context(
                    table=self.profile.table_name, column=name
                )
        sql = statements.build_read_by_columns(self.profile, names, self.dialect)
        rows = self._fetch_all(sql, params)
        if len(rows) > 1:
            raise ArgumentError(
                f"{', '.join(names)} is not unique in {self.profile.table_name}: {len(rows)} rows"
            ).with_context(table=self.profile.table_name, column=",".join(names))
        return rows[0] if rows else None

    def refresh(self, entity: T) -> int:
        """Copy the stored row onto *entity*; 0 when no row has its identity."""
        stored = self.read(self.profile.get_id_value(entity))
        if stored is None:
            return 0
        self.profile.copy(stored, entity)
        return 1

    # -- Update / delete ----------------------------------------------------

    def update(self, entity: T) -> int:
        """Write the updatable columns by identity; returns the affected row count.

        With no updatable columns there is nothing to write, so the count is
        whether a row with the identity exists.
        """
        id_value = self.profile.get_id_value(entity)
        if not self.profile.updatable_columns:
            return 1 if self.read(id_value) is not None else 0
        values = [c.get_value(entity) for c in self.profile.updatable_columns]
        values.append(id_value)
        return self._write(self.profile.statement(STATEMENT_UPDATE_BY_ID), values)

    def update_field(self, id: Any, field_name: str, value: Any) -> int:
        """Single-column update by identity, independent of :meth:`update`."""
        column = self._stored_column(field_name)
        sql = statements.build_update_field(self.profile, column, self.dialect)
        return self._write(sql, (value, id))

    def delete(self, id: Any) -> int:
        return self._write(self._delete_by_id, (id,))

    def delete_all(self, where: str = "", *args: Any) -> int:
        self._check_arguments(where, args)
        return self._write(statements.build_delete_all(self.profile, where), args)

    def __repr__(self) -> str:
        return f"EntityExecutor({self.profile.table_name})"


__all__ = [
    "EntityCursor",
    "EntityExecutor",
]
