"""Tests for the SQLite data source: URLs, scoped connections and transactions."""

from __future__ import annotations

from pathlib import Path

import pytest

from spineorm.config import OrmSettings
from spineorm.datasource import DataSource, SQLiteDataSource, _parse_url
from spineorm.errors import DatabaseConnectionError


def _count(ds: SQLiteDataSource) -> int:
    with ds.connection() as conn:
        return conn.execute("SELECT COUNT(*) FROM t").fetchone()[0]


@pytest.fixture
def with_table(data_source: SQLiteDataSource) -> SQLiteDataSource:
    with data_source.connection() as conn:
        conn.execute("CREATE TABLE t (v INTEGER)")
    return data_source


class TestParseUrl:
    @pytest.mark.parametrize("url", [None, "", "memory", ":memory:", "sqlite://", "sqlite:///:memory:"])
    def test_memory(self, url: str | None):
        assert _parse_url(url) == ("memory", ":memory:")

    def test_sqlite_url(self):
        assert _parse_url("sqlite:///data/app.db") == ("sqlite", "data/app.db")

    def test_bare_path(self):
        assert _parse_url("./app.db") == ("file", "./app.db")

    def test_unsupported_scheme(self):
        with pytest.raises(DatabaseConnectionError, match="Unsupported database URL"):
            _parse_url("postgresql://localhost/db")


class TestSQLiteDataSource:
    def test_satisfies_protocol(self, data_source: SQLiteDataSource):
        assert isinstance(data_source, DataSource)

    def test_file_info(self, data_source: SQLiteDataSource, db_path: Path):
        assert data_source.info.persistent is True
        assert data_source.info.resolved_path == str(db_path.resolve())

    def test_creates_parent_directory(self, tmp_path: Path):
        target = tmp_path / "nested" / "dir" / "x.db"
        with SQLiteDataSource(f"sqlite:///{target}") as ds:
            with ds.connection() as conn:
                conn.execute("CREATE TABLE t (v INTEGER)")
        assert target.exists()

    def test_memory_is_shared_between_connections(self):
        with SQLiteDataSource() as ds:
            assert ds.info.persistent is False
            with ds.connection() as conn:
                conn.execute("CREATE TABLE t (v INTEGER)")
                conn.execute("INSERT INTO t VALUES (1)")
            assert _count(ds) == 1

    def test_separate_memory_sources_are_isolated(self):
        with SQLiteDataSource() as a, SQLiteDataSource() as b:
            with a.connection() as conn:
                conn.execute("CREATE TABLE t (v INTEGER)")
            with b.connection() as conn:
                assert conn.execute("SELECT name FROM sqlite_master").fetchall() == []

    def test_pragmas(self, data_source: SQLiteDataSource):
        with data_source.connection() as conn:
            assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
            assert conn.execute("SELECT 'a' LIKE 'A'").fetchone()[0] == 0

    def test_pragmas_disabled(self, db_path: Path):
        with SQLiteDataSource(str(db_path), enforce_foreign_keys=False, case_sensitive_like=False) as ds:
            with ds.connection() as conn:
                assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 0
                assert conn.execute("SELECT 'a' LIKE 'A'").fetchone()[0] == 1

    def test_closed_source_refuses_connections(self, db_path: Path):
        ds = SQLiteDataSource(str(db_path))
        ds.close()
        with pytest.raises(DatabaseConnectionError, match="closed"):
            with ds.connection():
                pass

    def test_from_settings(self, db_path: Path):
        settings = OrmSettings(database_url=str(db_path), enforce_foreign_keys=False, _env_file=None)
        with SQLiteDataSource.from_settings(settings) as ds:
            with ds.connection() as conn:
                assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 0


class TestScopedConnection:
    def test_commit_on_success(self, with_table: SQLiteDataSource):
        with with_table.connection() as conn:
            conn.execute("INSERT INTO t VALUES (1)")
        assert _count(with_table) == 1

    def test_rollback_on_error(self, with_table: SQLiteDataSource):
        with pytest.raises(RuntimeError):
            with with_table.connection() as conn:
                conn.execute("INSERT INTO t VALUES (1)")
                raise RuntimeError("boom")
        assert _count(with_table) == 0

    def test_acquire_owns_outside_transaction(self, data_source: SQLiteDataSource):
        conn, owned = data_source.acquire()
        try:
            assert owned is True
        finally:
            conn.close()


class TestTransaction:
    def test_nested_connections_share_bound_connection(self, with_table: SQLiteDataSource):
        with with_table.transaction() as tx:
            assert with_table.in_transaction
            with with_table.connection() as conn:
                assert conn is tx
            conn, owned = with_table.acquire()
            assert conn is tx and owned is False
        assert not with_table.in_transaction

    def test_commits_once_at_the_end(self, with_table: SQLiteDataSource):
        with with_table.transaction():
            with with_table.connection() as conn:
                conn.execute("INSERT INTO t VALUES (1)")
            with with_table.connection() as conn:
                conn.execute("INSERT INTO t VALUES (2)")
        assert _count(with_table) == 2

    def test_rollback_discards_all_nested_work(self, with_table: SQLiteDataSource):
        with pytest.raises(RuntimeError):
            with with_table.transaction():
                with with_table.connection() as conn:
                    conn.execute("INSERT INTO t VALUES (1)")
                with with_table.connection() as conn:
                    conn.execute("INSERT INTO t VALUES (2)")
                raise RuntimeError("boom")
        assert _count(with_table) == 0

    def test_nested_transaction_joins_outer(self, with_table: SQLiteDataSource):
        with with_table.transaction() as outer:
            with with_table.transaction() as inner:
                assert inner is outer
                inner.execute("INSERT INTO t VALUES (1)")
            assert with_table.in_transaction
        assert _count(with_table) == 1
