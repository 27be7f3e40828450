"""Tests for EntityExecutor and EntityCursor against a real SQLite file."""

from __future__ import annotations

import sqlite3

import pytest

from sample_entities import Main, make_main
from spineorm.datasource import SQLiteDataSource
from spineorm.errors import ArgumentError
from spineorm.executor import EntityCursor, EntityExecutor
from spineorm.profile_factory import derive_profile
from spineorm.statements import build_create


@pytest.fixture
def executor(data_source: SQLiteDataSource) -> EntityExecutor[Main]:
    profile = derive_profile(Main)
    with data_source.connection() as conn:
        conn.execute(build_create(profile))
    return EntityExecutor(profile, data_source)


def _raw_rows(data_source: SQLiteDataSource) -> list[tuple]:
    with data_source.connection() as conn:
        return conn.execute('SELECT "id", "str_field", "bool_field" FROM test_table_name ORDER BY "id"').fetchall()


class TestCreate:
    def test_generated_id_copied_back(self, executor: EntityExecutor[Main]):
        main = make_main()
        assert executor.create(main) == 1
        assert main.id == 1
        second = make_main(unique_field="U2", str_field="b")
        executor.create(second)
        assert second.id == 2

    def test_explicit_id_is_kept(self, executor: EntityExecutor[Main]):
        main = make_main(id=42)
        executor.create(main)
        assert main.id == 42
        assert executor.read(42) is not None

    def test_bool_stored_as_integer(self, executor: EntityExecutor[Main], data_source: SQLiteDataSource):
        executor.create(make_main(bool_field=True))
        assert _raw_rows(data_source) == [(1, "a", 1)]

    def test_constraint_violation_passes_through(self, executor: EntityExecutor[Main]):
        executor.create(make_main())
        with pytest.raises(sqlite3.IntegrityError):
            executor.create(make_main(str_field="other"))

    def test_create_all(self, executor: EntityExecutor[Main]):
        batch = [make_main(unique_field=f"U{i}", str_field=f"s{i}") for i in range(3)]
        assert executor.create_all(batch) == 3
        assert [m.id for m in batch] == [1, 2, 3]


class TestRead:
    def test_read_hydrates_fresh_instance(self, executor: EntityExecutor[Main]):
        original = make_main(note="hello")
        executor.create(original)
        loaded = executor.read(original.id)
        assert loaded is not original
        assert loaded == original
        assert loaded.bool_field is True
        assert loaded.double_field == 1.5
        assert loaded.final_field == "prohibited"

    def test_read_missing(self, executor: EntityExecutor[Main]):
        assert executor.read(999) is None

    def test_read_by_natural_key(self, executor: EntityExecutor[Main]):
        stored = make_main()
        executor.create(stored)
        probe = make_main()
        found = executor.read_by_natural_key(probe)
        assert found is not None and found.id == stored.id

    def test_read_by_natural_key_matches_nulls(self, executor: EntityExecutor[Main]):
        executor.create(make_main(note=None))
        assert executor.read_by_natural_key(make_main(note=None)) is not None
        assert executor.read_by_natural_key(make_main(note="x")) is None

    def test_find_all(self, executor: EntityExecutor[Main]):
        executor.create(make_main(unique_field="U1", note="n"))
        executor.create(make_main(unique_field="U2", str_field="b", note="n"))
        executor.create(make_main(unique_field="U3", str_field="c", note="m"))
        rows = executor.find_all('"note"=?', "n")
        assert sorted(m.unique_field for m in rows) == ["U1", "U2"]

    def test_find_all_placeholder_mismatch(self, executor: EntityExecutor[Main]):
        with pytest.raises(ArgumentError, match="placeholders"):
            executor.find_all('"note"=?')

    def test_query(self, executor: EntityExecutor[Main]):
        executor.create(make_main())
        sql = (
            'SELECT "id", "str_field", "stringDefaultColumn", "UniqueField", "double_field", '
            '"bool_field", "note" FROM test_table_name WHERE "UniqueField"=?'
        )
        assert [m.unique_field for m in executor.query(sql, "U1")] == ["U1"]

    def test_query_ignores_placeholders_in_comments(self, executor: EntityExecutor[Main]):
        executor.create(make_main())
        sql = (
            'SELECT "id", "str_field", "stringDefaultColumn", "UniqueField", "double_field", '
            '"bool_field", "note" FROM test_table_name -- which row?\n'
            'WHERE "UniqueField"=? /* exact match? */'
        )
        assert [m.unique_field for m in executor.query(sql, "U1")] == ["U1"]

    def test_query_short_projection(self, executor: EntityExecutor[Main]):
        executor.create(make_main())
        with pytest.raises(ArgumentError, match="project every column"):
            executor.query('SELECT "id" FROM test_table_name')

    def test_query_placeholder_mismatch(self, executor: EntityExecutor[Main]):
        with pytest.raises(ArgumentError):
            executor.query("SELECT * FROM test_table_name", 1)


class TestFindByUnique:
    def test_single_column(self, executor: EntityExecutor[Main]):
        executor.create(make_main())
        found = executor.find_by_unique("UniqueField", "U1")
        assert found is not None and found.unique_field == "U1"
        assert executor.find_by_unique("UniqueField", "nope") is None

    def test_composite(self, executor: EntityExecutor[Main]):
        executor.create(make_main())
        found = executor.find_by_unique(["str_field", "stringDefaultColumn"], ["a", "default"])
        assert found is not None

    def test_unknown_column(self, executor: EntityExecutor[Main]):
        with pytest.raises(ArgumentError, match="No such column"):
            executor.find_by_unique("missing", 1)

    def test_length_mismatch(self, executor: EntityExecutor[Main]):
        with pytest.raises(ArgumentError):
            executor.find_by_unique(["str_field", "note"], ["a"])

    def test_non_unique_result(self, executor: EntityExecutor[Main]):
        executor.create(make_main(unique_field="U1", note="same"))
        executor.create(make_main(unique_field="U2", str_field="b", note="same"))
        with pytest.raises(ArgumentError, match="not unique"):
            executor.find_by_unique("note", "same")


class TestReadAll:
    def test_iterates_every_row(self, executor: EntityExecutor[Main]):
        for i in range(3):
            executor.create(make_main(unique_field=f"U{i}", str_field=f"s{i}"))
        with executor.read_all() as rows:
            assert sorted(m.unique_field for m in rows) == ["U0", "U1", "U2"]
            assert rows.closed

    def test_closes_on_exhaustion(self, executor: EntityExecutor[Main]):
        cursor = executor.read_all()
        assert isinstance(cursor, EntityCursor)
        assert list(cursor) == []
        assert cursor.closed

    def test_early_exit_closes_once(self, executor: EntityExecutor[Main]):
        for i in range(3):
            executor.create(make_main(unique_field=f"U{i}", str_field=f"s{i}"))
        with executor.read_all() as rows:
            first = next(rows)
            assert first.id is not None
        assert rows.closed
        rows.close()
        assert list(rows) == []

    def test_releases_connection_for_writers(self, executor: EntityExecutor[Main]):
        executor.create(make_main())
        with executor.read_all() as rows:
            next(rows)
        executor.create(make_main(unique_field="U2", str_field="b"))

    def test_transaction_bound_connection_survives(
        self, executor: EntityExecutor[Main], data_source: SQLiteDataSource
    ):
        executor.create(make_main())
        with data_source.transaction() as conn:
            with executor.read_all() as rows:
                assert len(list(rows)) == 1
            assert conn.execute("SELECT 1").fetchone() == (1,)

    def test_closes_when_hydration_fails(
        self, executor: EntityExecutor[Main], data_source: SQLiteDataSource
    ):
        with data_source.connection() as conn:
            conn.execute(
                'INSERT INTO test_table_name ("str_field", "UniqueField", "double_field") VALUES (?, ?, ?)',
                ("a", "U1", "not a number"),
            )
        cursor = executor.read_all()
        with pytest.raises(ValueError):
            next(cursor)
        assert cursor.closed
        executor.create(make_main(unique_field="U2", str_field="b"))


class TestUpdateDelete:
    def test_update(self, executor: EntityExecutor[Main]):
        main = make_main()
        executor.create(main)
        main.note = "changed"
        main.bool_field = False
        assert executor.update(main) == 1
        loaded = executor.read(main.id)
        assert loaded.note == "changed"
        assert loaded.bool_field is False

    def test_update_missing_row(self, executor: EntityExecutor[Main]):
        assert executor.update(make_main(id=99)) == 0

    def test_update_field_by_field_or_column_name(self, executor: EntityExecutor[Main]):
        main = make_main()
        executor.create(main)
        assert executor.update_field(main.id, "note", "via-field") == 1
        assert executor.read(main.id).note == "via-field"
        assert executor.update_field(main.id, "UniqueField", "U9") == 1
        assert executor.read(main.id).unique_field == "U9"

    def test_update_field_rejects_collections(self, executor: EntityExecutor[Main]):
        with pytest.raises(ArgumentError, match="not a stored column"):
            executor.update_field(1, "embedded_list", [])

    def test_refresh(self, executor: EntityExecutor[Main]):
        main = make_main()
        executor.create(main)
        executor.update_field(main.id, "note", "fresh")
        assert executor.refresh(main) == 1
        assert main.note == "fresh"
        assert executor.refresh(make_main(id=99)) == 0

    def test_delete(self, executor: EntityExecutor[Main]):
        main = make_main()
        executor.create(main)
        assert executor.delete(main.id) == 1
        assert executor.read(main.id) is None
        assert executor.delete(main.id) == 0

    def test_delete_all_with_where(self, executor: EntityExecutor[Main]):
        executor.create(make_main(unique_field="U1", note="x"))
        executor.create(make_main(unique_field="U2", str_field="b", note="y"))
        assert executor.delete_all('"note"=?', "x") == 1
        assert executor.delete_all() == 1
