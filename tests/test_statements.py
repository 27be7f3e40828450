"""Tests for SQL statement text built from profiles."""

from __future__ import annotations

import pytest

from sample_entities import Embedded, Main, Tag
from spineorm.profile import Profile
from spineorm.profile_factory import derive_profile, synthesize_join
from spineorm.statements import (
    build_create,
    build_delete_all,
    build_delete_by_id,
    build_drop,
    build_find_all,
    build_insert,
    build_read_by_columns,
    build_read_by_id,
    build_read_by_natural_key,
    build_select_all,
    build_update,
    build_update_by_id,
    build_update_field,
    count_placeholders,
)

MAIN_PROJECTION = (
    '"id", "str_field", "stringDefaultColumn", "UniqueField", "double_field", "bool_field", "note"'
)


@pytest.fixture
def main() -> Profile:
    return derive_profile(Main)


@pytest.fixture
def joined(main: Profile) -> Profile:
    return synthesize_join(main.column_by_field("embedded_list"), main, derive_profile(Embedded))


class TestCreate:
    def test_main_table(self, main: Profile):
        assert build_create(main) == (
            "CREATE TABLE IF NOT EXISTS test_table_name(\n"
            '"id"\tINTEGER PRIMARY KEY AUTOINCREMENT,\n'
            '"str_field"\tTEXT,\n'
            '"stringDefaultColumn"\tTEXT,\n'
            '"UniqueField"\tTEXT UNIQUE,\n'
            '"double_field"\tREAL,\n'
            '"bool_field"\tINTEGER DEFAULT 0,\n'
            '"note"\tTEXT,\n'
            'UNIQUE("str_field","stringDefaultColumn")\n'
            ")"
        )

    def test_without_if_not_exists(self, main: Profile):
        assert build_create(main, if_not_exists=False).startswith("CREATE TABLE test_table_name(\n")

    def test_not_null(self):
        assert '"name"\tTEXT NOT NULL' in build_create(derive_profile(Tag))

    def test_join_table(self, joined: Profile):
        assert build_create(joined, if_not_exists=False) == (
            "CREATE TABLE tbl_joined(\n"
            '"id"\tINTEGER PRIMARY KEY AUTOINCREMENT,\n'
            '"OWNER_ID"\tINTEGER,\n'
            '"EMBEDDED_ID"\tINTEGER,\n'
            'UNIQUE("OWNER_ID","EMBEDDED_ID"),\n'
            'FOREIGN KEY ("OWNER_ID") REFERENCES test_table_name ("id") ON DELETE CASCADE,\n'
            'FOREIGN KEY ("EMBEDDED_ID") REFERENCES tbl_embedded ("id") ON DELETE CASCADE\n'
            ")"
        )

    def test_drop(self, main: Profile):
        assert build_drop(main) == "DROP TABLE IF EXISTS test_table_name"
        assert build_drop(main, if_exists=False) == "DROP TABLE test_table_name"


class TestInsertUpdate:
    def test_insert(self, main: Profile):
        assert build_insert(main) == (
            'INSERT INTO test_table_name ("id","str_field","stringDefaultColumn","UniqueField",'
            '"double_field","bool_field","note") VALUES (?, ?, ?, ?, ?, ?, ?)'
        )

    def test_update_excludes_id(self, main: Profile):
        assert build_update(main) == (
            'UPDATE test_table_name SET "str_field"=?, "stringDefaultColumn"=?, "UniqueField"=?, '
            '"double_field"=?, "bool_field"=?, "note"=?'
        )

    def test_update_by_id_binds_id_last(self, main: Profile):
        sql = build_update_by_id(main)
        assert sql.endswith('\nWHERE "id"=?')
        assert count_placeholders(sql) == len(main.updatable_columns) + 1

    def test_update_field(self, main: Profile):
        sql = build_update_field(main, main.column_by_field("note"))
        assert sql == 'UPDATE test_table_name SET "note"=?\nWHERE "id"=?'


class TestReads:
    def test_natural_key_canonical_form(self, main: Profile):
        sql = build_read_by_natural_key(main)
        assert sql.startswith(f"SELECT {MAIN_PROJECTION} FROM test_table_name\nWHERE ")
        assert '"id"' not in sql.split("WHERE", 1)[1]
        assert count_placeholders(sql) == 6

    def test_natural_key_null_values(self, main: Profile):
        entity = Main(str_field="a", unique_field="U")
        sql = build_read_by_natural_key(main, entity)
        where = sql.split("WHERE ", 1)[1]
        assert where == (
            '"str_field"=? AND "stringDefaultColumn"=? AND "UniqueField"=? AND '
            '"double_field" IS NULL AND "bool_field"=? AND "note" IS NULL'
        )
        assert count_placeholders(sql) == 4

    def test_read_by_id(self, main: Profile):
        assert build_read_by_id(main) == f'SELECT {MAIN_PROJECTION} FROM test_table_name\nWHERE "id"=?'

    def test_read_by_columns(self, main: Profile):
        sql = build_read_by_columns(main, ["str_field", "stringDefaultColumn"])
        assert sql.endswith('WHERE "str_field"=? AND "stringDefaultColumn"=?')

    def test_select_all_and_find_all(self, main: Profile):
        assert build_select_all(main) == f"SELECT {MAIN_PROJECTION} FROM test_table_name"
        assert build_find_all(main, "note=?").endswith("\nWHERE note=?")


class TestDeletes:
    def test_delete_by_id(self, main: Profile):
        assert build_delete_by_id(main) == 'DELETE FROM test_table_name\nWHERE "id"=?'

    def test_delete_all(self, main: Profile):
        assert build_delete_all(main) == "DELETE FROM test_table_name"
        assert build_delete_all(main, "note=?") == "DELETE FROM test_table_name\nWHERE note=?"


class TestCountPlaceholders:
    @pytest.mark.parametrize(
        ("sql", "expected"),
        [
            ("SELECT 1", 0),
            ("a=? AND b=?", 2),
            ("a='?' AND b=?", 1),
            ('"odd?name"=?', 1),
            ("a=? -- why?\nAND b=?", 2),
            ("a=? /* b=? */", 1),
            ("a=? -- trailing?", 1),
        ],
    )
    def test_counts_outside_quotes_and_comments(self, sql: str, expected: int):
        assert count_placeholders(sql) == expected
