"""Tests for SchemaManager against live SQLite tables."""

from __future__ import annotations

import pytest

from sample_entities import Main
from spineorm.datasource import SQLiteDataSource
from spineorm.profile_factory import derive_profile
from spineorm.registry import Registry
from spineorm.schema import SchemaManager


@pytest.fixture
def schema(data_source: SQLiteDataSource) -> SchemaManager:
    return SchemaManager(data_source)


class TestSchemaManager:
    def test_every_created_table_matches_its_profile(self, registry: Registry, schema: SchemaManager):
        for profile in registry.profiles():
            assert schema.table_exists(profile.table_name), profile.table_name
            assert schema.table_equals(profile), profile.table_name

    def test_table_exists_is_case_insensitive(self, registry: Registry, schema: SchemaManager):
        assert schema.table_exists("TEST_TABLE_NAME")
        assert not schema.table_exists("missing")

    def test_missing_table_has_empty_create_statement(self, schema: SchemaManager):
        assert schema.get_create_statement("missing") == ""
        assert not schema.table_equals(derive_profile(Main))

    def test_create_and_drop(self, schema: SchemaManager):
        profile = derive_profile(Main)
        assert schema.create_table_if_not_exists(profile) is True
        assert schema.create_table_if_not_exists(profile) is True
        assert schema.get_create_statement("test_table_name").startswith("CREATE TABLE test_table_name(")
        assert schema.drop_table_if_exists(profile) is True
        assert not schema.table_exists("test_table_name")
        assert schema.drop_table_if_exists(profile) is True

    def test_altered_table_is_not_equal(self, schema: SchemaManager, data_source: SQLiteDataSource):
        with data_source.connection() as conn:
            conn.execute('CREATE TABLE test_table_name("id" INTEGER PRIMARY KEY)')
        assert schema.table_exists("test_table_name")
        assert not schema.table_equals(derive_profile(Main))
