"""Tests for spineorm.errors module."""

import sqlite3

import pytest

from spineorm.errors import (
    ArgumentError,
    ConfigurationError,
    DAOError,
    ErrorCategory,
    ErrorCode,
    ErrorContext,
    ForeignKeyError,
    OrmError,
    RecordExistsError,
    RecordNotFoundError,
    translate_integrity_error,
)


def _integrity_error(sql_setup: list[str], failing: str) -> sqlite3.IntegrityError:
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        for sql in sql_setup:
            conn.execute(sql)
        with pytest.raises(sqlite3.IntegrityError) as info:
            conn.execute(failing)
        return info.value
    finally:
        conn.close()


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_to_dict_includes_set_fields(self):
        ctx = ErrorContext(table="t", column="c", metadata={"key": "value"})
        d = ctx.to_dict()
        assert d == {"table": "t", "column": "c", "key": "value"}
        assert "sql" not in d

    def test_empty_context(self):
        assert ErrorContext().to_dict() == {}


class TestOrmError:
    """Test OrmError base class."""

    def test_default_category(self):
        err = OrmError("boom")
        assert err.message == "boom"
        assert err.category is ErrorCategory.INTERNAL

    def test_subclass_categories(self):
        assert ConfigurationError("x").category is ErrorCategory.CONFIG
        assert ArgumentError("x").category is ErrorCategory.VALIDATION
        assert RecordExistsError().category is ErrorCategory.DATABASE

    def test_argument_error_is_value_error(self):
        with pytest.raises(ValueError):
            raise ArgumentError("bad")

    def test_with_context_sets_known_fields_and_metadata(self):
        err = ArgumentError("No such column").with_context(table="T", column="c", extra=1)
        assert err.context.table == "T"
        assert err.context.column == "c"
        assert err.context.metadata == {"extra": 1}

    def test_cause_is_chained(self):
        cause = RuntimeError("inner")
        err = ConfigurationError("outer", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "inner"

    def test_to_dict(self):
        d = ConfigurationError("bad entity").with_context(entity_type="Main").to_dict()
        assert d["error_type"] == "ConfigurationError"
        assert d["category"] == "CONFIG"
        assert d["context"] == {"entity_type": "Main"}


class TestDAOError:
    def test_error_codes(self):
        assert RecordExistsError().error_code is ErrorCode.RECORD_EXISTS
        assert ForeignKeyError().error_code is ErrorCode.FOREIGN_KEY
        assert RecordNotFoundError().error_code is ErrorCode.RECORD_NOT_FOUND

    def test_cause_entity_in_dict(self):
        err = RecordExistsError(cause_entity={"id": 1})
        d = err.to_dict()
        assert d["error_code"] == "RECORD_EXISTS"
        assert d["cause_entity"] == "{'id': 1}"

    def test_all_dao_errors_share_base(self):
        for cls in (RecordExistsError, ForeignKeyError, RecordNotFoundError):
            assert issubclass(cls, DAOError)


class TestTranslateIntegrityError:
    def test_unique_violation(self):
        error = _integrity_error(
            ["CREATE TABLE t (a TEXT UNIQUE)", "INSERT INTO t VALUES ('x')"],
            "INSERT INTO t VALUES ('x')",
        )
        translated = translate_integrity_error(error, "entity", table="t")
        assert isinstance(translated, RecordExistsError)
        assert translated.cause_entity == "entity"
        assert translated.context.table == "t"
        assert translated.__cause__ is error

    def test_primary_key_violation(self):
        error = _integrity_error(
            ["CREATE TABLE t (id INTEGER PRIMARY KEY)", "INSERT INTO t VALUES (1)"],
            "INSERT INTO t VALUES (1)",
        )
        assert isinstance(translate_integrity_error(error), RecordExistsError)

    def test_foreign_key_violation(self):
        error = _integrity_error(
            [
                "CREATE TABLE p (id INTEGER PRIMARY KEY)",
                "CREATE TABLE c (pid INTEGER REFERENCES p (id))",
            ],
            "INSERT INTO c VALUES (42)",
        )
        translated = translate_integrity_error(error, table="c")
        assert isinstance(translated, ForeignKeyError)
        assert translated.error_code is ErrorCode.FOREIGN_KEY

    def test_not_null_violation_is_reraised(self):
        error = _integrity_error(
            ["CREATE TABLE t (a TEXT NOT NULL)"],
            "INSERT INTO t VALUES (NULL)",
        )
        with pytest.raises(sqlite3.IntegrityError) as info:
            translate_integrity_error(error)
        assert info.value is error
