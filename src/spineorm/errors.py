"""
Structured error types for spine-orm.

Provides a small typed hierarchy for the three ways an ORM call can fail:
bad entity metadata, caller misuse, and store-level constraint violations.

Manifesto:
    - **Typed Error Hierarchy:** Configuration, argument and DAO errors are
      distinct types, never generic exceptions
    - **Translate once:** Store violations become domain errors exactly once,
      at the CRUD repository boundary
    - **Rich Context:** Errors carry table, column, SQL and the offending value
    - **Error Chaining:** The original driver exception is kept as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                          OrmError                             │
        │            (category, context, cause)                         │
        ├──────────────────────────────────────────────────────────────┤
        │  ConfigurationError   ArgumentError        DAOError           │
        │  (CONFIG)             (VALIDATION)         (DATABASE)         │
        │  fatal, at            caller misuse,       error_code +       │
        │  registration         fails fast           cause_entity       │
        │                                               │               │
        │                          RecordExistsError ───┤               │
        │                          ForeignKeyError ─────┤               │
        │                          RecordNotFoundError ─┘               │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> try:
    ...     crud.add(main)
    ... except DAOError as e:
    ...     if e.error_code is ErrorCode.RECORD_EXISTS:
    ...         ...

Guardrails:
    ❌ DON'T: Catch ``sqlite3.IntegrityError`` in repositories above CRUD
    ✅ DO: Catch ``DAOError`` and branch on ``error_code``

    ❌ DON'T: Retry ``ConfigurationError`` or ``ArgumentError``
    ✅ DO: Fix the entity declaration or the call site

Tags:
    error-handling, exception-hierarchy, orm, spine-orm
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and logging."""

    CONFIG = "CONFIG"             # Entity metadata, settings
    VALIDATION = "VALIDATION"     # Caller misuse
    DATABASE = "DATABASE"         # Constraint violations, missing rows
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


class ErrorCode(str, Enum):
    """Domain taxonomy for translated store-level failures."""

    RECORD_EXISTS = "RECORD_EXISTS"
    FOREIGN_KEY = "FOREIGN_KEY"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        entity_type: Name of the entity class involved
        table: Table the statement targeted
        column: Column or field name involved
        sql: Statement text, when one was executed
        metadata: Additional key-value pairs
    """

    entity_type: str | None = None
    table: str | None = None
    column: str | None = None
    sql: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["entity_type", "table", "column", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class OrmError(Exception):
    """
    Base exception for all spine-orm errors.

    Subclasses set ``default_category``. The optional ``cause`` is chained
    as ``__cause__`` so tracebacks keep the driver exception.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> OrmError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ArgumentError("No such column").with_context(
                table="MainTable", column="missing"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class ConfigurationError(OrmError):
    """Bad entity metadata. Detected once at registration, never retried."""

    default_category = ErrorCategory.CONFIG


class ArgumentError(OrmError, ValueError):
    """Caller misuse: wrong parameter count, unknown column, non-unique key."""

    default_category = ErrorCategory.VALIDATION


class DatabaseConnectionError(OrmError):
    """The connection provider could not open or configure a connection."""

    default_category = ErrorCategory.DATABASE


class DAOError(OrmError):
    """
    A store-level failure translated into the domain taxonomy.

    Attributes:
        error_code: One of :class:`ErrorCode`
        cause_entity: The value whose write or lookup failed
    """

    default_category = ErrorCategory.DATABASE
    error_code: ErrorCode

    def __init__(
        self,
        message: str,
        *,
        error_code: ErrorCode,
        cause_entity: Any = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, context=context, cause=cause)
        self.error_code = error_code
        self.cause_entity = cause_entity

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["error_code"] = self.error_code.value
        if self.cause_entity is not None:
            result["cause_entity"] = repr(self.cause_entity)
        return result


class RecordExistsError(DAOError):
    """Primary-key or unique constraint violation."""

    def __init__(self, message: str = "Entity already exists", **kwargs: Any):
        super().__init__(message, error_code=ErrorCode.RECORD_EXISTS, **kwargs)


class ForeignKeyError(DAOError):
    """Referential constraint violation."""

    def __init__(self, message: str = "Foreign key error", **kwargs: Any):
        super().__init__(message, error_code=ErrorCode.FOREIGN_KEY, **kwargs)


class RecordNotFoundError(DAOError):
    """An expected row is absent."""

    def __init__(self, message: str = "Record not found", **kwargs: Any):
        super().__init__(message, error_code=ErrorCode.RECORD_NOT_FOUND, **kwargs)


# =============================================================================
# TRANSLATION
# =============================================================================

_EXISTS_CODES = frozenset({"SQLITE_CONSTRAINT_PRIMARYKEY", "SQLITE_CONSTRAINT_UNIQUE"})
_FOREIGN_KEY_CODES = frozenset({"SQLITE_CONSTRAINT_FOREIGNKEY"})


def translate_integrity_error(
    error: sqlite3.IntegrityError,
    cause_entity: Any = None,
    *,
    table: str | None = None,
) -> DAOError:
    """Map a driver integrity error onto the domain taxonomy.

    Only primary-key, unique and foreign-key violations are translated.
    Anything else (NOT NULL, CHECK) is a defect and the original error is
    re-raised unchanged.
    """
    code = getattr(error, "sqlite_errorname", None)
    context = ErrorContext(
        entity_type=type(cause_entity).__name__ if cause_entity is not None else None,
        table=table,
        metadata={"driver_error": code} if code else {},
    )
    if code in _EXISTS_CODES:
        return RecordExistsError(cause_entity=cause_entity, context=context, cause=error)
    if code in _FOREIGN_KEY_CODES:
        suffix = f" ({table})" if table else ""
        return ForeignKeyError(
            f"Foreign key error for {cause_entity!r}{suffix}",
            cause_entity=cause_entity,
            context=context,
            cause=error,
        )
    raise error


__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "ErrorContext",
    "OrmError",
    "ConfigurationError",
    "ArgumentError",
    "DatabaseConnectionError",
    "DAOError",
    "RecordExistsError",
    "ForeignKeyError",
    "RecordNotFoundError",
    "translate_integrity_error",
]
