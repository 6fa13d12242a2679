"""
Structured error types for sorm.

Every failure raised by the mapper carries the name of the operation that
produced it (``find_where``, ``save_record``, ...) and, when it wraps a
lower-level exception, chains it as ``__cause__`` so driver errors stay
inspectable.

Manifesto:
    - **Typed hierarchy:** One class per failure kind, callers catch what
      they can handle
    - **Operation-tagged:** Messages start with the originating operation
    - **Chained causes:** Driver and hook exceptions are never swallowed
    - **No retries:** Errors are returned to the immediate caller unchanged

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                        SormError                            │
        │        (category, operation, record_type, context, cause)   │
        ├─────────────────────────────────────────────────────────────┤
        │  InputShapeError        UnresolvedColumnError               │
        │  (VALIDATION)           (MAPPING, missing=[...])            │
        │       │                                                     │
        │  DescribeError          MissingIdentityError                │
        │  (MAPPING)              (MAPPING)                           │
        │                                                             │
        │  NoRowsError            ExecutionError                      │
        │  (NOT_FOUND)            (DATABASE)                          │
        │                                                             │
        │  HookError              ConfigError                         │
        │  (HOOK, hook=...)       (CONFIG)                            │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> err = ExecutionError("find_where: no such table: people", operation="find_where")
    >>> err.category
    <ErrorCategory.DATABASE: 'DATABASE'>
    >>> err.to_dict()["operation"]
    'find_where'

Tags:
    error-handling, exception-hierarchy, error-context, sorm
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"  # wrong argument shape
    MAPPING = "MAPPING"  # record/column metadata problems
    NOT_FOUND = "NOT_FOUND"  # empty result where a row was required
    DATABASE = "DATABASE"  # driver execute/query failures
    HOOK = "HOOK"  # lifecycle hook failures
    CONFIG = "CONFIG"  # unsupported dialect features, bad settings
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        operation: Mapper operation that failed (``save_record``, ...)
        record_type: Name of the record type involved
        hook: Lifecycle hook name, for hook failures
        query: Statement text, when the failure happened around a statement
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    record_type: str | None = None
    hook: str | None = None
    query: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "record_type", "hook", "query"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SormError(Exception):
    """
    Base exception for all sorm errors.

    Subclasses set ``default_category``. The ``operation`` and
    ``record_type`` keyword arguments are shortcuts for populating the
    :class:`ErrorContext`.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        record_type: str | None = None,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        if operation is not None:
            self.context.operation = operation
        if record_type is not None:
            self.context.record_type = record_type
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    @property
    def operation(self) -> str | None:
        return self.context.operation

    @property
    def record_type(self) -> str | None:
        return self.context.record_type

    def with_context(self, **kwargs: Any) -> SormError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ExecutionError("update failed").with_context(
                query="update people set name = $2 where id = $1"
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
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        result.update(self.context.to_dict())
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class InputShapeError(SormError):
    """An argument was not the kind of value the operation requires."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, kind: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.kind = kind


class DescribeError(SormError):
    """A record type could not be described (unsupported field kind)."""

    default_category = ErrorCategory.MAPPING


class UnresolvedColumnError(SormError):
    """Result columns that could not be matched to any field.

    ``missing`` lists every unresolved column, in result order.
    """

    default_category = ErrorCategory.MAPPING

    def __init__(self, message: str, *, missing: list[str], **kwargs: Any):
        super().__init__(message, **kwargs)
        self.missing = list(missing)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["missing"] = list(self.missing)
        return result


class MissingIdentityError(SormError):
    """The record type has no identity field."""

    default_category = ErrorCategory.MAPPING


class NoRowsError(SormError):
    """A single-record query returned no rows."""

    default_category = ErrorCategory.NOT_FOUND


class ExecutionError(SormError):
    """The underlying execute/query/scan call failed."""

    default_category = ErrorCategory.DATABASE


class HookError(SormError):
    """A lifecycle hook raised."""

    default_category = ErrorCategory.HOOK

    def __init__(self, message: str, *, hook: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.context.hook = hook

    @property
    def hook(self) -> str:
        return self.context.hook or ""


class ConfigError(SormError):
    """Invalid configuration or a feature the configured dialect lacks."""

    default_category = ErrorCategory.CONFIG


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SormError",
    "InputShapeError",
    "DescribeError",
    "UnresolvedColumnError",
    "MissingIdentityError",
    "NoRowsError",
    "ExecutionError",
    "HookError",
    "ConfigError",
]
