"""Exception hierarchy for the agent store.

Every error that leaves the store is a ``StoreError`` subclass carrying a
stable ``code`` and a ``details`` mapping with operation context. Raw driver
exceptions never cross the public API.
"""

from __future__ import annotations

from typing import Any


class StoreError(Exception):
    """Base exception for the agent store."""

    def __init__(
        self,
        message: str,
        code: str = "S5000",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            },
            **self.details,
        }


class NotFoundError(StoreError):
    """Table or row absent where existence is required."""

    def __init__(self, message: str = "Resource not found", details: dict[str, Any] | None = None):
        super().__init__(message, code="S4040", details=details)


class ConstraintError(StoreError):
    """Primary-key collision or a missing non-nullable value."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="S4090", details=details)


class ReferentialError(StoreError):
    """A record references a parent row that does not exist."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="S4091", details=details)


class SchemaError(StoreError):
    """Incompatible table definition or invalid identifier."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="S4220", details=details)


class QueryError(StoreError):
    """Malformed request, e.g. missing key columns or unknown columns."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="S4221", details=details)


class DecodeError(StoreError):
    """Value could not be decoded.

    JSON column decoding never raises this; malformed JSON degrades to the
    raw text instead.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="S4150", details=details)


class BackendError(StoreError):
    """Failure reported by the SQL binding, wrapped with operation context."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="S5000", details=details)
