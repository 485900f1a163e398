"""Core module with logging and exception types."""

from agent_store.core.exceptions import (
    BackendError,
    ConstraintError,
    DecodeError,
    NotFoundError,
    QueryError,
    ReferentialError,
    SchemaError,
    StoreError,
)
from agent_store.core.logging import get_logger, operation_scope, setup_logging

__all__ = [
    "get_logger",
    "operation_scope",
    "setup_logging",
    "StoreError",
    "NotFoundError",
    "ConstraintError",
    "ReferentialError",
    "SchemaError",
    "QueryError",
    "DecodeError",
    "BackendError",
]
