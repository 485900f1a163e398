"""Translation of binding failures into store errors."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from ..binding import BindingError, BindingIntegrityError, BindingPreconditionError
from ..core.exceptions import BackendError, ConstraintError, ReferentialError
from ..core.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def backend_errors(operation: str, table: str, key: Any = None) -> Iterator[None]:
    """Re-raise binding failures as store errors with context.

    A failed batch guard means a row the batch depends on is gone, so it
    surfaces as ``ReferentialError`` with the guard's statement index.
    """
    try:
        yield
    except BindingIntegrityError as exc:
        details = {"operation": operation, "table": table, "key": key}
        logger.warning(f"Constraint violation: {exc}", data=details)
        raise ConstraintError(f"{operation} on {table} violated a constraint: {exc}", details=details) from exc
    except BindingPreconditionError as exc:
        details = {"operation": operation, "table": table, "key": key, "statement": exc.index}
        logger.warning(f"Batch guard failed: {exc}", data=details)
        raise ReferentialError(f"{operation} on {table} lost a referenced row: {exc}", details=details) from exc
    except BindingError as exc:
        details = {"operation": operation, "table": table, "key": key}
        logger.error(f"Backend failure: {exc}", data={**details, "sql": exc.sql})
        raise BackendError(f"{operation} on {table} failed: {exc}", details=details) from exc
