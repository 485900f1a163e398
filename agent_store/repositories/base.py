"""Base repository and helpers."""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.exceptions import DecodeError
from ..storage.query import QueryEngine

M = TypeVar("M", bound=BaseModel)


def to_model(model: type[M], row: Mapping[str, Any], table: str | None = None) -> M:
    """Validate a decoded row, ignoring columns the model does not declare.

    A stored row the model cannot represent raises ``DecodeError``.
    """
    try:
        return model.model_validate({key: value for key, value in row.items() if key in model.model_fields})
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
        raise DecodeError(
            f"Stored row is not a valid {model.__name__}: {', '.join(fields)}",
            details={"table": table, "model": model.__name__, "fields": fields},
        ) from exc


class EngineRepository:
    """Repository backed by the query engine."""

    def __init__(self, engine: QueryEngine):
        self._engine = engine
