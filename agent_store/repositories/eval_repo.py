"""Eval repository."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Union, runtime_checkable

from ..core.exceptions import ConstraintError, QueryError
from ..models import EvalRow, EvalType
from ..storage.query import Eq
from ..storage.schemas import TABLE_EVALS
from .base import EngineRepository, to_model

EvalInput = Union[EvalRow, Mapping[str, Any]]


@runtime_checkable
class EvalRepository(Protocol):
    async def insert(self, row: EvalInput) -> EvalRow: ...
    async def list_by_agent_name(self, agent_name: str, type: EvalType | None = None) -> list[EvalRow]: ...


def _is_test_run(row: EvalRow) -> bool:
    return isinstance(row.test_info, dict) and row.test_info.get("test_path") is not None


class SQLEvalRepository(EngineRepository):
    async def insert(self, row: EvalInput) -> EvalRow:
        try:
            parsed = row if isinstance(row, EvalRow) else EvalRow.model_validate(row)
        except ValueError as exc:
            raise ConstraintError(f"Invalid eval row: {exc}", details={"table": TABLE_EVALS}) from exc
        await self._engine.insert(TABLE_EVALS, parsed.model_dump())
        return parsed

    async def list_by_agent_name(self, agent_name: str, type: EvalType | None = None) -> list[EvalRow]:
        """Evals of an agent, newest first.

        ``test`` keeps rows whose ``test_info`` names a test path, ``live`` the rest.
        """
        if type not in (None, "test", "live"):
            raise QueryError(f"Unknown eval type: {type!r}")
        page = await self._engine.query(TABLE_EVALS, [Eq("agent_name", agent_name)])
        rows = [to_model(EvalRow, row, TABLE_EVALS) for row in page.rows]
        if type == "test":
            return [row for row in rows if _is_test_run(row)]
        if type == "live":
            return [row for row in rows if not _is_test_run(row)]
        return rows
