"""Trace repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Protocol, Sequence, Union, runtime_checkable

from ..core.exceptions import ConstraintError
from ..models import PageInfo, Trace, TracesPage
from ..storage.query import AttributesContain, DateRange, Eq, Filter, Page, Pagination, Prefix
from ..storage.schemas import TABLE_TRACES
from .base import EngineRepository, to_model

TraceInput = Union[Trace, Mapping[str, Any]]


@runtime_checkable
class TraceRepository(Protocol):
    async def insert(self, trace: TraceInput) -> Trace: ...
    async def batch_insert(self, traces: Sequence[TraceInput]) -> None: ...
    async def query(self, **criteria: Any) -> list[Trace]: ...
    async def query_paginated(self, **criteria: Any) -> TracesPage: ...


def _parse(trace: TraceInput, index: int | None = None) -> Trace:
    if isinstance(trace, Trace):
        return trace
    try:
        return Trace.model_validate(trace)
    except ValueError as exc:
        where = f" at row {index}" if index is not None else ""
        raise ConstraintError(f"Invalid trace{where}: {exc}", details={"table": TABLE_TRACES, "row": index}) from exc


class SQLTraceRepository(EngineRepository):
    async def insert(self, trace: TraceInput) -> Trace:
        parsed = _parse(trace)
        await self._engine.insert(TABLE_TRACES, parsed.model_dump())
        return parsed

    async def batch_insert(self, traces: Sequence[TraceInput]) -> None:
        parsed = [_parse(trace, index) for index, trace in enumerate(traces)]
        await self._engine.batch_insert(TABLE_TRACES, [trace.model_dump() for trace in parsed])

    async def _search(
        self,
        name: str | None = None,
        scope: str | None = None,
        attributes: Mapping[str, Any] | None = None,
        filters: Mapping[str, Any] | None = None,
        from_date: datetime | str | None = None,
        to_date: datetime | str | None = None,
        page: int = 0,
        per_page: int = 100,
    ) -> Page:
        clauses: list[Filter] = []
        if name:
            clauses.append(Prefix("name", name))
        if scope:
            clauses.append(Eq("scope", scope))
        if attributes:
            clauses.append(AttributesContain("attributes", attributes))
        for column, value in (filters or {}).items():
            clauses.append(Eq(column, value))
        if from_date is not None or to_date is not None:
            clauses.append(DateRange("created_at", from_date, to_date))
        return await self._engine.query(TABLE_TRACES, clauses, Pagination.pages(page, per_page))

    async def query(self, **criteria: Any) -> list[Trace]:
        """Newest-first traces: ``name`` is a prefix, ``scope`` exact, ``attributes`` a sub-match."""
        result = await self._search(**criteria)
        return [to_model(Trace, row, TABLE_TRACES) for row in result.rows]

    async def query_paginated(self, **criteria: Any) -> TracesPage:
        result = await self._search(**criteria)
        traces = [to_model(Trace, row, TABLE_TRACES) for row in result.rows]
        page, per_page = criteria.get("page", 0), criteria.get("per_page", 100)
        return TracesPage(traces=traces, **PageInfo.compute(result.total, page, per_page, len(traces)))
