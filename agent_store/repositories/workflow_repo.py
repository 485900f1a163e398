"""Workflow snapshot repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from ..core.logging import get_logger
from ..models import WorkflowRun, WorkflowRuns, utcnow
from ..storage.query import DateRange, Eq, Filter, OrderBy, Pagination
from ..storage.schemas import TABLE_WORKFLOW_SNAPSHOT
from .base import EngineRepository, to_model

logger = get_logger(__name__)

_NEWEST_FIRST = [OrderBy("created_at", descending=True), OrderBy("run_id", descending=True)]


@runtime_checkable
class WorkflowRepository(Protocol):
    async def persist(
        self, workflow_name: str, run_id: str, snapshot: Any, resource_id: str | None = None
    ) -> None: ...
    async def load(self, workflow_name: str, run_id: str) -> Any: ...
    async def list_runs(
        self,
        workflow_name: str | None = None,
        resource_id: str | None = None,
        from_date: datetime | str | None = None,
        to_date: datetime | str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> WorkflowRuns: ...
    async def get_run_by_id(self, run_id: str, workflow_name: str | None = None) -> WorkflowRun | None: ...


class SQLWorkflowRepository(EngineRepository):
    async def persist(
        self, workflow_name: str, run_id: str, snapshot: Any, resource_id: str | None = None
    ) -> None:
        """Upsert the snapshot of a run; the first write's ``created_at`` is kept."""
        now = utcnow()
        await self._engine.upsert(
            TABLE_WORKFLOW_SNAPSHOT,
            {
                "workflow_name": workflow_name,
                "run_id": run_id,
                "resource_id": resource_id,
                "snapshot": snapshot,
                "created_at": now,
                "updated_at": now,
            },
            preserve=("created_at",),
        )
        logger.debug("Snapshot persisted", data={"workflow_name": workflow_name, "run_id": run_id})

    async def load(self, workflow_name: str, run_id: str) -> Any:
        row = await self._engine.load(TABLE_WORKFLOW_SNAPSHOT, {"workflow_name": workflow_name, "run_id": run_id})
        return row["snapshot"] if row else None

    async def list_runs(
        self,
        workflow_name: str | None = None,
        resource_id: str | None = None,
        from_date: datetime | str | None = None,
        to_date: datetime | str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> WorkflowRuns:
        filters: list[Filter] = []
        if workflow_name:
            filters.append(Eq("workflow_name", workflow_name))
        if resource_id:
            filters.append(Eq("resource_id", resource_id))
        if from_date is not None or to_date is not None:
            filters.append(DateRange("created_at", from_date, to_date))
        page = await self._engine.query(
            TABLE_WORKFLOW_SNAPSHOT, filters, Pagination.window(limit, offset), _NEWEST_FIRST
        )
        runs = [to_model(WorkflowRun, row, TABLE_WORKFLOW_SNAPSHOT) for row in page.rows]
        return WorkflowRuns(runs=runs, total=page.total)

    async def get_run_by_id(self, run_id: str, workflow_name: str | None = None) -> WorkflowRun | None:
        filters: list[Filter] = [Eq("run_id", run_id)]
        if workflow_name:
            filters.append(Eq("workflow_name", workflow_name))
        page = await self._engine.query(TABLE_WORKFLOW_SNAPSHOT, filters, Pagination.window(limit=1), _NEWEST_FIRST)
        return to_model(WorkflowRun, page.rows[0], TABLE_WORKFLOW_SNAPSHOT) if page.rows else None
