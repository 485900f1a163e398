"""Thread repository."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from ..core.exceptions import NotFoundError
from ..core.logging import get_logger
from ..models import PageInfo, Thread, ThreadsPage, utcnow
from ..storage.query import Eq, OrderBy, Pagination
from ..storage.schemas import TABLE_MESSAGES, TABLE_THREADS
from .base import EngineRepository, to_model

logger = get_logger(__name__)


@runtime_checkable
class ThreadRepository(Protocol):
    async def save(self, thread: Thread) -> Thread: ...
    async def get_by_id(self, id: str) -> Thread | None: ...
    async def list_for_resource(self, resource_id: str) -> list[Thread]: ...
    async def list_for_resource_paginated(self, resource_id: str, page: int = 0, per_page: int = 100) -> ThreadsPage: ...
    async def update(self, id: str, title: str, metadata: Mapping[str, Any] | None = None) -> Thread: ...
    async def delete(self, id: str) -> None: ...


class SQLThreadRepository(EngineRepository):
    async def save(self, thread: Thread) -> Thread:
        """Insert, or replace every column of the stored thread."""
        await self._engine.upsert(TABLE_THREADS, thread.model_dump())
        return thread

    async def get_by_id(self, id: str) -> Thread | None:
        row = await self._engine.load(TABLE_THREADS, {"id": id})
        return to_model(Thread, row, TABLE_THREADS) if row else None

    async def list_for_resource(self, resource_id: str) -> list[Thread]:
        page = await self._engine.query(
            TABLE_THREADS,
            [Eq("resource_id", resource_id)],
            order_by=[OrderBy("created_at"), OrderBy("id")],
        )
        return [to_model(Thread, row, TABLE_THREADS) for row in page.rows]

    async def list_for_resource_paginated(self, resource_id: str, page: int = 0, per_page: int = 100) -> ThreadsPage:
        result = await self._engine.query(
            TABLE_THREADS,
            [Eq("resource_id", resource_id)],
            Pagination.pages(page, per_page),
            order_by=[OrderBy("created_at", descending=True), OrderBy("id", descending=True)],
        )
        threads = [to_model(Thread, row, TABLE_THREADS) for row in result.rows]
        return ThreadsPage(threads=threads, **PageInfo.compute(result.total, page, per_page, len(threads)))

    async def update(self, id: str, title: str, metadata: Mapping[str, Any] | None = None) -> Thread:
        """Set the title and shallow-merge ``metadata`` into the stored mapping."""
        thread = await self.get_by_id(id)
        if thread is None:
            raise NotFoundError(f"Thread {id} not found", details={"thread_id": id})
        current = thread.metadata if isinstance(thread.metadata, dict) else {}
        changes = {"title": title, "metadata": {**current, **(metadata or {})}, "updated_at": utcnow()}
        await self._engine.update(TABLE_THREADS, {"id": id}, changes)
        return thread.model_copy(update=changes)

    async def delete(self, id: str) -> None:
        """Delete the thread and its messages in one atomic batch.

        The thread row goes first: a concurrent message save holding it
        commits before the message delete runs.
        """
        statements = [
            self._engine.delete_statement(TABLE_THREADS, {"id": id}),
            self._engine.delete_statement(TABLE_MESSAGES, {"thread_id": id}),
        ]
        await self._engine.run_batch("delete_thread", TABLE_THREADS, statements, key={"id": id})
        logger.info(f"Thread deleted: {id}")
