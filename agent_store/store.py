"""AgentStore: the framework-facing facade over tables, engine and repositories."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Sequence, Union

from .binding import SQLAlchemyBinding, SQLBinding
from .config import StoreSettings, get_settings
from .core.exceptions import ConstraintError
from .core.logging import get_logger, redact_url, setup_logging
from .db.session import make_engine
from .models import (
    AnyMessage,
    EvalRow,
    EvalType,
    MessageFormat,
    MessagesPage,
    Thread,
    ThreadsPage,
    Trace,
    TracesPage,
    WorkflowRun,
    WorkflowRuns,
)
from .repositories import (
    SQLEvalRepository,
    SQLMessageRepository,
    SQLThreadRepository,
    SQLTraceRepository,
    SQLWorkflowRepository,
)
from .repositories.message_repo import MessageInput
from .repositories.trace_repo import TraceInput
from .storage.query import Filter, OrderBy, Page, Pagination, QueryEngine
from .storage.schemas import ADDITIVE_MIGRATIONS, BUILTIN_SCHEMAS
from .storage.tables import TableManager
from .storage.types import ColumnDefinition, TableSchema

logger = get_logger(__name__)

SchemaInput = Union[TableSchema, Mapping[str, Mapping[str, Any]]]


class AgentStore:
    """Persistence for threads, messages, traces, workflow runs and evals.

    Every method takes keyword arguments. Call :meth:`init` once before use
    to create the built-in tables and bring older stores up to date.
    """

    def __init__(self, binding: SQLBinding, table_prefix: str = ""):
        self._binding = binding
        self.tables = TableManager(binding, table_prefix)
        self.engine = QueryEngine(binding, self.tables)
        self.threads = SQLThreadRepository(self.engine)
        self.messages = SQLMessageRepository(self.engine)
        self.traces = SQLTraceRepository(self.engine)
        self.workflows = SQLWorkflowRepository(self.engine)
        self.evals = SQLEvalRepository(self.engine)

    @classmethod
    def from_settings(cls, settings: StoreSettings | None = None, configure_logging: bool = False) -> "AgentStore":
        """Build engine, binding and store from settings.

        With ``configure_logging`` the root logger is set up from the
        settings' log level, JSON flag and log file.
        """
        settings = settings or get_settings()
        if configure_logging:
            setup_logging(settings.log_level, json_output=settings.json_logs, log_file=settings.log_file)
        engine = make_engine(
            settings.database_url,
            echo=settings.echo_sql,
            busy_timeout=settings.sqlite_busy_timeout,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
        )
        logger.info(
            "Store configured",
            data={"database_url": redact_url(settings.database_url), "table_prefix": settings.table_prefix},
        )
        return cls(SQLAlchemyBinding(engine), table_prefix=settings.table_prefix)

    async def __aenter__(self) -> "AgentStore":
        await self.init()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def init(self) -> None:
        for name, schema in BUILTIN_SCHEMAS.items():
            await self.tables.create_table(name, schema)
        for table, column in ADDITIVE_MIGRATIONS:
            await self.tables.ensure_column(table, column, BUILTIN_SCHEMAS[table].columns[column])
        logger.info("Store initialized", data={"prefix": self.tables.prefix, "tables": list(BUILTIN_SCHEMAS)})

    async def close(self) -> None:
        await self._binding.close()

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------
    async def create_table(self, *, table_name: str, schema: SchemaInput) -> None:
        if not isinstance(schema, TableSchema):
            schema = TableSchema.from_dict(schema)
        await self.tables.create_table(table_name, schema)

    async def clear_table(self, *, table_name: str) -> None:
        await self.tables.clear_table(table_name)

    async def drop_table(self, *, table_name: str) -> None:
        await self.tables.drop_table(table_name)

    async def has_column(self, *, table_name: str, column: str) -> bool:
        return await self.tables.has_column(table_name, column)

    async def ensure_column(
        self, *, table_name: str, column: str, definition: ColumnDefinition | Mapping[str, Any]
    ) -> bool:
        if not isinstance(definition, ColumnDefinition):
            definition = ColumnDefinition.from_dict(definition)
        return await self.tables.ensure_column(table_name, column, definition)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    async def insert(self, *, table_name: str, record: Mapping[str, Any]) -> None:
        await self.engine.insert(table_name, record)

    async def batch_insert(self, *, table_name: str, records: Sequence[Mapping[str, Any]]) -> None:
        await self.engine.batch_insert(table_name, records)

    async def load(self, *, table_name: str, keys: Mapping[str, Any]) -> dict[str, Any] | None:
        return await self.engine.load(table_name, keys)

    async def query(
        self,
        *,
        table_name: str,
        filters: Sequence[Filter] = (),
        pagination: Pagination | None = None,
        order_by: Sequence[OrderBy] | None = None,
    ) -> Page:
        return await self.engine.query(table_name, filters, pagination, order_by)

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------
    async def save_thread(self, *, thread: Thread | Mapping[str, Any]) -> Thread:
        if not isinstance(thread, Thread):
            try:
                thread = Thread.model_validate(thread)
            except ValueError as exc:
                raise ConstraintError(f"Invalid thread: {exc}", details={"table": "threads"}) from exc
        return await self.threads.save(thread)

    async def get_thread_by_id(self, *, thread_id: str) -> Thread | None:
        return await self.threads.get_by_id(thread_id)

    async def get_threads_by_resource_id(self, *, resource_id: str) -> list[Thread]:
        return await self.threads.list_for_resource(resource_id)

    async def get_threads_by_resource_id_paginated(
        self, *, resource_id: str, page: int = 0, per_page: int = 100
    ) -> ThreadsPage:
        return await self.threads.list_for_resource_paginated(resource_id, page, per_page)

    async def update_thread(self, *, id: str, title: str, metadata: Mapping[str, Any] | None = None) -> Thread:
        return await self.threads.update(id, title, metadata)

    async def delete_thread(self, *, thread_id: str) -> None:
        await self.threads.delete(thread_id)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    async def save_messages(
        self, *, messages: Sequence[MessageInput], format: MessageFormat = "v1"
    ) -> list[AnyMessage]:
        return await self.messages.save(messages, format)

    async def get_messages(
        self, *, thread_id: str, format: MessageFormat = "v1", last: int | None = None
    ) -> list[AnyMessage]:
        return await self.messages.get(thread_id, format, last)

    async def get_messages_paginated(
        self,
        *,
        thread_id: str,
        format: MessageFormat = "v1",
        page: int = 0,
        per_page: int = 40,
        from_date: datetime | str | None = None,
        to_date: datetime | str | None = None,
    ) -> MessagesPage:
        return await self.messages.get_paginated(thread_id, format, page, per_page, from_date, to_date)

    # ------------------------------------------------------------------
    # Traces
    # ------------------------------------------------------------------
    async def get_traces(
        self,
        *,
        name: str | None = None,
        scope: str | None = None,
        attributes: Mapping[str, Any] | None = None,
        filters: Mapping[str, Any] | None = None,
        from_date: datetime | str | None = None,
        to_date: datetime | str | None = None,
        page: int = 0,
        per_page: int = 100,
    ) -> list[Trace]:
        return await self.traces.query(
            name=name, scope=scope, attributes=attributes, filters=filters,
            from_date=from_date, to_date=to_date, page=page, per_page=per_page,
        )

    async def get_traces_paginated(
        self,
        *,
        name: str | None = None,
        scope: str | None = None,
        attributes: Mapping[str, Any] | None = None,
        filters: Mapping[str, Any] | None = None,
        from_date: datetime | str | None = None,
        to_date: datetime | str | None = None,
        page: int = 0,
        per_page: int = 100,
    ) -> TracesPage:
        return await self.traces.query_paginated(
            name=name, scope=scope, attributes=attributes, filters=filters,
            from_date=from_date, to_date=to_date, page=page, per_page=per_page,
        )

    async def batch_trace_insert(self, *, records: Sequence[TraceInput]) -> None:
        await self.traces.batch_insert(records)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------
    async def persist_workflow_snapshot(
        self,
        *,
        workflow_name: str,
        run_id: str,
        snapshot: Any,
        resource_id: str | None = None,
    ) -> None:
        await self.workflows.persist(workflow_name, run_id, snapshot, resource_id)

    async def load_workflow_snapshot(self, *, workflow_name: str, run_id: str) -> Any:
        """The stored snapshot (any JSON value, or raw text), or ``None`` when absent."""
        return await self.workflows.load(workflow_name, run_id)

    async def get_workflow_runs(
        self,
        *,
        workflow_name: str | None = None,
        resource_id: str | None = None,
        from_date: datetime | str | None = None,
        to_date: datetime | str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> WorkflowRuns:
        return await self.workflows.list_runs(workflow_name, resource_id, from_date, to_date, limit, offset)

    async def get_workflow_run_by_id(self, *, run_id: str, workflow_name: str | None = None) -> WorkflowRun | None:
        return await self.workflows.get_run_by_id(run_id, workflow_name)

    # ------------------------------------------------------------------
    # Evals
    # ------------------------------------------------------------------
    async def get_evals_by_agent_name(self, *, agent_name: str, type: EvalType | None = None) -> list[EvalRow]:
        return await self.evals.list_by_agent_name(agent_name, type)
