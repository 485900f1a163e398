"""Built-in tables of the agent store."""

from __future__ import annotations

from .types import ColumnDefinition as Col
from .types import ColumnType as T
from .types import TableSchema

TABLE_THREADS = "threads"
TABLE_MESSAGES = "messages"
TABLE_TRACES = "traces"
TABLE_WORKFLOW_SNAPSHOT = "workflow_snapshot"
TABLE_EVALS = "evals"


THREADS_SCHEMA = TableSchema(
    columns={
        "id": Col(T.TEXT, nullable=False, primary_key=True),
        "resource_id": Col(T.TEXT, nullable=False),
        "title": Col(T.TEXT, nullable=False),
        "metadata": Col(T.JSON),
        "created_at": Col(T.TIMESTAMP, nullable=False),
        "updated_at": Col(T.TIMESTAMP, nullable=False),
    }
)

MESSAGES_SCHEMA = TableSchema(
    columns={
        "id": Col(T.TEXT, nullable=False, primary_key=True),
        "thread_id": Col(T.TEXT, nullable=False),
        "content": Col(T.JSON, nullable=False),
        "role": Col(T.TEXT, nullable=False),
        "type": Col(T.TEXT, nullable=False),
        "created_at": Col(T.TIMESTAMP, nullable=False),
        "resource_id": Col(T.TEXT),
        "seq": Col(T.INTEGER),
    },
    sequence_column="seq",
)

TRACES_SCHEMA = TableSchema(
    columns={
        "id": Col(T.TEXT, nullable=False, primary_key=True),
        "parent_span_id": Col(T.TEXT),
        "name": Col(T.TEXT, nullable=False),
        "trace_id": Col(T.TEXT, nullable=False),
        "scope": Col(T.TEXT, nullable=False),
        "kind": Col(T.INTEGER, nullable=False),
        "attributes": Col(T.JSON),
        "status": Col(T.JSON),
        "events": Col(T.JSON),
        "links": Col(T.JSON),
        "other": Col(T.JSON),
        "start_time": Col(T.BIGNUMBER, nullable=False),
        "end_time": Col(T.BIGNUMBER, nullable=False),
        "created_at": Col(T.TIMESTAMP, nullable=False),
    }
)

WORKFLOW_SNAPSHOT_SCHEMA = TableSchema(
    columns={
        "workflow_name": Col(T.TEXT, nullable=False, primary_key=True),
        "run_id": Col(T.TEXT, nullable=False, primary_key=True),
        "resource_id": Col(T.TEXT),
        "snapshot": Col(T.JSON, nullable=False),
        "created_at": Col(T.TIMESTAMP, nullable=False),
        "updated_at": Col(T.TIMESTAMP, nullable=False),
    }
)

EVALS_SCHEMA = TableSchema(
    columns={
        "input": Col(T.TEXT, nullable=False),
        "output": Col(T.TEXT, nullable=False),
        "result": Col(T.JSON, nullable=False),
        "agent_name": Col(T.TEXT, nullable=False),
        "metric_name": Col(T.TEXT, nullable=False),
        "instructions": Col(T.TEXT, nullable=False),
        "test_info": Col(T.JSON),
        "global_run_id": Col(T.TEXT, nullable=False),
        "run_id": Col(T.TEXT, nullable=False),
        "created_at": Col(T.TIMESTAMP, nullable=False),
    }
)

BUILTIN_SCHEMAS: dict[str, TableSchema] = {
    TABLE_THREADS: THREADS_SCHEMA,
    TABLE_MESSAGES: MESSAGES_SCHEMA,
    TABLE_TRACES: TRACES_SCHEMA,
    TABLE_WORKFLOW_SNAPSHOT: WORKFLOW_SNAPSHOT_SCHEMA,
    TABLE_EVALS: EVALS_SCHEMA,
}

# Columns added after the first release; ``AgentStore.init`` adds them to
# stores created by older versions.
ADDITIVE_MIGRATIONS: list[tuple[str, str]] = [
    (TABLE_MESSAGES, "resource_id"),
    (TABLE_MESSAGES, "seq"),
    (TABLE_WORKFLOW_SNAPSHOT, "resource_id"),
]
