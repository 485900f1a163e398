"""Schema-driven persistence for conversational-agent runtimes."""

from agent_store.binding import SQLAlchemyBinding, SQLBinding, Statement
from agent_store.config import StoreSettings, get_settings
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
from agent_store.models import (
    EvalRow,
    MessageContent,
    MessageV1,
    MessageV2,
    Thread,
    Trace,
    WorkflowRun,
    WorkflowRuns,
)
from agent_store.store import AgentStore

__version__ = "0.1.0"

__all__ = [
    "AgentStore",
    "SQLBinding",
    "SQLAlchemyBinding",
    "Statement",
    "StoreSettings",
    "get_settings",
    "StoreError",
    "NotFoundError",
    "ConstraintError",
    "ReferentialError",
    "SchemaError",
    "QueryError",
    "DecodeError",
    "BackendError",
    "Thread",
    "MessageContent",
    "MessageV1",
    "MessageV2",
    "Trace",
    "WorkflowRun",
    "WorkflowRuns",
    "EvalRow",
]
