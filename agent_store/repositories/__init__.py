"""Domain repositories: Protocol interfaces + query-engine implementations."""

from .base import EngineRepository
from .thread_repo import ThreadRepository, SQLThreadRepository
from .message_repo import MessageRepository, SQLMessageRepository
from .trace_repo import TraceRepository, SQLTraceRepository
from .workflow_repo import WorkflowRepository, SQLWorkflowRepository
from .eval_repo import EvalRepository, SQLEvalRepository

__all__ = [
    "EngineRepository",
    "ThreadRepository", "SQLThreadRepository",
    "MessageRepository", "SQLMessageRepository",
    "TraceRepository", "SQLTraceRepository",
    "WorkflowRepository", "SQLWorkflowRepository",
    "EvalRepository", "SQLEvalRepository",
]
