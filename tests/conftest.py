"""Test fixtures: async SQLite database in a temporary file."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

import pytest
import pytest_asyncio

from agent_store.binding import SQLAlchemyBinding
from agent_store.db.session import make_engine
from agent_store.models import MessageContent, MessageV2, TextPart, Thread
from agent_store.storage.query import QueryEngine
from agent_store.storage.tables import TableManager
from agent_store.store import AgentStore


@pytest.fixture
def database_url(tmp_path) -> str:
    # A file database so concurrent connections lock like a real server
    return f"sqlite+aiosqlite:///{tmp_path / 'store.db'}"


@pytest_asyncio.fixture
async def binding(database_url):
    """Binding over a fresh async engine."""
    b = SQLAlchemyBinding(make_engine(database_url, busy_timeout=10.0))
    yield b
    await b.close()


@pytest_asyncio.fixture
async def tables(binding):
    return TableManager(binding, prefix="test_")


@pytest_asyncio.fixture
async def engine(binding, tables):
    return QueryEngine(binding, tables)


@pytest_asyncio.fixture
async def store(binding):
    """Initialized store with the ``test_`` table prefix."""
    s = AgentStore(binding, table_prefix="test_")
    await s.init()
    return s


def make_thread(**overrides) -> Thread:
    now = datetime.now(UTC)
    data = {
        "id": f"thread-{uuid.uuid4()}",
        "resource_id": f"resource-{uuid.uuid4()}",
        "title": "Test Thread",
        "metadata": {"key": "value"},
        "created_at": now,
        "updated_at": now,
    }
    data.update(overrides)
    return Thread(**data)


def make_message(thread_id: str, text: str = "Hello", **overrides) -> MessageV2:
    data = {
        "id": f"msg-{uuid.uuid4()}",
        "thread_id": thread_id,
        "resource_id": "resource-1",
        "role": "user",
        "content": MessageContent(parts=[TextPart(text=text)], content=text),
        "created_at": datetime.now(UTC),
    }
    data.update(overrides)
    return MessageV2(**data)


def make_trace(**overrides) -> dict:
    data = {
        "id": f"span-{uuid.uuid4()}",
        "parent_span_id": None,
        "name": "agent.generate",
        "trace_id": f"trace-{uuid.uuid4()}",
        "scope": "agent",
        "kind": 1,
        "attributes": {"component": "agent"},
        "status": {"code": 0},
        "events": [],
        "links": [],
        "other": {},
        "start_time": 1718000000000000000,
        "end_time": 1718000000500000000,
        "created_at": datetime.now(UTC),
    }
    data.update(overrides)
    return data


@pytest.fixture
def thread_factory():
    return make_thread


@pytest.fixture
def message_factory():
    return make_message


@pytest.fixture
def trace_factory():
    return make_trace
