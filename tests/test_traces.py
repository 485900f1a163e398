"""Test trace persistence and filtering."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from agent_store.core.exceptions import ConstraintError
from agent_store.models import Trace
from agent_store.storage.schemas import TABLE_TRACES

pytestmark = pytest.mark.asyncio

BASE = datetime(2025, 1, 1, tzinfo=UTC)


class TestTraceWrites:
    async def test_batch_insert_and_read(self, store, trace_factory):
        records = [trace_factory(created_at=BASE + timedelta(seconds=i)) for i in range(3)]
        await store.batch_trace_insert(records=records)
        traces = await store.get_traces()
        assert [t.id for t in traces] == [r["id"] for r in reversed(records)]
        assert traces[0].start_time == "1718000000000000000"
        assert traces[0].attributes == {"component": "agent"}

    async def test_insert_single(self, store, trace_factory):
        trace = await store.traces.insert(trace_factory())
        assert isinstance(trace, Trace)
        assert [t.id for t in await store.get_traces()] == [trace.id]

    async def test_big_numbers_keep_precision(self, store, trace_factory):
        await store.batch_trace_insert(records=[trace_factory(start_time=2**70, end_time="123456789012345678901234")])
        (trace,) = await store.get_traces()
        assert trace.start_time == str(2**70)
        assert trace.end_time == "123456789012345678901234"

    async def test_float_times_rejected(self, store, trace_factory):
        with pytest.raises(ConstraintError):
            await store.batch_trace_insert(records=[trace_factory(), trace_factory(start_time=1.5)])
        assert await store.get_traces() == []

    async def test_invalid_json_status_reads_raw(self, store, trace_factory):
        await store.batch_trace_insert(records=[trace_factory(status="invalid json")])
        (trace,) = await store.get_traces()
        assert trace.status == "invalid json"

    async def test_missing_attributes_read_empty(self, store, trace_factory):
        await store.batch_trace_insert(records=[trace_factory(attributes=None)])
        (trace,) = await store.get_traces()
        assert trace.attributes == {}

    async def test_malformed_stored_json(self, store, trace_factory, binding):
        await store.batch_trace_insert(records=[trace_factory()])
        await binding.execute(f'UPDATE "test_{TABLE_TRACES}" SET events = :e', {"e": "[unterminated"})
        (trace,) = await store.get_traces()
        assert trace.events == "[unterminated"


class TestTraceQueries:
    async def seed(self, store, trace_factory):
        await store.batch_trace_insert(
            records=[
                trace_factory(id="s1", name="agent.generate", scope="agent", created_at=BASE),
                trace_factory(
                    id="s2",
                    name="agent.stream",
                    scope="workflow",
                    attributes={"component": "workflow"},
                    created_at=BASE + timedelta(minutes=1),
                ),
                trace_factory(id="s3", name="tool.call", scope="agent", created_at=BASE + timedelta(minutes=2)),
            ]
        )

    async def test_name_prefix(self, store, trace_factory):
        await self.seed(store, trace_factory)
        traces = await store.get_traces(name="agent")
        assert [t.id for t in traces] == ["s2", "s1"]

    async def test_scope_equality(self, store, trace_factory):
        await self.seed(store, trace_factory)
        traces = await store.get_traces(scope="agent")
        assert [t.id for t in traces] == ["s3", "s1"]
        assert await store.get_traces(scope="age") == []

    async def test_attributes(self, store, trace_factory):
        await self.seed(store, trace_factory)
        traces = await store.get_traces(attributes={"component": "workflow"})
        assert [t.id for t in traces] == ["s2"]

    async def test_column_filters(self, store, trace_factory):
        await self.seed(store, trace_factory)
        traces = await store.get_traces(filters={"id": "s3"})
        assert [t.id for t in traces] == ["s3"]

    async def test_date_range(self, store, trace_factory):
        await self.seed(store, trace_factory)
        traces = await store.get_traces(from_date=BASE + timedelta(minutes=1))
        assert [t.id for t in traces] == ["s3", "s2"]

    async def test_paginated(self, store, trace_factory):
        await self.seed(store, trace_factory)
        first = await store.get_traces_paginated(page=0, per_page=2)
        assert [t.id for t in first.traces] == ["s3", "s2"]
        assert first.total == 3
        assert first.has_more

        second = await store.get_traces_paginated(page=1, per_page=2)
        assert [t.id for t in second.traces] == ["s1"]
        assert not second.has_more
