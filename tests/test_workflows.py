"""Test workflow snapshot persistence and run listing."""

from __future__ import annotations

import asyncio

import pytest

from agent_store.core.exceptions import SchemaError
from agent_store.models import WorkflowRun
from agent_store.storage.schemas import TABLE_WORKFLOW_SNAPSHOT
from agent_store.store import AgentStore

pytestmark = pytest.mark.asyncio


def snapshot(step: str, ts: int = 1) -> dict:
    return {"value": {"step": step}, "context": {"input": {"n": 1}}, "active_paths": [], "timestamp": ts}


class TestSnapshots:
    async def test_persist_and_load(self, store):
        await store.persist_workflow_snapshot(workflow_name="wf", run_id="r1", snapshot=snapshot("start"))
        assert await store.load_workflow_snapshot(workflow_name="wf", run_id="r1") == snapshot("start")

    async def test_load_missing(self, store):
        assert await store.load_workflow_snapshot(workflow_name="wf", run_id="nope") is None

    async def test_persist_replaces(self, store):
        await store.persist_workflow_snapshot(workflow_name="wf", run_id="r1", snapshot=snapshot("start", 1))
        first = await store.get_workflow_run_by_id(run_id="r1")
        await asyncio.sleep(0.01)
        await store.persist_workflow_snapshot(workflow_name="wf", run_id="r1", snapshot=snapshot("done", 2))

        runs = await store.get_workflow_runs()
        assert runs.total == 1
        assert await store.load_workflow_snapshot(workflow_name="wf", run_id="r1") == snapshot("done", 2)

        second = await store.get_workflow_run_by_id(run_id="r1")
        assert second.created_at == first.created_at
        assert second.updated_at > first.updated_at

    async def test_same_run_id_in_two_workflows(self, store):
        await store.persist_workflow_snapshot(workflow_name="a", run_id="r1", snapshot=snapshot("a"))
        await store.persist_workflow_snapshot(workflow_name="b", run_id="r1", snapshot=snapshot("b"))
        assert (await store.get_workflow_runs()).total == 2
        run = await store.get_workflow_run_by_id(run_id="r1", workflow_name="b")
        assert run.snapshot == snapshot("b")

    async def test_raw_snapshot_text(self, store, binding):
        await store.persist_workflow_snapshot(workflow_name="wf", run_id="r1", snapshot=snapshot("x"))
        await binding.execute(f'UPDATE "test_{TABLE_WORKFLOW_SNAPSHOT}" SET snapshot = :s', {"s": "corrupt"})
        assert await store.load_workflow_snapshot(workflow_name="wf", run_id="r1") == "corrupt"

    async def test_scalar_snapshot_in_run_listing(self, store):
        await store.persist_workflow_snapshot(workflow_name="wf", run_id="r1", snapshot="42")
        await store.persist_workflow_snapshot(workflow_name="wf", run_id="r2", snapshot=snapshot("x"))
        assert await store.load_workflow_snapshot(workflow_name="wf", run_id="r1") == 42

        runs = await store.get_workflow_runs(workflow_name="wf")
        assert runs.total == 2
        assert {run.run_id: run.snapshot for run in runs.runs} == {"r1": 42, "r2": snapshot("x")}
        run = await store.get_workflow_run_by_id(run_id="r1")
        assert run.snapshot == 42

    async def test_list_snapshot(self, store):
        await store.persist_workflow_snapshot(workflow_name="wf", run_id="r1", snapshot=["a", "b"])
        run = await store.get_workflow_run_by_id(run_id="r1", workflow_name="wf")
        assert run.snapshot == ["a", "b"]


class TestRuns:
    async def seed(self, store):
        for i in range(3):
            await store.persist_workflow_snapshot(
                workflow_name="wf", run_id=f"run-{i}", snapshot=snapshot(str(i)), resource_id=f"res-{i % 2}"
            )
            await asyncio.sleep(0.01)

    async def test_pagination_newest_first(self, store):
        await self.seed(store)
        first = await store.get_workflow_runs(limit=2, offset=0)
        second = await store.get_workflow_runs(limit=2, offset=2)
        assert [r.run_id for r in first.runs] == ["run-2", "run-1"]
        assert [r.run_id for r in second.runs] == ["run-0"]
        assert first.total == second.total == 3

    async def test_filter_by_workflow_name(self, store):
        await self.seed(store)
        await store.persist_workflow_snapshot(workflow_name="other", run_id="x", snapshot=snapshot("x"))
        runs = await store.get_workflow_runs(workflow_name="wf")
        assert runs.total == 3
        assert all(r.workflow_name == "wf" for r in runs.runs)

    async def test_filter_by_resource(self, store):
        await self.seed(store)
        runs = await store.get_workflow_runs(resource_id="res-0")
        assert [r.run_id for r in runs.runs] == ["run-2", "run-0"]

    async def test_filter_by_date(self, store):
        await self.seed(store)
        middle = await store.get_workflow_run_by_id(run_id="run-1")
        runs = await store.get_workflow_runs(from_date=middle.created_at)
        assert [r.run_id for r in runs.runs] == ["run-2", "run-1"]
        runs = await store.get_workflow_runs(to_date=middle.created_at)
        assert [r.run_id for r in runs.runs] == ["run-1", "run-0"]

    async def test_run_by_id(self, store):
        await self.seed(store)
        run = await store.get_workflow_run_by_id(run_id="run-1")
        assert isinstance(run, WorkflowRun)
        assert run.workflow_name == "wf"
        assert run.resource_id == "res-1"
        assert run.snapshot == snapshot("1")
        assert await store.get_workflow_run_by_id(run_id="missing") is None


class TestLegacyTable:
    async def test_init_adds_resource_id(self, binding):
        await binding.execute(
            'CREATE TABLE "legacy_workflow_snapshot" ('
            "workflow_name TEXT NOT NULL, run_id TEXT NOT NULL, snapshot TEXT NOT NULL, "
            "created_at TEXT NOT NULL, updated_at TEXT NOT NULL, PRIMARY KEY (workflow_name, run_id))"
        )
        store = AgentStore(binding, table_prefix="legacy_")
        await store.init()
        assert await store.has_column(table_name=TABLE_WORKFLOW_SNAPSHOT, column="resource_id")
        await store.persist_workflow_snapshot(workflow_name="wf", run_id="r", snapshot=snapshot("s"), resource_id="x")
        assert (await store.get_workflow_run_by_id(run_id="r")).resource_id == "x"

    async def test_table_without_key_is_rejected(self, binding):
        await binding.execute(
            'CREATE TABLE "nokey_workflow_snapshot" (workflow_name TEXT, run_id TEXT, snapshot TEXT)'
        )
        with pytest.raises(SchemaError):
            await AgentStore(binding, table_prefix="nokey_").init()
