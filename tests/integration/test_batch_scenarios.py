"""
End-to-end batch scenarios.

Runs real batches through BatchRunner / run_batch: pool, scheduler,
reporters and result collection together.
"""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Any

import httpx
import pytest

from batchflow import BatchRunner, WorkItem, run_batch, run_batch_sync
from batchflow.core.capabilities import CapabilityBundle
from batchflow.core.config import BatchFlowConfig, ProgressConfig, ResultsConfig
from batchflow.core.types import OutputMode, PoolState, TaskStatus
from batchflow.progress.reporters import DashboardReporter, VisualReporter
from batchflow.progress.sinks import HttpDashboardSink
from batchflow.utils.errors import ConfigurationError

pytestmark = pytest.mark.integration


async def finish_after(seconds: float, value: Any = None) -> Any:
    await asyncio.sleep(seconds)
    return value


async def fail_after(seconds: float) -> None:
    await asyncio.sleep(seconds)
    raise RuntimeError("work item failed")


def cooperative_sleep(seconds: float, scope) -> str:
    """Blocking work that checks its stop signal."""
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        if scope.should_stop():
            return "stopped"
        time.sleep(0.01)
    return "finished"


# =============================================================================
# Core Scenarios
# =============================================================================


class TestBatchScenarios:
    """Timeouts, failures, progress and generated ids."""

    @pytest.mark.asyncio
    async def test_slow_tasks_time_out_without_delaying_the_batch(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        items = [
            WorkItem(finish_after, (0.1, "fast-1"), id="fast-1"),
            WorkItem(finish_after, (0.1, "fast-2"), id="fast-2"),
            WorkItem(finish_after, (3.0,), id="slow-1", timeout=0.5),
            WorkItem(finish_after, (3.0,), id="slow-2", timeout=0.5),
            WorkItem(finish_after, (3.0,), id="slow-3", timeout=0.5),
        ]

        started = time.monotonic()
        outcome = await run_batch(items, config=capacity_three_config)
        duration = time.monotonic() - started

        statuses = {record.id: record.status for record in outcome.records}
        assert statuses == {
            "fast-1": TaskStatus.COMPLETED,
            "fast-2": TaskStatus.COMPLETED,
            "slow-1": TaskStatus.TIMED_OUT,
            "slow-2": TaskStatus.TIMED_OUT,
            "slow-3": TaskStatus.TIMED_OUT,
        }
        assert duration < 1.5
        assert outcome.records[0].payload == "fast-1"
        assert all(r.error.type == "TaskTimeoutError" for r in outcome.records[2:])
        assert not outcome.all_completed

    @pytest.mark.asyncio
    async def test_failure_is_recorded_and_batch_completes(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        outcome = await run_batch(
            [WorkItem(fail_after, (0.01,), id="broken"), WorkItem(finish_after, (0.01, 1), id="fine")],
            config=capacity_three_config,
        )

        broken, fine = outcome.records
        assert broken.status is TaskStatus.FAILED
        assert broken.error.message == "work item failed"
        assert broken.error.traceback
        assert fine.status is TaskStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_final_render_shows_full_progress(
        self, capacity_three_config: BatchFlowConfig, capture_console
    ) -> None:
        console, buffer = capture_console
        reporter = VisualReporter(console=console, refresh_interval=0.05, clear=False)

        outcome = await run_batch(
            [WorkItem(finish_after, (0.05, i), timeout=30.0) for i in range(3)],
            config=capacity_three_config,
            reporter=reporter,
        )

        assert [record.status for record in outcome.records] == [TaskStatus.COMPLETED] * 3
        assert [s.progress_percent for s in reporter.last_snapshots] == [100, 100, 100]
        assert "100%" in buffer.getvalue()

    @pytest.mark.asyncio
    async def test_generated_ids_and_descriptions(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        outcome = await run_batch(
            [WorkItem(finish_after, (0.01,)), WorkItem(finish_after, (0.01,))],
            config=capacity_three_config,
        )

        ids = [record.id for record in outcome.records]
        assert all(ids)
        assert len(set(ids)) == 2
        assert all(record.description == record.id for record in outcome.records)


# =============================================================================
# Runner Behaviour
# =============================================================================


class TestBatchRunner:
    """BatchRunner lifecycle and options."""

    @pytest.mark.asyncio
    async def test_thread_work_sees_stop_signal(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        async with BatchRunner(capacity_three_config) as runner:
            task = runner.submit(cooperative_sleep, 5.0, timeout=0.2)
            records = await runner.run()

            assert records[0].status is TaskStatus.TIMED_OUT
            assert task.scope.should_stop()

    @pytest.mark.asyncio
    async def test_capabilities_reach_work_items(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        def scaled(x, scope):
            return scope.factor * scope.sqrt(x)

        bundle = CapabilityBundle().add_variable("factor", 10).add_function("sqrt", "math:sqrt")

        async with BatchRunner(capacity_three_config, bundle=bundle) as runner:
            runner.submit(scaled, 16.0)
            runner.submit(scaled, 9.0)
            records = await runner.run()

        assert [record.payload for record in records] == [40.0, 30.0]

    @pytest.mark.asyncio
    async def test_submission_errors_do_not_stop_the_batch(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        outcome = await run_batch(
            [
                WorkItem(finish_after, (0.01,), id="same"),
                WorkItem(finish_after, (0.01,), id="same"),
                WorkItem(finish_after, (0.01,), id="other", timeout=-1),
            ],
            config=capacity_three_config,
        )

        assert [record.id for record in outcome.records] == ["same"]
        assert [error.task_id for error in outcome.submission_errors] == ["same", "other"]
        assert not outcome.all_completed

    @pytest.mark.asyncio
    async def test_activity_log_is_fresh_per_run(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        first = await run_batch([WorkItem(finish_after, (0.01,))], config=capacity_three_config)
        second = await run_batch([WorkItem(finish_after, (0.01,))], config=capacity_three_config)

        assert first.activity is not second.activity
        assert len(first.activity) == 1
        assert len(second.activity) == 1

    @pytest.mark.asyncio
    async def test_parallel_independent_batches(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        first, second = await asyncio.gather(
            run_batch([WorkItem(finish_after, (0.05, "a"))], config=capacity_three_config),
            run_batch([WorkItem(finish_after, (0.05, "b"))], config=capacity_three_config),
        )

        assert first.records[0].payload == "a"
        assert second.records[0].payload == "b"

    @pytest.mark.asyncio
    async def test_teardown_twice(self, capacity_three_config: BatchFlowConfig) -> None:
        runner = BatchRunner(capacity_three_config)
        async with runner:
            runner.submit(finish_after, 0.01)
            await runner.run()

        runner.close()
        runner.close()
        assert runner.pool.state is PoolState.CLOSED

    @pytest.mark.asyncio
    async def test_results_on_demand_while_running(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        async with BatchRunner(capacity_three_config) as runner:
            runner.submit(finish_after, 0.05, task_id="later")
            early = runner.results()
            await runner.run()
            late = runner.results(sort_by="id")

        assert early[0].status is TaskStatus.RUNNING
        assert late[0].status is TaskStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_progress_callback_sees_every_completion(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        counts: list[int] = []

        await run_batch(
            [WorkItem(finish_after, (0.01 * i,)) for i in range(1, 4)],
            config=capacity_three_config,
            on_progress=lambda update: counts.append(update.completed_count),
        )

        assert counts == sorted(counts)
        assert counts[-1] == 3


# =============================================================================
# Output
# =============================================================================


class TestOutput:
    """Dashboard export and result export wired through the config."""

    @pytest.mark.asyncio
    async def test_dashboard_file(self, capacity_three_config: BatchFlowConfig, tmp_path: Path) -> None:
        dashboard = tmp_path / "dashboard.json"
        capacity_three_config.progress = ProgressConfig(
            mode=OutputMode.DASHBOARD,
            dashboard_path=str(dashboard),
            export_interval=0.0,
        )

        await run_batch(
            [WorkItem(finish_after, (0.01,), id="one"), WorkItem(fail_after, (0.01,), id="two")],
            config=capacity_three_config,
        )

        data = json.loads(dashboard.read_text())
        assert data["final"] is True
        assert data["summary"] == {"total": 2, "running": 0, "completed": 1, "failed": 1, "timed_out": 0}
        assert [task["id"] for task in data["tasks"]] == ["one", "two"]
        assert len(data["activity"]) == 2

    @pytest.mark.asyncio
    async def test_slow_dashboard_endpoint_does_not_delay_sampling(
        self, capacity_three_config: BatchFlowConfig
    ) -> None:
        received: list[dict] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            received.append(json.loads(request.content))
            return httpx.Response(204)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        reporter = DashboardReporter(
            sink=HttpDashboardSink("http://dashboard.local/progress", client=client),
            export_interval=0.0,
        )

        outcome = await run_batch(
            [WorkItem(finish_after, (0.1, "ok"), id="quick", timeout=0.5)],
            config=capacity_three_config,
            reporter=reporter,
        )
        await client.aclose()

        record = outcome.records[0]
        assert record.status is TaskStatus.COMPLETED
        assert record.payload == "ok"
        assert received[-1]["final"] is True
        assert reporter.exports_superseded > 0

    @pytest.mark.asyncio
    async def test_export_path(self, capacity_three_config: BatchFlowConfig, tmp_path: Path) -> None:
        target = tmp_path / "results.jsonl"
        capacity_three_config.results = ResultsConfig(export_path=str(target), include_metadata=False)

        await run_batch([WorkItem(finish_after, (0.01, {"k": 1}), id="x")], config=capacity_three_config)

        line = json.loads(target.read_text().strip())
        assert line == {"id": "x", "description": "x", "status": "completed", "payload": {"k": 1}, "error": None}


def test_run_batch_sync(capacity_three_config: BatchFlowConfig) -> None:
    outcome = run_batch_sync([WorkItem(finish_after, (0.01, "done"))], config=capacity_three_config)

    assert outcome.all_completed
    assert outcome.records[0].payload == "done"


@pytest.mark.asyncio
async def test_invalid_sort_key_rejected_before_any_work_runs(capacity_three_config: BatchFlowConfig) -> None:
    calls: list[str] = []

    def record_call() -> None:
        calls.append("ran")

    capacity_three_config.results = ResultsConfig(sort_by="bogus")

    with pytest.raises(ConfigurationError) as exc_info:
        await run_batch([WorkItem(record_call)], config=capacity_three_config)

    assert exc_info.value.config_key == "results.sort_by"
    assert calls == []
