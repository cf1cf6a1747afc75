"""
Pytest configuration and fixtures for BatchFlow tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from batchflow.core.activity import ActivityLog
from batchflow.core.capabilities import CapabilityBundle
from batchflow.core.config import (
    BatchFlowConfig,
    PoolConfig,
    ProgressConfig,
    SchedulerConfig,
    set_config,
)
from batchflow.core.task import Task
from batchflow.core.types import OutputMode


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake monotonic clock."""
    return FakeClock()


@pytest.fixture
def fast_config() -> BatchFlowConfig:
    """Provide a configuration with a short poll interval and no output."""
    return BatchFlowConfig(
        pool=PoolConfig(min_workers=1, max_workers=3),
        scheduler=SchedulerConfig(poll_interval=0.01, default_timeout=5.0),
        progress=ProgressConfig(mode=OutputMode.SILENT),
    )


@pytest.fixture(autouse=True)
def reset_global_config() -> Any:
    """Never leak a global configuration between tests."""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def bundle() -> CapabilityBundle:
    """Provide a bundle with one of each capability kind."""
    return (
        CapabilityBundle()
        .add_function("double", lambda x: x * 2)
        .add_variable("settings", {"threshold": 5, "tags": ["a"]})
        .add_module("math")
    )


@pytest.fixture
def activity() -> ActivityLog:
    return ActivityLog(max_entries=20)


@pytest.fixture
def make_task(clock: FakeClock) -> Callable[..., Task]:
    """
    Build detached tasks whose handles are plain futures.

    Must be used from a running event loop when ``done`` or ``result`` is set.
    """
    counter = {"n": 0}

    def _make(
        task_id: str | None = None,
        timeout: float = 10.0,
        started: float | None = None,
        done: bool = False,
        result: Any = None,
        error: BaseException | None = None,
        with_handle: bool = True,
    ) -> Task:
        counter["n"] += 1
        task = Task(
            id=task_id or f"t{counter['n']}",
            description=task_id or f"t{counter['n']}",
            timeout=timeout,
            started=clock() if started is None else started,
            sequence=counter["n"],
        )
        if with_handle:
            future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            if done:
                if error is not None:
                    future.set_exception(error)
                else:
                    future.set_result(result)
            task.handle = future
        return task

    return _make
