#!/usr/bin/env python
"""
Timeouts and Live Progress Example.

This example demonstrates:
- Per-task timeouts (slow tasks end TIMED_OUT, the batch does not wait)
- The visual progress table with the activity panel
- Cooperative stopping through the task scope
- A progress callback

Run:
    python examples/02_timeouts_and_progress.py
"""

import asyncio
import time

from batchflow import BatchRunner
from batchflow.core.config import BatchFlowConfig, PoolConfig, ProgressConfig, SchedulerConfig
from batchflow.core.types import ProgressUpdate


async def quick(seconds: float) -> str:
    await asyncio.sleep(seconds)
    return f"slept {seconds}s"


def stubborn(seconds: float, scope) -> str:
    """Blocking work that gives up once the scheduler asks it to stop."""
    deadline = time.monotonic() + seconds
    while time.monotonic() < deadline:
        if scope.should_stop():
            return "stopped early"
        time.sleep(0.05)
    return "finished"


def on_progress(update: ProgressUpdate) -> None:
    if update.is_done:
        print(f"callback: all {update.total_tasks} tasks finished")


async def main() -> None:
    config = BatchFlowConfig(
        pool=PoolConfig(max_workers=3),
        scheduler=SchedulerConfig(poll_interval=0.5),
        progress=ProgressConfig(mode="visual", visual_refresh_interval=1.0),
    )

    async with BatchRunner(config, on_progress=on_progress) as runner:
        runner.submit(quick, 1.0, description="quick one")
        runner.submit(quick, 2.0, description="quick two")
        runner.submit(quick, 15.0, description="too slow", timeout=4.0)
        runner.submit(stubborn, 15.0, description="stubborn", timeout=3.0)
        runner.submit(quick, 0.5, description="queued behind the others")
        await runner.run()

    print()
    for entry in runner.activity:
        print(entry)


if __name__ == "__main__":
    asyncio.run(main())
