#!/usr/bin/env python
"""
Dashboard Export and Result Export Example.

This example demonstrates:
- A capability bundle shared by every work item
- The dashboard mode writing JSON snapshots to a file
- Exporting results as CSV and JSON Lines

Run:
    python examples/03_dashboard_and_export.py
    # in another terminal: watch -n1 cat batchflow-dashboard.json
"""

import asyncio

from batchflow import BatchRunner, CapabilityBundle
from batchflow.core.config import BatchFlowConfig, PoolConfig, ProgressConfig, SchedulerConfig


async def score(word: str, scope) -> float:
    await asyncio.sleep(len(word) * 0.2)
    if word in scope.stopwords:
        raise ValueError(f"'{word}' is a stopword")
    return round(scope.log(len(word)) * scope.weight, 3)


async def main() -> None:
    bundle = (
        CapabilityBundle()
        .add_variable("weight", 2.5)
        .add_variable("stopwords", {"the", "and"})
        .add_function("log", "math:log")
    )
    config = BatchFlowConfig(
        pool=PoolConfig(max_workers=4),
        scheduler=SchedulerConfig(poll_interval=0.25),
        progress=ProgressConfig(
            mode="dashboard",
            dashboard_path="batchflow-dashboard.json",
            export_interval=1.0,
        ),
    )

    async with BatchRunner(config, bundle=bundle) as runner:
        for word in ("orchestration", "the", "pool", "scheduler", "and", "timeout"):
            runner.submit(score, word, task_id=f"score-{word}")
        await runner.run()

        runner.export("results.csv")
        runner.export("results.jsonl", records=runner.results(sort_by="status"))

    print("Dashboard: batchflow-dashboard.json")
    print("Results:   results.csv, results.jsonl")


if __name__ == "__main__":
    asyncio.run(main())
