#!/usr/bin/env python
"""
Basic BatchFlow Usage Example.

This example demonstrates the fundamental usage patterns of BatchFlow:
- Running a list of work items with run_batch()
- Mixing coroutine and blocking work items
- Reading the uniform result records
- Using the BatchRunner context manager

Prerequisites:
    - Install batchflow: pip install -e .

Run:
    python examples/01_basic_batch.py
"""

import asyncio
import hashlib
import random

from batchflow import BatchRunner, WorkItem, run_batch
from batchflow.core.config import BatchFlowConfig, PoolConfig, ProgressConfig, SchedulerConfig


# =============================================================================
# Work Items
# =============================================================================


async def fetch_page(name: str) -> dict:
    """Pretend network call."""
    await asyncio.sleep(random.uniform(0.2, 1.5))
    return {"page": name, "bytes": random.randint(1_000, 50_000)}


def checksum(text: str, rounds: int = 200_000) -> str:
    """Blocking CPU work, runs on a worker thread."""
    digest = text.encode()
    for _ in range(rounds):
        digest = hashlib.sha256(digest).digest()
    return digest.hex()[:16]


# =============================================================================
# Examples
# =============================================================================


async def example_run_batch() -> None:
    """Run a batch in one call."""
    print("\n" + "=" * 60)
    print("Example 1: run_batch()")
    print("=" * 60)

    config = BatchFlowConfig(
        pool=PoolConfig(max_workers=3),
        scheduler=SchedulerConfig(poll_interval=0.25),
        progress=ProgressConfig(mode="summary"),
    )

    items = [WorkItem(fetch_page, (f"page-{i}",), description=f"fetch page {i}") for i in range(5)]
    items.append(WorkItem(checksum, ("batchflow",), description="checksum"))

    outcome = await run_batch(items, config=config)

    for record in outcome.records:
        print(f"  {record.id:<28} {record.status.value:<10} {record.payload}")
    print(f"\nAll completed: {outcome.all_completed}")


async def example_runner() -> None:
    """Submit work step by step with BatchRunner."""
    print("\n" + "=" * 60)
    print("Example 2: BatchRunner")
    print("=" * 60)

    config = BatchFlowConfig(
        pool=PoolConfig(max_workers=2),
        scheduler=SchedulerConfig(poll_interval=0.2),
        progress=ProgressConfig(mode="silent"),
    )

    async with BatchRunner(config) as runner:
        for word in ("alpha", "beta", "gamma"):
            runner.submit(checksum, word, rounds=50_000, task_id=f"sum-{word}")
        records = await runner.run()

    for record in records:
        elapsed = record.metadata.elapsed_seconds if record.metadata else None
        print(f"  {record.id:<12} {record.payload}  ({elapsed:.2f}s)")


async def main() -> None:
    await example_run_batch()
    await example_runner()


if __name__ == "__main__":
    asyncio.run(main())
