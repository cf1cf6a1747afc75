"""
Integration test fixtures for BatchFlow.

Work items here really sleep, so durations are kept to fractions of a
second.
"""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from batchflow.core.config import (
    BatchFlowConfig,
    PoolConfig,
    ProgressConfig,
    SchedulerConfig,
)
from batchflow.core.types import OutputMode


@pytest.fixture
def capacity_three_config() -> BatchFlowConfig:
    """Pool of three slots, 20ms polling, silent output."""
    return BatchFlowConfig(
        pool=PoolConfig(min_workers=1, max_workers=3),
        scheduler=SchedulerConfig(poll_interval=0.02, default_timeout=5.0),
        progress=ProgressConfig(mode=OutputMode.SILENT),
    )


@pytest.fixture
def capture_console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=160, color_system=None), buffer
