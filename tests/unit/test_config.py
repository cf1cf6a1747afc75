"""
Unit tests for BatchFlowConfig.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from batchflow.core.config import (
    BatchFlowConfig,
    PoolConfig,
    ProgressConfig,
    ResultsConfig,
    SchedulerConfig,
    get_config,
    set_config,
)
from batchflow.core.types import OutputMode, PoolCapacity
from batchflow.utils.errors import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    """Run from an empty directory so no .env file is picked up."""
    monkeypatch.chdir(tmp_path)
    for key in (
        "BATCHFLOW_MIN_WORKERS",
        "BATCHFLOW_MAX_WORKERS",
        "BATCHFLOW_POLL_INTERVAL",
        "BATCHFLOW_DEFAULT_TIMEOUT",
        "BATCHFLOW_OUTPUT_MODE",
        "BATCHFLOW_INCLUDE_METADATA",
    ):
        # setenv first so values loaded from .env files are undone afterwards
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self) -> None:
        config = BatchFlowConfig()

        assert config.pool.capacity() == PoolCapacity(min_workers=1, max_workers=4)
        assert config.scheduler.poll_interval == 1.0
        assert config.progress.mode is OutputMode.SUMMARY
        assert config.progress.visual_refresh_interval == 3.0
        assert config.results.include_metadata is True

    def test_mode_string_is_parsed(self) -> None:
        assert ProgressConfig(mode="visual").mode is OutputMode.VISUAL

    def test_invalid_mode(self) -> None:
        with pytest.raises(ConfigurationError):
            ProgressConfig(mode="loud")


class TestValidate:
    """Tests for BatchFlowConfig.validate."""

    @pytest.mark.parametrize("interval", [0.0, -1.0, float("inf"), float("nan")])
    def test_bad_poll_interval(self, interval) -> None:
        config = BatchFlowConfig(scheduler=SchedulerConfig(poll_interval=interval))
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()
        assert exc_info.value.config_key == "scheduler.poll_interval"

    def test_bad_pool_bounds(self) -> None:
        config = BatchFlowConfig(pool=PoolConfig(min_workers=5, max_workers=2))
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_unknown_sort_key(self) -> None:
        config = BatchFlowConfig(results=ResultsConfig(sort_by="bogus"))
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()
        assert exc_info.value.config_key == "results.sort_by"

    @pytest.mark.parametrize("sort_by", [None, "submission", "id", "status", "elapsed"])
    def test_known_sort_keys(self, sort_by) -> None:
        BatchFlowConfig(results=ResultsConfig(sort_by=sort_by)).validate()

    def test_sort_key_checked_when_loading_file(self, tmp_path: Path) -> None:
        path = tmp_path / "batchflow.yaml"
        path.write_text("results:\n  sort_by: bogus\n")

        with pytest.raises(ConfigurationError) as exc_info:
            BatchFlowConfig.from_file(path)
        assert exc_info.value.config_key == "results.sort_by"

    def test_zero_workers(self) -> None:
        with pytest.raises(ConfigurationError):
            PoolCapacity(min_workers=0)


class TestFromEnv:
    """Tests for BatchFlowConfig.from_env."""

    def test_reads_variables(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("BATCHFLOW_MAX_WORKERS", "8")
        clean_env.setenv("BATCHFLOW_POLL_INTERVAL", "0.25")
        clean_env.setenv("BATCHFLOW_OUTPUT_MODE", "visual")
        clean_env.setenv("BATCHFLOW_INCLUDE_METADATA", "no")

        config = BatchFlowConfig.from_env()

        assert config.pool.max_workers == 8
        assert config.scheduler.poll_interval == 0.25
        assert config.progress.mode is OutputMode.VISUAL
        assert config.results.include_metadata is False

    def test_bad_integer(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("BATCHFLOW_MAX_WORKERS", "many")
        with pytest.raises(ConfigurationError) as exc_info:
            BatchFlowConfig.from_env()
        assert exc_info.value.config_key == "BATCHFLOW_MAX_WORKERS"

    def test_dotenv_file(self, clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
        env_file = tmp_path / "batch.env"
        env_file.write_text("BATCHFLOW_DEFAULT_TIMEOUT=42\n")

        config = BatchFlowConfig.from_env(str(env_file))

        assert config.scheduler.default_timeout == 42.0


class TestFromFile:
    """Tests for BatchFlowConfig.from_file."""

    def test_round_trip(self, tmp_path: Path) -> None:
        original = BatchFlowConfig(
            pool=PoolConfig(min_workers=2, max_workers=6),
            progress=ProgressConfig(mode="dashboard", dashboard_url="http://localhost/x"),
        )
        path = tmp_path / "batchflow.yaml"
        path.write_text(yaml.safe_dump(original.to_dict()))

        loaded = BatchFlowConfig.from_file(path)

        assert loaded.to_dict() == original.to_dict()

    def test_partial_file(self, tmp_path: Path) -> None:
        path = tmp_path / "batchflow.yaml"
        path.write_text("scheduler:\n  poll_interval: 0.5\n")

        config = BatchFlowConfig.from_file(path)

        assert config.scheduler.poll_interval == 0.5
        assert config.pool.max_workers == 4

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = tmp_path / "batchflow.yaml"
        path.write_text("pool:\n  workers: 3\n")

        with pytest.raises(ConfigurationError) as exc_info:
            BatchFlowConfig.from_file(path)
        assert exc_info.value.config_key == "pool"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            BatchFlowConfig.from_file(tmp_path / "nope.yaml")


def test_global_config(clean_env: pytest.MonkeyPatch) -> None:
    custom = BatchFlowConfig(pool=PoolConfig(max_workers=9))
    set_config(custom)
    assert get_config() is custom

    set_config(None)
    assert get_config() is not custom
