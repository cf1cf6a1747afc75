"""
BatchFlow Configuration System.

Supports loading from environment variables, YAML files, and programmatic configuration.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from batchflow.core.types import OutputMode, PoolCapacity
from batchflow.utils.errors import ConfigurationError


@dataclass
class PoolConfig:
    """Configuration for the execution slot pool."""

    min_workers: int = 1
    max_workers: int = 4

    def capacity(self) -> PoolCapacity:
        return PoolCapacity(min_workers=self.min_workers, max_workers=self.max_workers)


@dataclass
class SchedulerConfig:
    """Configuration for the polling loop."""

    poll_interval: float = 1.0
    default_timeout: float = 300.0


@dataclass
class ProgressConfig:
    """Configuration for progress reporting."""

    mode: OutputMode = OutputMode.SUMMARY
    visual_refresh_interval: float = 3.0
    export_interval: float = 2.0
    dashboard_path: str = "batchflow-dashboard.json"
    dashboard_url: str | None = None
    activity_log_size: int = 50
    activity_display: int = 10

    def __post_init__(self) -> None:
        self.mode = OutputMode.parse(self.mode)


@dataclass
class ResultsConfig:
    """Configuration for result collection and export."""

    include_metadata: bool = True
    export_path: str | None = None
    sort_by: str | None = None


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    json_format: bool = False
    log_file: str | None = None


@dataclass
class BatchFlowConfig:
    """
    Master configuration for BatchFlow.

    Can be created from:
    - Environment variables (load with from_env())
    - YAML file (load with from_file())
    - Programmatically (direct instantiation)

    Example:
        # From environment
        config = BatchFlowConfig.from_env()

        # From file
        config = BatchFlowConfig.from_file("batchflow.yaml")

        # Programmatic
        config = BatchFlowConfig(
            pool=PoolConfig(max_workers=8),
            scheduler=SchedulerConfig(poll_interval=0.5),
        )
    """

    pool: PoolConfig = field(default_factory=PoolConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    progress: ProgressConfig = field(default_factory=ProgressConfig)
    results: ResultsConfig = field(default_factory=ResultsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> BatchFlowConfig:
        """
        Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file

        Returns:
            BatchFlowConfig instance
        """
        if dotenv_path:
            load_dotenv(dotenv_path)
        else:
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            return os.getenv(key, default)

        def get_env_int(key: str, default: int) -> int:
            val = os.getenv(key)
            try:
                return int(val) if val else default
            except ValueError:
                raise ConfigurationError(f"{key} must be an integer, got '{val}'", config_key=key)

        def get_env_float(key: str, default: float) -> float:
            val = os.getenv(key)
            try:
                return float(val) if val else default
            except ValueError:
                raise ConfigurationError(f"{key} must be a number, got '{val}'", config_key=key)

        def get_env_bool(key: str, default: bool) -> bool:
            val = os.getenv(key, "").lower()
            if val in ("true", "1", "yes"):
                return True
            if val in ("false", "0", "no"):
                return False
            return default

        config = cls(
            pool=PoolConfig(
                min_workers=get_env_int("BATCHFLOW_MIN_WORKERS", 1),
                max_workers=get_env_int("BATCHFLOW_MAX_WORKERS", 4),
            ),
            scheduler=SchedulerConfig(
                poll_interval=get_env_float("BATCHFLOW_POLL_INTERVAL", 1.0),
                default_timeout=get_env_float("BATCHFLOW_DEFAULT_TIMEOUT", 300.0),
            ),
            progress=ProgressConfig(
                mode=get_env("BATCHFLOW_OUTPUT_MODE", "summary"),
                visual_refresh_interval=get_env_float("BATCHFLOW_VISUAL_REFRESH", 3.0),
                export_interval=get_env_float("BATCHFLOW_EXPORT_INTERVAL", 2.0),
                dashboard_path=get_env("BATCHFLOW_DASHBOARD_PATH", "batchflow-dashboard.json"),
                dashboard_url=get_env("BATCHFLOW_DASHBOARD_URL"),
                activity_log_size=get_env_int("BATCHFLOW_ACTIVITY_LOG_SIZE", 50),
            ),
            results=ResultsConfig(
                include_metadata=get_env_bool("BATCHFLOW_INCLUDE_METADATA", True),
                export_path=get_env("BATCHFLOW_EXPORT_PATH"),
            ),
            logging=LoggingConfig(
                level=get_env("LOG_LEVEL", "INFO"),
                json_format=get_env_bool("LOG_JSON", False),
                log_file=get_env("LOG_FILE"),
            ),
        )
        config.validate()
        return config

    @classmethod
    def from_file(cls, path: str | Path) -> BatchFlowConfig:
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            BatchFlowConfig instance
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> BatchFlowConfig:
        """Create config from dictionary."""
        sections = {
            "pool": PoolConfig,
            "scheduler": SchedulerConfig,
            "progress": ProgressConfig,
            "results": ResultsConfig,
            "logging": LoggingConfig,
        }
        kwargs: dict[str, Any] = {}
        for name, section_cls in sections.items():
            section_data = data.get(name) or {}
            try:
                kwargs[name] = section_cls(**section_data)
            except TypeError as e:
                raise ConfigurationError(
                    f"Invalid '{name}' section: {e}", config_key=name
                ) from e

        config = cls(**kwargs)
        config.validate()
        return config

    def validate(self) -> None:
        """
        Check cross-field constraints.

        Raises:
            ConfigurationError: If any value is out of range
        """
        self.pool.capacity()

        interval = self.scheduler.poll_interval
        if not math.isfinite(interval) or interval <= 0:
            raise ConfigurationError(
                f"poll_interval must be finite and positive, got {interval}",
                config_key="scheduler.poll_interval",
            )
        if self.scheduler.default_timeout <= 0:
            raise ConfigurationError(
                "default_timeout must be positive",
                config_key="scheduler.default_timeout",
            )
        if self.progress.visual_refresh_interval < 0 or self.progress.export_interval < 0:
            raise ConfigurationError(
                "render intervals must not be negative",
                config_key="progress",
            )
        if self.progress.activity_log_size < 1:
            raise ConfigurationError(
                "activity_log_size must be >= 1",
                config_key="progress.activity_log_size",
            )

        from batchflow.results.aggregator import SORT_KEYS

        sort_by = self.results.sort_by
        if sort_by and sort_by not in SORT_KEYS:
            raise ConfigurationError(
                f"Unknown sort key '{sort_by}'. Valid keys: {', '.join(SORT_KEYS)}",
                config_key="results.sort_by",
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "pool": {
                "min_workers": self.pool.min_workers,
                "max_workers": self.pool.max_workers,
            },
            "scheduler": {
                "poll_interval": self.scheduler.poll_interval,
                "default_timeout": self.scheduler.default_timeout,
            },
            "progress": {
                "mode": self.progress.mode.value,
                "visual_refresh_interval": self.progress.visual_refresh_interval,
                "export_interval": self.progress.export_interval,
                "dashboard_path": self.progress.dashboard_path,
                "dashboard_url": self.progress.dashboard_url,
                "activity_log_size": self.progress.activity_log_size,
                "activity_display": self.progress.activity_display,
            },
            "results": {
                "include_metadata": self.results.include_metadata,
                "export_path": self.results.export_path,
                "sort_by": self.results.sort_by,
            },
            "logging": {
                "level": self.logging.level,
                "json_format": self.logging.json_format,
                "log_file": self.logging.log_file,
            },
        }


# Global config instance (can be overridden)
_global_config: BatchFlowConfig | None = None


def get_config() -> BatchFlowConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = BatchFlowConfig.from_env()
    return _global_config


def set_config(config: BatchFlowConfig | None) -> None:
    """Set (or reset with None) the global configuration instance."""
    global _global_config
    _global_config = config
