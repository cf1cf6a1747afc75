"""
Job file models for BatchFlow.

A job file (YAML or JSON) describes a capability bundle, pool bounds and the
list of work items to run. Models are validated with pydantic; ``call``
entries are import paths resolved when the work items are built.

Example:
    pool: {min_workers: 1, max_workers: 3}
    defaults: {timeout: 30}
    capabilities:
      functions: {add: "operator:add"}
      variables: {threshold: 5}
      modules: {m: "math"}
    tasks:
      - call: "operator:add"
        args: [1, 2]
        description: "one plus two"
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from batchflow.core.capabilities import CapabilityBundle, resolve_import_path
from batchflow.core.runner import WorkItem
from batchflow.core.types import PoolCapacity
from batchflow.utils.errors import JobFileError

# =============================================================================
# Models
# =============================================================================


class CapabilitiesSpec(BaseModel):
    """Capability bundle section."""

    model_config = ConfigDict(extra="forbid")

    functions: dict[str, str] = Field(
        default_factory=dict,
        description="Name -> import path ('module:attr')",
    )
    variables: dict[str, Any] = Field(
        default_factory=dict,
        description="Name -> value copied into each task scope",
    )
    modules: dict[str, str] | list[str] = Field(
        default_factory=dict,
        description="Alias -> module name, or a list of module names",
    )

    def build_bundle(self) -> CapabilityBundle:
        bundle = CapabilityBundle()
        for name, path in self.functions.items():
            bundle.add_function(name, path)
        for name, value in self.variables.items():
            bundle.add_variable(name, value)
        modules = (
            {name.rsplit(".", 1)[-1]: name for name in self.modules}
            if isinstance(self.modules, list)
            else self.modules
        )
        for alias, module in modules.items():
            bundle.add_module(alias, module)
        return bundle


class PoolSpec(BaseModel):
    """Pool bounds section."""

    model_config = ConfigDict(extra="forbid")

    min_workers: int = Field(default=1, ge=1)
    max_workers: int = Field(default=4, ge=1)

    @model_validator(mode="after")
    def validate_bounds(self) -> PoolSpec:
        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")
        return self

    def capacity(self) -> PoolCapacity:
        return PoolCapacity(min_workers=self.min_workers, max_workers=self.max_workers)


class DefaultsSpec(BaseModel):
    """Defaults applied to every task."""

    model_config = ConfigDict(extra="forbid")

    timeout: float | None = Field(default=None, gt=0)


class TaskSpec(BaseModel):
    """One work item."""

    model_config = ConfigDict(extra="forbid")

    call: str = Field(..., min_length=1, description="Import path of the work item")
    args: list[Any] = Field(default_factory=list)
    kwargs: dict[str, Any] = Field(default_factory=dict)
    id: str | None = Field(default=None, min_length=1)
    description: str | None = None
    timeout: float | None = Field(default=None, gt=0)

    @field_validator("call")
    @classmethod
    def validate_call(cls, v: str) -> str:
        v = v.strip()
        if ":" not in v and "." not in v:
            raise ValueError("call must be an import path like 'package.module:function'")
        return v


class JobFile(BaseModel):
    """Whole job file."""

    model_config = ConfigDict(extra="forbid")

    pool: PoolSpec | None = None
    defaults: DefaultsSpec = Field(default_factory=DefaultsSpec)
    capabilities: CapabilitiesSpec = Field(default_factory=CapabilitiesSpec)
    tasks: list[TaskSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> JobFile:
        ids = [task.id for task in self.tasks if task.id is not None]
        duplicates = sorted({task_id for task_id in ids if ids.count(task_id) > 1})
        if duplicates:
            raise ValueError(f"duplicate task ids: {', '.join(duplicates)}")
        return self

    def build_bundle(self) -> CapabilityBundle:
        return self.capabilities.build_bundle()

    def work_items(self, source: str = "<job file>") -> list[WorkItem]:
        """
        Resolve every task into a WorkItem.

        Raises:
            JobFileError: If a ``call`` cannot be imported or is not callable
        """
        items: list[WorkItem] = []
        for index, spec in enumerate(self.tasks):
            try:
                work = resolve_import_path(spec.call)
            except (ImportError, AttributeError, ValueError) as e:
                raise JobFileError(source, f"task #{index + 1}: cannot resolve '{spec.call}': {e}") from e
            if not callable(work):
                raise JobFileError(source, f"task #{index + 1}: '{spec.call}' is not callable")

            items.append(
                WorkItem(
                    work=work,
                    args=tuple(spec.args),
                    kwargs=dict(spec.kwargs),
                    id=spec.id,
                    description=spec.description,
                    timeout=spec.timeout if spec.timeout is not None else self.defaults.timeout,
                )
            )
        return items


# =============================================================================
# Loading
# =============================================================================


def parse_job_data(data: Any, source: str = "<job file>") -> JobFile:
    """Validate already-parsed job data."""
    if not isinstance(data, dict):
        raise JobFileError(source, "top level must be a mapping")
    try:
        return JobFile.model_validate(data)
    except PydanticValidationError as e:
        raise JobFileError(source, str(e)) from e


def load_job_file(path: str | Path) -> JobFile:
    """
    Load a YAML or JSON job file.

    Raises:
        JobFileError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise JobFileError(str(path), "file not found")

    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise JobFileError(str(path), f"cannot parse: {e}") from e

    return parse_job_data(data or {}, source=str(path))


__all__ = [
    "CapabilitiesSpec",
    "PoolSpec",
    "DefaultsSpec",
    "TaskSpec",
    "JobFile",
    "parse_job_data",
    "load_job_file",
]
