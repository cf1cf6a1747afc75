"""
Capability Bundle for BatchFlow.

Named functions, variables and modules made available to every work item.
The bundle is a registration table resolved once when the pool opens; each
task then sees the resolved capabilities through its own TaskScope.

Features:
- Function registration by callable or "package.module:attr" import path
- Variables deep-copied into each task scope (uncopyable values are shared)
- Module/library registration with optional alias
- Per-entry failure tolerance (warn and continue)
"""

from __future__ import annotations

import copy
import importlib
import threading
import types
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from batchflow.utils.errors import PoolInitError
from batchflow.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Enums
# =============================================================================


class CapabilityKind(Enum):
    """Kinds of bundle entries."""

    FUNCTION = "function"
    VARIABLE = "variable"
    MODULE = "module"


# =============================================================================
# Import helpers
# =============================================================================


def resolve_import_path(path: str) -> Any:
    """
    Resolve ``"package.module:attr"`` (or ``"package.module.attr"``) to an object.

    Args:
        path: Import path, attribute after ':' may be dotted

    Returns:
        The resolved object

    Raises:
        ImportError: If the module cannot be imported
        AttributeError: If the attribute does not exist
        ValueError: If the path is empty or malformed
    """
    path = path.strip()
    if not path:
        raise ValueError("Import path cannot be empty")

    if ":" in path:
        module_name, _, attr_path = path.partition(":")
    else:
        module_name, _, attr_path = path.rpartition(".")

    if not module_name or not attr_path:
        raise ValueError(f"Import path must look like 'module:attr', got '{path}'")

    obj: Any = importlib.import_module(module_name)
    for part in attr_path.split("."):
        obj = getattr(obj, part)
    return obj


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class CapabilityEntry:
    """Unresolved bundle entry."""

    name: str
    kind: CapabilityKind
    source: Any

    def resolve(self) -> Any:
        if self.kind is CapabilityKind.MODULE:
            if isinstance(self.source, types.ModuleType):
                return self.source
            return importlib.import_module(str(self.source))

        if self.kind is CapabilityKind.FUNCTION:
            func = resolve_import_path(self.source) if isinstance(self.source, str) else self.source
            if not callable(func):
                raise TypeError(f"Capability '{self.name}' is not callable")
            return func

        return self.source


@dataclass(frozen=True)
class Capabilities(Mapping[str, Any]):
    """
    Resolved, read-only capability table shared by every task of a pool.

    Attributes:
        functions: name -> callable
        variables: name -> value (template copied into each scope)
        modules: name -> module
        shared: variables that cannot be deep-copied and are handed to every
            scope by reference (locks, clients, open files)
    """

    functions: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    variables: Mapping[str, Any] = field(default_factory=dict)
    modules: Mapping[str, types.ModuleType] = field(default_factory=dict)
    shared: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "functions", types.MappingProxyType(dict(self.functions)))
        object.__setattr__(self, "variables", types.MappingProxyType(dict(self.variables)))
        object.__setattr__(self, "modules", types.MappingProxyType(dict(self.modules)))
        object.__setattr__(self, "shared", frozenset(self.shared))

    def __getitem__(self, name: str) -> Any:
        for table in (self.functions, self.variables, self.modules):
            if name in table:
                return table[name]
        raise KeyError(name)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for table in (self.functions, self.variables, self.modules):
            for name in table:
                if name not in seen:
                    seen.add(name)
                    yield name

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def new_scope(self) -> TaskScope:
        """Create an isolated scope for one task."""
        return TaskScope(self)


# =============================================================================
# Capability Bundle
# =============================================================================


class CapabilityBundle:
    """
    Registration table of capabilities available to work items.

    Usage:
        bundle = CapabilityBundle()
        bundle.add_function("fetch", "mypkg.net:fetch")
        bundle.add_variable("threshold", 0.75)
        bundle.add_module("np", "numpy")

        capabilities, errors = bundle.materialize()
    """

    def __init__(self) -> None:
        self._entries: dict[str, CapabilityEntry] = {}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> CapabilityBundle:
        """
        Build a bundle from a plain mapping.

        Callables become functions, modules stay modules, everything else is
        registered as a variable.
        """
        bundle = cls()
        for name, value in mapping.items():
            if isinstance(value, types.ModuleType):
                bundle.add_module(name, value)
            elif callable(value):
                bundle.add_function(name, value)
            else:
                bundle.add_variable(name, value)
        return bundle

    @classmethod
    def coerce(cls, bundle: CapabilityBundle | Mapping[str, Any] | None) -> CapabilityBundle:
        """
        Accept a bundle, a mapping or None.

        Raises:
            PoolInitError: If the object cannot be used as a bundle
        """
        if bundle is None:
            return cls()
        if isinstance(bundle, CapabilityBundle):
            return bundle
        if isinstance(bundle, Mapping):
            return cls.from_mapping(bundle)
        raise PoolInitError(
            f"Capability bundle must be a CapabilityBundle or mapping, got {type(bundle).__name__}"
        )

    # =========================================================================
    # Registration
    # =========================================================================

    def _register(self, name: str, kind: CapabilityKind, source: Any) -> CapabilityBundle:
        if not name.isidentifier():
            raise ValueError(f"Invalid capability name: '{name}'")
        if name in self._entries:
            logger.debug("Capability replaced", name=name, kind=kind.value)
        self._entries[name] = CapabilityEntry(name=name, kind=kind, source=source)
        return self

    def add_function(self, name: str, func: Callable[..., Any] | str) -> CapabilityBundle:
        """Register a callable or an import path resolved when the pool opens."""
        return self._register(name, CapabilityKind.FUNCTION, func)

    def add_variable(self, name: str, value: Any) -> CapabilityBundle:
        return self._register(name, CapabilityKind.VARIABLE, value)

    def add_module(
        self,
        name: str,
        module: str | types.ModuleType | None = None,
    ) -> CapabilityBundle:
        """Register a module; ``module`` defaults to ``name``."""
        return self._register(name, CapabilityKind.MODULE, module if module is not None else name)

    add_library = add_module

    def remove(self, name: str) -> bool:
        return self._entries.pop(name, None) is not None

    @property
    def names(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> list[CapabilityEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    # =========================================================================
    # Materialization
    # =========================================================================

    def materialize(self) -> tuple[Capabilities, list[PoolInitError]]:
        """
        Resolve every entry once.

        A failing entry is logged as a warning and skipped; the remaining
        entries are still materialized.

        Returns:
            (capabilities, errors for the entries that failed)
        """
        functions: dict[str, Callable[..., Any]] = {}
        variables: dict[str, Any] = {}
        modules: dict[str, types.ModuleType] = {}
        errors: list[PoolInitError] = []

        for entry in self._entries.values():
            try:
                value = entry.resolve()
            except Exception as e:
                error = PoolInitError(
                    f"Failed to register {entry.kind.value} '{entry.name}': {e}",
                    capability=entry.name,
                    details={"kind": entry.kind.value},
                    cause=e,
                )
                errors.append(error)
                logger.warning(
                    "Capability skipped",
                    name=entry.name,
                    kind=entry.kind.value,
                    error=str(e),
                )
                continue

            if entry.kind is CapabilityKind.FUNCTION:
                functions[entry.name] = value
            elif entry.kind is CapabilityKind.MODULE:
                modules[entry.name] = value
            else:
                variables[entry.name] = value

        shared: set[str] = set()
        for name, value in variables.items():
            try:
                copy.deepcopy(value)
            except Exception as e:
                shared.add(name)
                logger.warning(
                    "Variable cannot be copied per task, sharing it",
                    name=name,
                    type=type(value).__name__,
                    error=str(e),
                )

        logger.debug(
            "Capabilities materialized",
            functions=len(functions),
            variables=len(variables),
            modules=len(modules),
            failed=len(errors),
        )

        capabilities = Capabilities(
            functions=functions, variables=variables, modules=modules, shared=frozenset(shared)
        )
        return capabilities, errors

    def __repr__(self) -> str:
        return f"CapabilityBundle(entries={self.names})"


# =============================================================================
# Task Scope
# =============================================================================


class TaskScope:
    """
    Isolated per-task view over the pool's capabilities.

    Reads resolve task locals first, then capabilities. Writes only ever land
    in task locals. Variables are deep-copied when the scope is created so
    mutating them never reaches the bundle or sibling tasks. Variables listed
    in ``Capabilities.shared`` are passed by reference.

    Work items that declare a ``scope`` parameter receive their TaskScope:

        def crunch(n, scope):
            scope["partial"] = scope.fetch(n)
            if scope.should_stop():
                return None
            return scope.np.mean(scope["partial"])
    """

    def __init__(self, capabilities: Capabilities) -> None:
        self._capabilities = capabilities
        self._locals: dict[str, Any] = {
            name: value if name in capabilities.shared else copy.deepcopy(value)
            for name, value in capabilities.variables.items()
        }
        self._stop = threading.Event()

    @property
    def capabilities(self) -> Capabilities:
        return self._capabilities

    @property
    def locals(self) -> dict[str, Any]:
        return self._locals

    # Cooperative stop signal, set when the task times out.

    def request_stop(self) -> None:
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def should_stop(self) -> bool:
        return self._stop.is_set()

    def get(self, name: str, default: Any = None) -> Any:
        try:
            return self[name]
        except KeyError:
            return default

    def __getitem__(self, name: str) -> Any:
        if name in self._locals:
            return self._locals[name]
        return self._capabilities[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self._locals[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self._locals or name in self._capabilities

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"No capability or local named '{name}'") from None

    def __repr__(self) -> str:
        return f"TaskScope(capabilities={list(self._capabilities)}, locals={list(self._locals)})"
