"""
Unit tests for the capability bundle and task scopes.

Tests:
- Import path resolution
- Bundle registration and coercion
- Materialization with failing entries
- TaskScope isolation and lookup order
"""

from __future__ import annotations

import math
import operator
import threading

import pytest

from batchflow.core.capabilities import (
    Capabilities,
    CapabilityBundle,
    CapabilityKind,
    TaskScope,
    resolve_import_path,
)
from batchflow.utils.errors import PoolInitError

# =============================================================================
# resolve_import_path Tests
# =============================================================================


class TestResolveImportPath:
    """Tests for resolve_import_path."""

    def test_colon_form(self) -> None:
        assert resolve_import_path("operator:add") is operator.add

    def test_dotted_form(self) -> None:
        assert resolve_import_path("os.path.join") is __import__("os").path.join

    def test_dotted_attribute_after_colon(self) -> None:
        assert resolve_import_path("os:path.basename")("a/b.txt") == "b.txt"

    def test_empty_path_raises(self) -> None:
        with pytest.raises(ValueError):
            resolve_import_path("   ")

    def test_missing_module_raises(self) -> None:
        with pytest.raises(ImportError):
            resolve_import_path("no_such_module_xyz:thing")

    def test_missing_attribute_raises(self) -> None:
        with pytest.raises(AttributeError):
            resolve_import_path("operator:no_such_function")


# =============================================================================
# CapabilityBundle Tests
# =============================================================================


class TestCapabilityBundle:
    """Tests for CapabilityBundle."""

    def test_registration_is_chainable(self, bundle: CapabilityBundle) -> None:
        assert bundle.names == ["double", "settings", "math"]
        assert len(bundle) == 3
        assert "math" in bundle

    def test_entry_kinds(self, bundle: CapabilityBundle) -> None:
        kinds = {entry.name: entry.kind for entry in bundle.entries()}
        assert kinds == {
            "double": CapabilityKind.FUNCTION,
            "settings": CapabilityKind.VARIABLE,
            "math": CapabilityKind.MODULE,
        }

    def test_invalid_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            CapabilityBundle().add_variable("not a name", 1)

    def test_remove(self, bundle: CapabilityBundle) -> None:
        assert bundle.remove("double") is True
        assert bundle.remove("double") is False
        assert "double" not in bundle

    def test_from_mapping_classifies_values(self) -> None:
        bundle = CapabilityBundle.from_mapping({"f": len, "m": math, "v": 3})
        kinds = {entry.name: entry.kind for entry in bundle.entries()}
        assert kinds == {
            "f": CapabilityKind.FUNCTION,
            "m": CapabilityKind.MODULE,
            "v": CapabilityKind.VARIABLE,
        }

    def test_coerce(self, bundle: CapabilityBundle) -> None:
        assert CapabilityBundle.coerce(bundle) is bundle
        assert len(CapabilityBundle.coerce(None)) == 0
        assert CapabilityBundle.coerce({"x": 1}).names == ["x"]

    def test_coerce_rejects_other_types(self) -> None:
        with pytest.raises(PoolInitError):
            CapabilityBundle.coerce(["not", "a", "bundle"])  # type: ignore[arg-type]


class TestMaterialize:
    """Tests for CapabilityBundle.materialize."""

    def test_all_entries_resolved(self, bundle: CapabilityBundle) -> None:
        capabilities, errors = bundle.materialize()

        assert errors == []
        assert capabilities["double"](4) == 8
        assert capabilities["settings"]["threshold"] == 5
        assert capabilities["math"] is math
        assert len(capabilities) == 3

    def test_import_path_function(self) -> None:
        capabilities, errors = CapabilityBundle().add_function("add", "operator:add").materialize()
        assert errors == []
        assert capabilities.functions["add"] is operator.add

    def test_library_alias(self) -> None:
        capabilities, _ = CapabilityBundle().add_library("m", "math").materialize()
        assert capabilities.modules["m"] is math

    def test_failing_entries_are_skipped(self) -> None:
        bundle = (
            CapabilityBundle()
            .add_module("missing", "no_such_module_xyz")
            .add_function("broken", "operator:nope")
            .add_function("not_callable", "math:pi")
            .add_variable("ok", 1)
        )

        capabilities, errors = bundle.materialize()

        assert list(capabilities) == ["ok"]
        assert sorted(error.capability for error in errors) == ["broken", "missing", "not_callable"]
        assert all(isinstance(error, PoolInitError) for error in errors)

    def test_capabilities_are_read_only(self, bundle: CapabilityBundle) -> None:
        capabilities, _ = bundle.materialize()
        with pytest.raises(TypeError):
            capabilities.functions["other"] = len  # type: ignore[index]


# =============================================================================
# TaskScope Tests
# =============================================================================


class TestTaskScope:
    """Tests for TaskScope."""

    @pytest.fixture
    def capabilities(self, bundle: CapabilityBundle) -> Capabilities:
        capabilities, _ = bundle.materialize()
        return capabilities

    def test_reads_capabilities(self, capabilities: Capabilities) -> None:
        scope = capabilities.new_scope()
        assert scope["double"](3) == 6
        assert scope.math is math
        assert scope.get("missing", "default") == "default"
        assert "double" in scope

    def test_variables_are_copied_per_scope(self, capabilities: Capabilities) -> None:
        first = capabilities.new_scope()
        second = capabilities.new_scope()

        first["settings"]["tags"].append("b")

        assert second["settings"]["tags"] == ["a"]
        assert capabilities.variables["settings"]["tags"] == ["a"]

    def test_uncopyable_variable_is_shared(self) -> None:
        lock = threading.Lock()
        capabilities, errors = (
            CapabilityBundle().add_variable("lock", lock).add_variable("tags", ["a"]).materialize()
        )

        first = capabilities.new_scope()
        second = capabilities.new_scope()

        assert errors == []
        assert capabilities.shared == frozenset({"lock"})
        assert first.lock is lock
        assert second.lock is lock
        assert first.tags is not capabilities.variables["tags"]

    def test_writes_land_in_locals(self, capabilities: Capabilities) -> None:
        scope = capabilities.new_scope()
        scope["double"] = "shadowed"

        assert scope["double"] == "shadowed"
        assert callable(capabilities["double"])
        assert callable(capabilities.new_scope()["double"])

    def test_unknown_attribute(self, capabilities: Capabilities) -> None:
        scope = TaskScope(capabilities)
        with pytest.raises(AttributeError):
            scope.nothing_here
        with pytest.raises(KeyError):
            scope["nothing_here"]

    def test_stop_signal(self, capabilities: Capabilities) -> None:
        scope = capabilities.new_scope()
        assert scope.should_stop() is False

        scope.request_stop()

        assert scope.stop_requested is True
        assert scope.should_stop() is True
