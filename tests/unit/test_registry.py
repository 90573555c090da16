"""
Unit tests for resource and compute unit registries.

Tests cover:
- Declaration
- Duplicate detection and atomicity
- Reference checks in strict and deferred mode
- Freezing
"""

import pytest

from infra.appgraph.errors import (
    DuplicateIdentifierError,
    GraphFrozenError,
    UnresolvedResourceReferenceError,
)
from infra.appgraph.model.registry import ComputeUnitRegistry, ResourceRegistry
from infra.appgraph.model.types import HandlerRef, ResourceKind, ResourceRef, RetentionPolicy


@pytest.fixture
def resources():
    """Registry with one table declared."""
    registry = ResourceRegistry()
    registry.declare("Orders", ResourceKind.KEYED_TABLE, RetentionPolicy.DESTROY)
    return registry


class TestResourceRegistry:
    """Tests for ResourceRegistry."""

    def test_declare_resource(self, resources):
        """Can declare and look up a resource."""
        table = resources.get("Orders")

        assert table is not None
        assert table.kind == ResourceKind.KEYED_TABLE
        assert "Orders" in resources
        assert len(resources) == 1

    def test_duplicate_identifier_raises(self, resources):
        """Declaring the same identifier twice raises."""
        with pytest.raises(DuplicateIdentifierError, match="'Orders' is already declared"):
            resources.declare("Orders", ResourceKind.OBJECT_STORE)

    def test_failed_declare_leaves_registry_unchanged(self, resources):
        """A rejected duplicate does not replace the original."""
        with pytest.raises(DuplicateIdentifierError):
            resources.declare("Orders", ResourceKind.OBJECT_STORE)

        assert len(resources) == 1
        assert resources.get("Orders").kind == ResourceKind.KEYED_TABLE

    def test_deferred_duplicate_is_recorded(self):
        """Deferred mode keeps the first declaration and records the duplicate."""
        registry = ResourceRegistry(strict=False)
        registry.declare("Orders", ResourceKind.KEYED_TABLE)
        registry.declare("Orders", ResourceKind.OBJECT_STORE)

        assert registry.get("Orders").kind == ResourceKind.KEYED_TABLE
        assert [d.identifier for d in registry.duplicates()] == ["Orders"]

    def test_declare_after_freeze_raises(self, resources):
        """Frozen registries reject declarations."""
        resources.freeze()

        with pytest.raises(GraphFrozenError):
            resources.declare("Uploads", ResourceKind.OBJECT_STORE)

    def test_identifiers_sorted(self):
        """identifiers() is sorted regardless of declaration order."""
        registry = ResourceRegistry()
        registry.declare("Zeta", ResourceKind.OBJECT_STORE)
        registry.declare("Alpha", ResourceKind.KEYED_TABLE)

        assert registry.identifiers() == ["Alpha", "Zeta"]


class TestComputeUnitRegistry:
    """Tests for ComputeUnitRegistry."""

    def test_declare_unit(self, resources):
        """Can declare a unit referencing a declared resource."""
        units = ComputeUnitRegistry(resources)

        unit = units.declare(
            "GetOrder", HandlerRef("get.ts"), 1024, {"TABLE_NAME": ResourceRef("Orders")}
        )

        assert units.get("GetOrder") == unit

    def test_unresolved_reference_raises(self, resources):
        """Referencing an undeclared resource raises and names it."""
        units = ComputeUnitRegistry(resources)

        with pytest.raises(UnresolvedResourceReferenceError) as exc_info:
            units.declare("GetOrder", HandlerRef("get.ts"), 1024, {"BUCKET": ResourceRef("Uploads")})

        assert exc_info.value.resource_id == "Uploads"
        assert "Uploads" in str(exc_info.value)
        assert "GetOrder" not in units

    def test_unknown_attribute_raises(self, resources):
        """Referencing an attribute the kind does not expose raises."""
        units = ComputeUnitRegistry(resources)

        with pytest.raises(UnresolvedResourceReferenceError, match="domain_name"):
            units.declare(
                "GetOrder", HandlerRef("get.ts"), 1024,
                {"DOMAIN": ResourceRef("Orders", "domain_name")},
            )

    def test_deferred_mode_accepts_unresolved(self, resources):
        """Deferred mode leaves references to validation."""
        units = ComputeUnitRegistry(resources, strict=False)
        unit = units.declare("GetOrder", HandlerRef("get.ts"), 1024, {"BUCKET": ResourceRef("Uploads")})

        errors = units.unresolved_references(unit)

        assert "GetOrder" in units
        assert [e.resource_id for e in errors] == ["Uploads"]

    def test_shared_namespace(self, resources):
        """The `taken` hook rejects identifiers used by another registry."""
        units = ComputeUnitRegistry(
            resources, taken=lambda i: "resource" if i in resources else None
        )

        with pytest.raises(DuplicateIdentifierError, match="as a resource"):
            units.declare("Orders", HandlerRef("orders.ts"), 512)
