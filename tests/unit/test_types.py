"""
Unit tests for graph value objects.

Tests cover:
- Resource and ComputeUnit validation
- Capability expansion
- Grant invariants
- Serialization of flat settings
"""

import pytest

from infra.appgraph.errors import InvalidMemoryBudgetError
from infra.appgraph.model.types import (
    ApiSettings,
    Capability,
    ComputeUnit,
    Grant,
    HandlerRef,
    HttpMethod,
    MethodLoggingLevel,
    Resource,
    ResourceKind,
    ResourceRef,
    RetentionPolicy,
)


class TestResource:
    """Tests for Resource."""

    def test_create_resource(self):
        """Can create a resource."""
        bucket = Resource("Uploads", ResourceKind.OBJECT_STORE, RetentionPolicy.PRESERVE)

        assert bucket.identifier == "Uploads"
        assert bucket.kind == ResourceKind.OBJECT_STORE
        assert bucket.retention == RetentionPolicy.PRESERVE

    def test_empty_identifier_raises(self):
        """Empty identifier is rejected."""
        with pytest.raises(ValueError, match="cannot be empty"):
            Resource("", ResourceKind.KEYED_TABLE)

    def test_resource_is_frozen(self):
        """Resources cannot be mutated."""
        table = Resource("Orders", ResourceKind.KEYED_TABLE)

        with pytest.raises(AttributeError):
            table.kind = ResourceKind.OBJECT_STORE

    def test_properties_are_copied(self):
        """Mutating the caller's dict does not change the resource."""
        props = {"table_name": "orders"}
        table = Resource("Orders", ResourceKind.KEYED_TABLE, properties=props)

        props["table_name"] = "other"

        assert table.properties["table_name"] == "orders"

    def test_properties_are_read_only(self):
        """Properties cannot be changed through the resource, at any depth."""
        table = Resource(
            "Orders",
            ResourceKind.KEYED_TABLE,
            properties={"table_name": "orders", "partition_key": {"name": "id"}},
        )

        with pytest.raises(TypeError):
            table.properties["table_name"] = "swapped"
        with pytest.raises(TypeError):
            table.properties["partition_key"]["name"] = "sk"

    def test_to_dict_returns_plain_values(self):
        """to_dict hands back plain dicts and lists."""
        table = Resource(
            "Orders",
            ResourceKind.KEYED_TABLE,
            properties={"partition_key": {"name": "id"}, "tags": ["a", "b"]},
        )

        props = table.to_dict()["properties"]

        assert type(props["partition_key"]) is dict
        assert props["tags"] == ["a", "b"]

    def test_to_dict_sorts_properties(self):
        """to_dict emits properties in key order."""
        table = Resource(
            "Orders",
            ResourceKind.KEYED_TABLE,
            properties={"table_name": "orders", "billing_mode": "PAY_PER_REQUEST"},
        )

        d = table.to_dict()

        assert d["id"] == "Orders"
        assert d["kind"] == "keyed-table"
        assert d["retention"] == "destroy"
        assert list(d["properties"]) == ["billing_mode", "table_name"]

    def test_from_dict(self):
        """Can rebuild a resource from its dict form."""
        d = {"id": "Uploads", "kind": "object-store", "retention": "preserve"}

        bucket = Resource.from_dict(d)

        assert bucket.kind == ResourceKind.OBJECT_STORE
        assert bucket.retention == RetentionPolicy.PRESERVE

    def test_invalid_kind_string(self):
        """Unknown kind string lists the valid kinds."""
        with pytest.raises(ValueError, match="Valid kinds"):
            ResourceKind.from_str("queue")

    def test_ref_defaults_to_name(self):
        """ref() references the name attribute by default."""
        bucket = Resource("Uploads", ResourceKind.OBJECT_STORE)

        assert bucket.ref() == ResourceRef("Uploads", "name")
        assert bucket.ref("arn").to_dict() == {"ref": "Uploads", "attribute": "arn"}


class TestComputeUnit:
    """Tests for ComputeUnit."""

    def test_create_unit(self):
        """Can create a compute unit with a resource reference."""
        unit = ComputeUnit(
            "GetOrder",
            HandlerRef("get.ts"),
            1024,
            {"TABLE_NAME": ResourceRef("Orders"), "STAGE": "prod"},
        )

        assert unit.memory_budget == 1024
        assert list(unit.resource_refs()) == [("TABLE_NAME", ResourceRef("Orders"))]

    @pytest.mark.parametrize("budget", [0, -128])
    def test_non_positive_budget_raises(self, budget):
        """Memory budget must be positive."""
        with pytest.raises(InvalidMemoryBudgetError) as exc_info:
            ComputeUnit("GetOrder", HandlerRef("get.ts"), budget)

        assert exc_info.value.code == "INVALID_MEMORY_BUDGET"
        assert exc_info.value.unit_id == "GetOrder"

    def test_bool_budget_raises(self):
        """Booleans are not memory budgets."""
        with pytest.raises(InvalidMemoryBudgetError):
            ComputeUnit("GetOrder", HandlerRef("get.ts"), True)

    def test_environment_is_read_only(self):
        """The environment cannot gain or change entries after construction."""
        env = {"TABLE_NAME": ResourceRef("Orders")}
        unit = ComputeUnit("GetOrder", HandlerRef("get.ts"), 512, env)

        env["GHOST"] = ResourceRef("Nowhere")
        with pytest.raises(TypeError):
            unit.environment["GHOST"] = ResourceRef("Nowhere")

        assert dict(unit.environment) == {"TABLE_NAME": ResourceRef("Orders")}

    def test_invalid_environment_value_raises(self):
        """Environment values must be strings or references."""
        with pytest.raises(TypeError, match="STAGE"):
            ComputeUnit("GetOrder", HandlerRef("get.ts"), 512, {"STAGE": 3})

    def test_handler_defaults(self):
        """Handler reference carries the original defaults."""
        handler = HandlerRef("create.ts")

        d = handler.to_dict()

        assert d["handler"] == "handler"
        assert d["runtime"] == "nodejs16.x"
        assert d["bundling"] == {"minify": True, "external_modules": ["aws-sdk"]}


class TestCapability:
    """Tests for Capability."""

    def test_read_write_expands(self):
        """read-write stands for read and write."""
        assert Capability.READ_WRITE.expand() == (Capability.READ, Capability.WRITE)

    def test_atomic_capabilities_expand_to_self(self):
        """read and write are atomic."""
        assert Capability.READ.expand() == (Capability.READ,)
        assert Capability.WRITE.expand() == (Capability.WRITE,)

    def test_grant_rejects_read_write(self):
        """Grants only hold atomic capabilities."""
        with pytest.raises(ValueError, match="atomic"):
            Grant("GetOrder", "Orders", Capability.READ_WRITE)

    def test_grant_round_trip(self):
        """Grant dict form uses subject/object/capability."""
        grant = Grant("GetOrder", "Orders", Capability.READ)

        assert grant.to_dict() == {"subject": "GetOrder", "object": "Orders", "capability": "read"}
        assert Grant.from_dict(grant.to_dict()) == grant


class TestHttpMethodAndApi:
    """Tests for HttpMethod and ApiSettings."""

    def test_method_is_case_insensitive(self):
        """Verbs parse regardless of case."""
        assert HttpMethod.from_str("get") == HttpMethod.GET

    def test_unknown_method_raises(self):
        """Unknown verbs are rejected."""
        with pytest.raises(ValueError, match="Invalid HTTP method"):
            HttpMethod.from_str("FETCH")

    def test_api_defaults(self):
        """API settings default to a deployed prod stage with INFO logging."""
        api = ApiSettings(name="ShopApi")

        assert api.stage_name == "prod"
        assert api.logging_level == MethodLoggingLevel.INFO
        assert api.deploy is True

    def test_api_requires_stage(self):
        """Stage name cannot be empty."""
        with pytest.raises(ValueError):
            ApiSettings(stage_name="")
