"""
Unit tests for the route table.

Tests cover:
- Segment parsing (literal vs parameter)
- Tree construction
- Binding rules
- Static matching and parameter capture
"""

import pytest

from infra.appgraph.errors import DuplicateBindingError, GraphFrozenError, UnknownComputeUnitError
from infra.appgraph.model.routes import (
    LiteralSegment,
    ParameterSegment,
    RouteTable,
    parse_segment,
)
from infra.appgraph.model.types import HttpMethod


class TestSegmentParsing:
    """Tests for parse_segment."""

    def test_literal(self):
        """Plain text is a literal segment."""
        assert parse_segment("orders") == LiteralSegment("orders")

    def test_parameter(self):
        """Brace-delimited text is a parameter segment."""
        assert parse_segment("{id}") == ParameterSegment("id")

    @pytest.mark.parametrize("part", ["", "a/b", "{id", "{}", "{1abc}"])
    def test_invalid_segments(self, part):
        """Malformed segments are rejected."""
        with pytest.raises(ValueError):
            parse_segment(part)

    def test_parameter_matches_one_token(self):
        """Parameters match any non-empty token."""
        segment = ParameterSegment("id")

        assert segment.matches("42")
        assert not segment.matches("")


class TestRouteTable:
    """Tests for RouteTable construction."""

    @pytest.fixture
    def table(self):
        """Table that knows two compute units."""
        return RouteTable(unit_exists=lambda u: u in {"CreateOrder", "GetOrder"})

    def test_add_resource(self, table):
        """Nodes know their full path and parameters."""
        orders = table.add_resource(table.root, "orders")
        order = table.add_resource(orders, "{id}")

        assert orders.path == "/orders"
        assert order.path == "/orders/{id}"
        assert order.parameters == ("id",)
        assert table.root.path == "/"

    def test_add_existing_resource_returns_node(self, table):
        """Adding the same segment twice returns the existing node."""
        first = table.add_resource(table.root, "orders")
        second = table.add_resource(table.root, "orders")

        assert first is second
        assert len(table.root.children) == 1

    def test_conflicting_parameters_raise(self, table):
        """Two different parameters at one level are ambiguous."""
        orders = table.add_resource(table.root, "orders")
        table.add_resource(orders, "{id}")

        with pytest.raises(ValueError, match="already has parameter 'id'"):
            table.add_resource(orders, "{orderId}")

    def test_two_verbs_on_one_node(self, table):
        """Different verbs bind to the same node."""
        orders = table.add_resource(table.root, "orders")

        table.add_method(orders, "POST", "CreateOrder")
        table.add_method(orders, "GET", "GetOrder")

        assert set(orders.methods) == {HttpMethod.GET, HttpMethod.POST}

    def test_duplicate_binding_raises(self, table):
        """Binding the same verb twice raises."""
        orders = table.add_resource(table.root, "orders")
        table.add_method(orders, "POST", "CreateOrder")

        with pytest.raises(DuplicateBindingError) as exc_info:
            table.add_method(orders, "post", "GetOrder")

        assert exc_info.value.existing_target == "CreateOrder"
        assert orders.methods[HttpMethod.POST].target == "CreateOrder"

    def test_deferred_duplicate_binding_recorded(self):
        """A deferred table keeps the first binding and records the rest."""
        table = RouteTable(strict=False)
        orders = table.add_resource(table.root, "orders")
        table.add_method(orders, "POST", "CreateOrder")

        binding = table.add_method(orders, "POST", "GetOrder")

        assert binding.target == "CreateOrder"
        assert [e.code for e in table.duplicates()] == ["DUPLICATE_BINDING"]
        assert table.duplicates()[0].existing_target == "CreateOrder"

    def test_unknown_unit_raises(self, table):
        """Binding to an undeclared unit raises and names it."""
        orders = table.add_resource(table.root, "orders")

        with pytest.raises(UnknownComputeUnitError, match="'DeleteOrder'"):
            table.add_method(orders, "DELETE", "DeleteOrder")

        assert orders.methods == {}

    def test_resource_for_path(self, table):
        """resource_for_path creates intermediate nodes."""
        node = table.resource_for_path("/orders/{id}/items")

        assert node.path == "/orders/{id}/items"
        assert table.resource_for_path("orders/{id}") is node.parent

    def test_bindings_sorted(self, table):
        """bindings() flattens the tree sorted by path and verb."""
        order = table.resource_for_path("/orders/{id}")
        orders = order.parent
        table.add_method(order, "GET", "GetOrder")
        table.add_method(orders, "POST", "CreateOrder")

        bindings = table.bindings()

        assert [(b.path, b.verb.value, b.target) for b in bindings] == [
            ("/orders", "POST", "CreateOrder"),
            ("/orders/{id}", "GET", "GetOrder"),
        ]
        assert bindings[1].parameters == ("id",)
        assert bindings[1].to_dict()["parameters"] == ["id"]

    def test_frozen_table_rejects_changes(self, table):
        """A frozen table rejects new segments and bindings."""
        orders = table.add_resource(table.root, "orders")
        table.freeze()

        with pytest.raises(GraphFrozenError):
            table.add_resource(orders, "{id}")
        with pytest.raises(GraphFrozenError):
            table.add_method(orders, "GET", "GetOrder")


class TestRouteMatching:
    """Tests for RouteTable.match."""

    @pytest.fixture
    def table(self):
        """Table with literal and parameter children under /orders."""
        table = RouteTable()
        orders = table.add_resource(table.root, "orders")
        table.add_method(orders, "POST", "CreateOrder")
        table.add_method(table.add_resource(orders, "{id}"), "GET", "GetOrder")
        table.add_method(table.add_resource(orders, "recent"), "GET", "ListRecent")
        return table

    def test_parameter_captured_by_name(self, table):
        """The matched token is delivered under the parameter name."""
        match = table.match("GET", "/orders/42")

        assert match.target == "GetOrder"
        assert match.parameters == {"id": "42"}
        assert match.path == "/orders/{id}"

    def test_literal_beats_parameter(self, table):
        """A literal child wins over a parameter at the same level."""
        match = table.match("GET", "/orders/recent")

        assert match.target == "ListRecent"
        assert match.parameters == {}

    def test_parameter_captures_single_token(self, table):
        """Extra path tokens do not match a single parameter."""
        assert table.match("GET", "/orders/42/items") is None

    def test_unbound_verb(self, table):
        """A node without the verb does not match."""
        assert table.match("DELETE", "/orders/42") is None

    def test_any_binding_is_fallback(self):
        """ANY serves verbs without an explicit binding."""
        table = RouteTable()
        node = table.add_resource(table.root, "health")
        table.add_method(node, HttpMethod.ANY, "Health")

        assert table.match("HEAD", "/health").target == "Health"
