"""
Unit tests for the handler contract and kind catalog.
"""

import pytest

from infra.appgraph.contract import HandlerError, HandlerRequest, HandlerResponse, build_request
from infra.appgraph.model.catalog import DEFAULT_CATALOG, KindCatalog, KindProfile
from infra.appgraph.model.routes import RouteTable
from infra.appgraph.model.types import Capability, ResourceKind


class TestHandlerContract:
    """Tests for request construction."""

    def test_parameters_delivered_by_name(self):
        """Captured route parameters reach the handler by name."""
        table = RouteTable()
        table.add_method(table.resource_for_path("/orders/{id}"), "GET", "GetOrder")
        match = table.match("GET", "/orders/abc-123")

        request = build_request(match, body=None)

        assert request == HandlerRequest(
            method="GET", path="/orders/{id}", path_parameters={"id": "abc-123"}
        )

    def test_response_status_range(self):
        """Status codes must be valid HTTP codes."""
        assert HandlerResponse(201, {"id": "1"}).status_code == 201
        with pytest.raises(ValueError):
            HandlerResponse(42)

    def test_handler_error_defaults_to_500(self):
        """Handler failures map to a server error unless told otherwise."""
        assert HandlerError("boom").status_code == 500
        assert HandlerError("missing order", status_code=404).status_code == 404


class TestKindCatalog:
    """Tests for KindCatalog."""

    def test_default_allows_read_write(self):
        """Both kinds support read, write and read-write by default."""
        for kind in ResourceKind:
            assert DEFAULT_CATALOG.supports(kind, Capability.READ_WRITE)

    def test_restrict_returns_new_catalog(self):
        """restrict() leaves the original catalog untouched."""
        restricted = DEFAULT_CATALOG.restrict(ResourceKind.KEYED_TABLE, [Capability.READ])

        assert not restricted.supports(ResourceKind.KEYED_TABLE, Capability.WRITE)
        assert not restricted.supports(ResourceKind.KEYED_TABLE, Capability.READ_WRITE)
        assert DEFAULT_CATALOG.supports(ResourceKind.KEYED_TABLE, Capability.WRITE)

    def test_attributes(self):
        """Each kind exposes its own attributes."""
        assert DEFAULT_CATALOG.has_attribute(ResourceKind.KEYED_TABLE, "stream_arn")
        assert not DEFAULT_CATALOG.has_attribute(ResourceKind.OBJECT_STORE, "stream_arn")

    def test_missing_profile_raises(self):
        """A catalog must cover every kind."""
        profile = KindProfile(
            kind=ResourceKind.OBJECT_STORE,
            capabilities=frozenset({Capability.WRITE}),
            attributes=("name",),
        )

        with pytest.raises(ValueError, match="missing profiles"):
            KindCatalog([profile])
