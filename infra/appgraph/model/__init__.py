"""
Model module for the application graph.

This module provides the value objects and registries the graph is built from:
- Type definitions (Resource, ComputeUnit, Grant, HandlerRef, ResourceRef)
- Kind catalog (capabilities and attributes per resource kind)
- Registries for resources and compute units
- Route table with literal and parameter segments

Invariants:
    - Identifiers are unique across resources and compute units
    - Value objects are frozen once declared
    - Resource kinds never change after declaration

How to change safely:
    - Add new resource kinds together with a catalog profile
    - Add new optional attributes with defaults
    - Keep every to_dict() sorted and stable
"""

from .catalog import DEFAULT_CATALOG, KindCatalog, KindProfile
from .registry import ComputeUnitRegistry, ResourceRegistry
from .routes import (
    LiteralSegment,
    MethodBinding,
    ParameterSegment,
    RouteBinding,
    RouteMatch,
    RouteNode,
    RouteTable,
    parse_segment,
)
from .types import (
    ApiSettings,
    Bundling,
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

__all__ = [
    # Types
    "Resource",
    "ResourceKind",
    "ResourceRef",
    "RetentionPolicy",
    "ComputeUnit",
    "HandlerRef",
    "Bundling",
    "Capability",
    "Grant",
    "HttpMethod",
    "ApiSettings",
    "MethodLoggingLevel",
    # Catalog
    "KindCatalog",
    "KindProfile",
    "DEFAULT_CATALOG",
    # Registries
    "ResourceRegistry",
    "ComputeUnitRegistry",
    # Routes
    "RouteTable",
    "RouteNode",
    "RouteBinding",
    "RouteMatch",
    "MethodBinding",
    "LiteralSegment",
    "ParameterSegment",
    "parse_segment",
]
