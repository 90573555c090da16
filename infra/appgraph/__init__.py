"""
AppGraph - declarative wiring for small serverless applications.

This package assembles a serverless application as a resource graph and
emits a provider-agnostic declaration for an external executor:
- Resources (object stores, keyed tables) and ComputeUnits (handlers)
- Permission grants as explicit (subject, object, capability) triples
- A static route table binding HTTP verbs to compute units

Architecture:
    ┌───────────┐   ┌──────────────┐   ┌─────────┐   ┌────────────┐
    │ Resources │──▶│ ComputeUnits │──▶│ Grants  │──▶│ RouteTable │
    └───────────┘   └──────────────┘   └─────────┘   └─────┬──────┘
                                                           │
                                                           ▼
                             ┌────────────────────────────────────┐
                             │ ApplicationGraph.validate()/emit() │
                             └─────────────────┬──────────────────┘
                                               ▼
                                  Declaration (JSON / YAML)

Invariants:
    - The graph is build-time only; nothing here provisions anything
    - Identifiers are unique across resources and compute units
    - Every grant is explicit; there is no default allow
    - Same declaration calls produce a byte-identical declaration

How to change safely:
    - Add resource kinds together with a kind catalog profile
    - Add declaration keys, never rename them
    - Run `appgraph diff` before deploying a changed declaration
"""

from ._version import __version__
from .declaration import Declaration
from .errors import (
    AppGraphError,
    DuplicateBindingError,
    DuplicateIdentifierError,
    GraphFrozenError,
    GraphValidationError,
    InvalidMemoryBudgetError,
    ManifestError,
    UnknownComputeUnitError,
    UnknownObjectError,
    UnknownSubjectError,
    UnresolvedResourceReferenceError,
    UnsupportedCapabilityError,
)
from .graph import ApplicationGraph, GraphState

__all__ = [
    "__version__",
    "ApplicationGraph",
    "GraphState",
    "Declaration",
    # Errors
    "AppGraphError",
    "DuplicateIdentifierError",
    "UnresolvedResourceReferenceError",
    "UnknownSubjectError",
    "UnknownObjectError",
    "InvalidMemoryBudgetError",
    "DuplicateBindingError",
    "UnknownComputeUnitError",
    "UnsupportedCapabilityError",
    "GraphFrozenError",
    "GraphValidationError",
    "ManifestError",
]
