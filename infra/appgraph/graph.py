"""
ApplicationGraph: assembly, validation and emission.

The graph owns the resource and compute unit registries, the grant
engine and the route table. It is assembled in two phases: declarations
build identifier-indexed registries, then grants, routes and environment
values are resolved against them.

State machine:
    EMPTY -> DECLARING / GRANTING / ROUTING -> VALIDATED -> EMITTED

Declaring, granting and routing interleave freely as long as entities
exist before they are referenced. VALIDATED and EMITTED are terminal:
no mutation after validation, and emission happens exactly once.

Invariants:
    - Resources and compute units share one identifier namespace
    - The graph is closed under reference before it is emitted
    - Validation reports every violation in one pass, in check order:
      (a) duplicate identifiers, (b) environment and grant references,
      (c) duplicate route bindings and route targets, (d) capabilities
      unsupported by a resource kind
    - A call that raises leaves the graph state unchanged
    - Strict mode fails declaration calls fast; deferred mode leaves
      reference and duplicate checks to validation

Example:
    >>> graph = ApplicationGraph("Shop")
    >>> graph.declare_resource("Orders", ResourceKind.KEYED_TABLE)
    >>> graph.declare_compute_unit("GetOrder", HandlerRef("get.ts"), 512,
    ...                            {"TABLE_NAME": ResourceRef("Orders")})
    >>> graph.grant("GetOrder", "Orders", Capability.READ)
    >>> node = graph.add_resource(graph.root, "orders")
    >>> graph.add_method(graph.add_resource(node, "{id}"), "GET", "GetOrder")
    >>> declaration = graph.emit()
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

from .declaration import Declaration, resolve_environment
from .errors import (
    AppGraphError,
    GraphFrozenError,
    GraphValidationError,
    UnknownComputeUnitError,
    UnknownObjectError,
    UnknownSubjectError,
    UnsupportedCapabilityError,
)
from .grants import GrantEngine
from .model.catalog import DEFAULT_CATALOG, KindCatalog
from .model.registry import ComputeUnitRegistry, ResourceRegistry
from .model.routes import MethodBinding, RouteNode, RouteTable
from .model.types import (
    ApiSettings,
    Capability,
    ComputeUnit,
    EnvValue,
    Grant,
    HandlerRef,
    HttpMethod,
    Resource,
    ResourceKind,
    RetentionPolicy,
)

logger = logging.getLogger(__name__)


class GraphState(Enum):
    """Assembly lifecycle of an ApplicationGraph."""

    EMPTY = "empty"
    DECLARING = "declaring"
    GRANTING = "granting"
    ROUTING = "routing"
    VALIDATED = "validated"
    EMITTED = "emitted"


_TERMINAL = (GraphState.VALIDATED, GraphState.EMITTED)


class ApplicationGraph:
    """A serverless application under assembly.

    Args:
        name: Application name
        api: API settings (defaults to ApiSettings())
        catalog: Kind catalog used for attribute and capability checks
        strict: Fail declaration calls fast (True) or defer reference and
            duplicate checks to validation (False)

    Attributes:
        resources: Resource registry
        compute_units: Compute unit registry
        grants: Grant engine
        routes: Route table
    """

    def __init__(
        self,
        name: str = "App",
        api: Optional[ApiSettings] = None,
        catalog: KindCatalog = DEFAULT_CATALOG,
        strict: bool = True,
    ) -> None:
        self.name = name
        self.api = api or ApiSettings()
        self.catalog = catalog
        self.strict = strict
        self._state = GraphState.EMPTY

        self.resources = ResourceRegistry(
            strict=strict,
            taken=lambda i: "compute unit" if i in self.compute_units else None,
        )
        self.compute_units = ComputeUnitRegistry(
            self.resources,
            catalog=catalog,
            strict=strict,
            taken=lambda i: "resource" if i in self.resources else None,
        )
        self.grants = GrantEngine(
            subject_exists=self.compute_units.__contains__ if strict else None,
            object_exists=self.resources.__contains__ if strict else None,
        )
        self.routes = RouteTable(
            unit_exists=self.compute_units.__contains__ if strict else None,
            strict=strict,
        )

    @property
    def state(self) -> GraphState:
        return self._state

    @property
    def root(self) -> RouteNode:
        return self.routes.root

    def declare_resource(
        self,
        identifier: str,
        kind: Union[str, ResourceKind],
        retention: Union[str, RetentionPolicy] = RetentionPolicy.DESTROY,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> Resource:
        """Declare a resource. See ResourceRegistry.declare()."""
        self._check_mutable()
        if isinstance(kind, str):
            kind = ResourceKind.from_str(kind)
        if isinstance(retention, str):
            retention = RetentionPolicy(retention)
        resource = self.resources.declare(identifier, kind, retention, properties)
        self._state = GraphState.DECLARING
        return resource

    def declare_compute_unit(
        self,
        identifier: str,
        handler: HandlerRef,
        memory_budget: int,
        environment: Optional[Mapping[str, EnvValue]] = None,
    ) -> ComputeUnit:
        """Declare a compute unit. See ComputeUnitRegistry.declare()."""
        self._check_mutable()
        unit = self.compute_units.declare(identifier, handler, memory_budget, environment)
        self._state = GraphState.DECLARING
        return unit

    def grant(
        self,
        compute_unit_id: str,
        resource_id: str,
        capability: Union[str, Capability],
    ) -> List[Grant]:
        """Grant a capability. See GrantEngine.grant()."""
        self._check_mutable()
        added = self.grants.grant(compute_unit_id, resource_id, capability)
        self._state = GraphState.GRANTING
        return added

    def add_resource(self, parent: RouteNode, path_part: str) -> RouteNode:
        """Add a route path segment under `parent`."""
        self._check_mutable()
        node = self.routes.add_resource(parent, path_part)
        self._state = GraphState.ROUTING
        return node

    def add_route(self, path: str) -> RouteNode:
        """Return the route node for a full path, creating segments as needed."""
        self._check_mutable()
        node = self.routes.resource_for_path(path)
        self._state = GraphState.ROUTING
        return node

    def add_method(
        self,
        node: RouteNode,
        verb: Union[str, HttpMethod],
        compute_unit_id: str,
        proxy: bool = True,
    ) -> MethodBinding:
        """Bind a verb on a route node. See RouteTable.add_method()."""
        self._check_mutable()
        binding = self.routes.add_method(node, verb, compute_unit_id, proxy=proxy)
        self._state = GraphState.ROUTING
        return binding

    def validate_all(self) -> List[AppGraphError]:
        """Collect every violation without raising.

        Returns:
            Violations in check order (empty if valid)
        """
        violations: List[AppGraphError] = []

        # (a) duplicate identifiers across resources and compute units
        violations.extend(self.resources.duplicates())
        violations.extend(self.compute_units.duplicates())

        # (b) environment references, then grant subjects and objects
        for unit in sorted(self.compute_units, key=lambda u: u.identifier):
            violations.extend(self.compute_units.unresolved_references(unit))
        for grant in self.grants.grants():
            if grant.subject not in self.compute_units:
                violations.append(UnknownSubjectError(grant.subject, grant.object_id))
            if grant.object_id not in self.resources:
                violations.append(UnknownObjectError(grant.object_id, grant.subject))

        # (c) duplicate bindings, then route targets
        violations.extend(self.routes.duplicates())
        for binding in self.routes.bindings():
            if binding.target not in self.compute_units:
                violations.append(
                    UnknownComputeUnitError(binding.target, binding.path, binding.verb.value)
                )

        # (d) capabilities the resource kind does not support
        for grant in self.grants.grants():
            resource = self.resources.get(grant.object_id)
            if resource is None:
                continue
            if not self.catalog.supports(resource.kind, grant.capability):
                violations.append(
                    UnsupportedCapabilityError(
                        grant.subject,
                        grant.object_id,
                        resource.kind.value,
                        grant.capability.value,
                    )
                )

        return violations

    def validate(self) -> None:
        """Validate the graph and freeze it.

        Raises:
            GraphFrozenError: If the graph is already validated
            GraphValidationError: With every violation found
        """
        if self._state in _TERMINAL:
            raise GraphFrozenError(
                f"Graph '{self.name}' is already {self._state.value}", self._state.value
            )
        violations = self.validate_all()
        if violations:
            logger.warning(
                f"Graph '{self.name}' failed validation with {len(violations)} violation(s)"
            )
            raise GraphValidationError(violations)

        self.resources.freeze()
        self.compute_units.freeze()
        self.grants.freeze()
        self.routes.freeze()
        self._state = GraphState.VALIDATED
        logger.info(
            f"Graph '{self.name}' validated: {len(self.resources)} resources, "
            f"{len(self.compute_units)} compute units, {len(self.grants)} grants, "
            f"{len(self.routes.bindings())} route bindings"
        )

    def emit(self) -> Declaration:
        """Emit the declaration, validating first if needed.

        Raises:
            GraphFrozenError: If the graph was already emitted
            GraphValidationError: If validation fails
        """
        if self._state is GraphState.EMITTED:
            raise GraphFrozenError(f"Graph '{self.name}' was already emitted", self._state.value)
        if self._state is not GraphState.VALIDATED:
            self.validate()

        declaration = Declaration(
            name=self.name,
            api=self.api.to_dict(),
            resources=tuple(
                self.resources.get(i).to_dict() for i in self.resources.identifiers()
            ),
            compute_units=tuple(
                self._unit_entry(self.compute_units.get(i))
                for i in self.compute_units.identifiers()
            ),
            grants=tuple(g.to_dict() for g in self.grants.grants()),
            routes=tuple(b.to_dict() for b in self.routes.bindings()),
        )
        self._state = GraphState.EMITTED
        logger.info(f"Graph '{self.name}' emitted, fingerprint={declaration.fingerprint}")
        return declaration

    def _unit_entry(self, unit: ComputeUnit) -> dict:
        return {
            "id": unit.identifier,
            "handler": unit.handler.to_dict(),
            "memory_budget": unit.memory_budget,
            "environment": resolve_environment(unit, self.resources, self.catalog),
        }

    def _check_mutable(self) -> None:
        if self._state in _TERMINAL:
            raise GraphFrozenError(
                f"Cannot modify graph '{self.name}': it is {self._state.value}",
                self._state.value,
            )
