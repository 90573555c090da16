"""
Resource and compute unit registries.

The registries are the identifier-indexed half of two-phase assembly:
declarations land here first, and grants, routes and environment values
are resolved against them afterwards.

Invariants:
    - Identifiers are unique within a registry (and, through the shared
      namespace check in the graph, across both registries)
    - A failed declare() leaves the registry unchanged
    - Once frozen, no new entries can be declared
    - In deferred mode duplicates are recorded instead of raised; the
      first declaration wins and validation reports the rest

How to change safely:
    - Declare every resource before the units that reference it, or use
      deferred mode and rely on validation
    - Never mutate a registered value; declare a new identifier instead
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from ..errors import (
    DuplicateIdentifierError,
    GraphFrozenError,
    UnresolvedResourceReferenceError,
)
from .catalog import DEFAULT_CATALOG, KindCatalog
from .types import (
    ComputeUnit,
    EnvValue,
    HandlerRef,
    Resource,
    ResourceKind,
    RetentionPolicy,
)

logger = logging.getLogger(__name__)


class _Registry:
    """Shared bookkeeping for the identifier-indexed registries."""

    entry_kind = "entry"

    def __init__(
        self,
        strict: bool = True,
        taken: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        self._entries: Dict[str, Any] = {}
        self._duplicates: List[DuplicateIdentifierError] = []
        self._strict = strict
        self._taken = taken
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def duplicates(self) -> List[DuplicateIdentifierError]:
        """Duplicate declarations recorded in deferred mode."""
        return list(self._duplicates)

    def _admit(self, identifier: str) -> bool:
        """Check `identifier` is free. Returns False if the entry must be dropped."""
        if self._frozen:
            raise GraphFrozenError(
                f"Cannot declare {self.entry_kind} '{identifier}': graph is validated"
            )
        existing_kind = None
        if identifier in self._entries:
            existing_kind = self.entry_kind
        elif self._taken is not None:
            existing_kind = self._taken(identifier)
        if existing_kind is None:
            return True
        error = DuplicateIdentifierError(identifier, existing_kind)
        if self._strict:
            raise error
        logger.warning(f"Deferred duplicate declaration: {error.message}")
        self._duplicates.append(error)
        return False

    def get(self, identifier: str) -> Optional[Any]:
        return self._entries.get(identifier)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def identifiers(self) -> List[str]:
        return sorted(self._entries)


class ResourceRegistry(_Registry):
    """Registry of declared resources.

    Example:
        >>> resources = ResourceRegistry()
        >>> table = resources.declare("Orders", ResourceKind.KEYED_TABLE, RetentionPolicy.DESTROY)
        >>> "Orders" in resources
        True
    """

    entry_kind = "resource"

    def declare(
        self,
        identifier: str,
        kind: ResourceKind,
        retention: RetentionPolicy = RetentionPolicy.DESTROY,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> Resource:
        """Declare a resource.

        Raises:
            DuplicateIdentifierError: If identifier is already declared (strict mode)
            GraphFrozenError: If the registry is frozen
        """
        resource = Resource(
            identifier=identifier,
            kind=kind,
            retention=retention,
            properties=dict(properties or {}),
        )
        if self._admit(identifier):
            self._entries[identifier] = resource
            logger.debug(f"Declared resource: {identifier} (kind={kind.value})")
        return resource

    def get(self, identifier: str) -> Optional[Resource]:
        return self._entries.get(identifier)

    def __iter__(self) -> Iterator[Resource]:
        yield from self._entries.values()


class ComputeUnitRegistry(_Registry):
    """Registry of declared compute units.

    Environment references are checked against `resources` at declaration
    time in strict mode, and left to validation in deferred mode.
    """

    entry_kind = "compute unit"

    def __init__(
        self,
        resources: ResourceRegistry,
        catalog: KindCatalog = DEFAULT_CATALOG,
        strict: bool = True,
        taken: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        super().__init__(strict=strict, taken=taken)
        self._resources = resources
        self._catalog = catalog

    def declare(
        self,
        identifier: str,
        handler: HandlerRef,
        memory_budget: int,
        environment: Optional[Mapping[str, EnvValue]] = None,
    ) -> ComputeUnit:
        """Declare a compute unit.

        Raises:
            DuplicateIdentifierError: If identifier is already declared (strict mode)
            InvalidMemoryBudgetError: If memory_budget <= 0
            UnresolvedResourceReferenceError: If an environment value references an
                undeclared resource or unknown attribute (strict mode)
            GraphFrozenError: If the registry is frozen
        """
        unit = ComputeUnit(
            identifier=identifier,
            handler=handler,
            memory_budget=memory_budget,
            environment=dict(environment or {}),
        )
        if self._strict:
            unresolved = self.unresolved_references(unit)
            if unresolved:
                raise unresolved[0]
        if self._admit(identifier):
            self._entries[identifier] = unit
            logger.debug(
                f"Declared compute unit: {identifier} "
                f"(entry={handler.entry}, memory={memory_budget})"
            )
        return unit

    def unresolved_references(self, unit: ComputeUnit) -> List[UnresolvedResourceReferenceError]:
        """Every environment reference of `unit` that does not resolve."""
        errors = []
        for key, ref in unit.resource_refs():
            resource = self._resources.get(ref.resource_id)
            if resource is None:
                errors.append(
                    UnresolvedResourceReferenceError(unit.identifier, key, ref.resource_id)
                )
            elif not self._catalog.has_attribute(resource.kind, ref.attribute):
                errors.append(
                    UnresolvedResourceReferenceError(
                        unit.identifier, key, ref.resource_id, ref.attribute
                    )
                )
        return errors

    def get(self, identifier: str) -> Optional[ComputeUnit]:
        return self._entries.get(identifier)

    def __iter__(self) -> Iterator[ComputeUnit]:
        yield from self._entries.values()
