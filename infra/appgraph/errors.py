"""
Error types for the application graph.

Every failure in this package is a configuration or programming error
detected while the graph is assembled or validated. Nothing here is a
transient fault, so nothing is retried.

- AppGraphError: Base exception
- DuplicateIdentifierError: Identifier already declared
- UnresolvedResourceReferenceError: Environment value names an unknown resource
- UnknownSubjectError / UnknownObjectError: Grant on an undeclared entity
- InvalidMemoryBudgetError: Memory budget is not a positive integer
- DuplicateBindingError: (route node, verb) already bound
- UnknownComputeUnitError: Route binds to an undeclared compute unit
- UnsupportedCapabilityError: Capability not supported by the resource kind
- GraphFrozenError: Mutation after validation or second emission
- GraphValidationError: Aggregate of every violation found in one pass
- ManifestError: Malformed manifest document

Invariants:
    - All errors inherit from AppGraphError
    - Every error carries a stable code for programmatic handling
    - Messages name the offending identifier
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class AppGraphError(Exception):
    """Base exception for all application graph errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "APPGRAPH_ERROR"
        self.details = details or {}


class DuplicateIdentifierError(AppGraphError):
    """Identifier is already declared.

    Resources and compute units share one identifier namespace.
    """

    def __init__(self, identifier: str, existing_kind: str) -> None:
        super().__init__(
            f"Identifier '{identifier}' is already declared as a {existing_kind}",
            code="DUPLICATE_IDENTIFIER",
            details={"identifier": identifier, "existing_kind": existing_kind},
        )
        self.identifier = identifier
        self.existing_kind = existing_kind


class UnresolvedResourceReferenceError(AppGraphError):
    """Environment value references a resource (or attribute) that does not exist."""

    def __init__(
        self,
        unit_id: str,
        key: str,
        resource_id: str,
        attribute: Optional[str] = None,
    ) -> None:
        if attribute is None:
            msg = (
                f"Compute unit '{unit_id}' environment '{key}' references "
                f"undeclared resource '{resource_id}'"
            )
        else:
            msg = (
                f"Compute unit '{unit_id}' environment '{key}' references "
                f"unknown attribute '{attribute}' of resource '{resource_id}'"
            )
        super().__init__(
            msg,
            code="UNRESOLVED_RESOURCE_REFERENCE",
            details={
                "unit_id": unit_id,
                "key": key,
                "resource_id": resource_id,
                "attribute": attribute,
            },
        )
        self.unit_id = unit_id
        self.key = key
        self.resource_id = resource_id
        self.attribute = attribute


class UnknownSubjectError(AppGraphError):
    """Grant subject is not a declared compute unit."""

    def __init__(self, subject: str, object_id: str) -> None:
        super().__init__(
            f"Grant subject '{subject}' is not a declared compute unit "
            f"(object '{object_id}')",
            code="UNKNOWN_SUBJECT",
            details={"subject": subject, "object": object_id},
        )
        self.subject = subject
        self.object_id = object_id


class UnknownObjectError(AppGraphError):
    """Grant object is not a declared resource."""

    def __init__(self, object_id: str, subject: str) -> None:
        super().__init__(
            f"Grant object '{object_id}' is not a declared resource "
            f"(subject '{subject}')",
            code="UNKNOWN_OBJECT",
            details={"object": object_id, "subject": subject},
        )
        self.object_id = object_id
        self.subject = subject


class InvalidMemoryBudgetError(AppGraphError):
    """Memory budget must be a positive integer."""

    def __init__(self, unit_id: str, memory_budget: Any) -> None:
        super().__init__(
            f"Compute unit '{unit_id}' memory budget must be a positive integer, "
            f"got {memory_budget!r}",
            code="INVALID_MEMORY_BUDGET",
            details={"unit_id": unit_id, "memory_budget": memory_budget},
        )
        self.unit_id = unit_id
        self.memory_budget = memory_budget


class DuplicateBindingError(AppGraphError):
    """The (route node, verb) pair is already bound."""

    def __init__(self, path: str, verb: str, existing_target: str) -> None:
        super().__init__(
            f"{verb} {path} is already bound to '{existing_target}'",
            code="DUPLICATE_BINDING",
            details={"path": path, "verb": verb, "existing_target": existing_target},
        )
        self.path = path
        self.verb = verb
        self.existing_target = existing_target


class UnknownComputeUnitError(AppGraphError):
    """Route binding targets an undeclared compute unit."""

    def __init__(self, unit_id: str, path: str, verb: str) -> None:
        super().__init__(
            f"{verb} {path} targets undeclared compute unit '{unit_id}'",
            code="UNKNOWN_COMPUTE_UNIT",
            details={"unit_id": unit_id, "path": path, "verb": verb},
        )
        self.unit_id = unit_id
        self.path = path
        self.verb = verb


class UnsupportedCapabilityError(AppGraphError):
    """Capability is not supported by the resource's kind."""

    def __init__(self, subject: str, object_id: str, kind: str, capability: str) -> None:
        super().__init__(
            f"Resource '{object_id}' of kind '{kind}' does not support "
            f"'{capability}' (granted to '{subject}')",
            code="UNSUPPORTED_CAPABILITY",
            details={
                "subject": subject,
                "object": object_id,
                "kind": kind,
                "capability": capability,
            },
        )
        self.subject = subject
        self.object_id = object_id
        self.kind = kind
        self.capability = capability


class GraphFrozenError(AppGraphError):
    """Raised when modifying a validated graph or emitting it twice."""

    def __init__(self, message: str, state: Optional[str] = None) -> None:
        super().__init__(message, code="GRAPH_FROZEN", details={"state": state})
        self.state = state


class GraphValidationError(AppGraphError):
    """Validation found one or more violations.

    Attributes:
        violations: Every violation found, in check order
    """

    def __init__(self, violations: List[AppGraphError]) -> None:
        self.violations = list(violations)
        lines = [f"  - [{v.code}] {v.message}" for v in self.violations]
        super().__init__(
            f"Graph validation failed with {len(self.violations)} violation(s):\n"
            + "\n".join(lines),
            code="VALIDATION_FAILED",
            details={"violations": [{"code": v.code, **v.details} for v in self.violations]},
        )

    @property
    def codes(self) -> List[str]:
        """Violation codes in report order."""
        return [v.code for v in self.violations]


class ManifestError(AppGraphError):
    """Manifest document is malformed."""

    def __init__(self, message: str, location: Optional[str] = None) -> None:
        if location:
            message = f"{location}: {message}"
        super().__init__(message, code="INVALID_MANIFEST", details={"location": location})
        self.location = location
