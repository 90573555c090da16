"""
Core type definitions for the application graph.

This module defines the value objects the graph is assembled from:
- Resource: A declared unit of persistent storage (object store, keyed table)
- ResourceRef: A reference to a resource attribute, resolved at emission
- HandlerRef: The handler contract a compute unit is bound to
- ComputeUnit: A declared execution unit
- Grant: A (subject, object, capability) triple
- ApiSettings: Flat settings of the HTTP API

Invariants:
    - All value objects are frozen once constructed, including the
      properties and environment mappings they hold
    - Resource kind never changes after declaration
    - memory_budget is a positive integer
    - Grants carry a single capability (read or write); read-write is
      expanded before a Grant is built
    - Environment values are literal strings or ResourceRefs, never
      pre-resolved provider values

How to change safely:
    - Add new resource kinds to ResourceKind and to the kind catalog
    - Add new flat settings as optional attributes with defaults
    - Keep to_dict() output sorted and stable (it feeds the fingerprint)

Example:
    >>> from infra.appgraph.model.types import Resource, ResourceKind, RetentionPolicy
    >>> table = Resource(
    ...     identifier="OrdersTable",
    ...     kind=ResourceKind.KEYED_TABLE,
    ...     retention=RetentionPolicy.DESTROY,
    ...     properties={"table_name": "orders", "partition_key": "id"},
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Tuple, Union

from ..errors import InvalidMemoryBudgetError


def freeze_value(value: Any) -> Any:
    """Copy `value` into read-only mappings and tuples, recursively."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze_value(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_value(v) for v in value)
    return value


def thaw_value(value: Any) -> Any:
    """Inverse of freeze_value: plain dicts and lists for serialization."""
    if isinstance(value, Mapping):
        return {k: thaw_value(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw_value(v) for v in value]
    return value


class ResourceKind(Enum):
    """Supported resource kinds."""

    OBJECT_STORE = "object-store"
    KEYED_TABLE = "keyed-table"

    @classmethod
    def from_str(cls, value: str) -> ResourceKind:
        """Convert string representation to ResourceKind.

        Raises:
            ValueError: If value is not a valid resource kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid resource kind '{value}'. Valid kinds: {valid}")


class RetentionPolicy(Enum):
    """What happens to a resource when the application is torn down."""

    DESTROY = "destroy"
    PRESERVE = "preserve"


class Capability(Enum):
    """Access rights a compute unit can be granted on a resource."""

    READ = "read"
    WRITE = "write"
    READ_WRITE = "read-write"

    def expand(self) -> Tuple[Capability, ...]:
        """Return the atomic capabilities this capability stands for."""
        if self is Capability.READ_WRITE:
            return (Capability.READ, Capability.WRITE)
        return (self,)


class HttpMethod(Enum):
    """HTTP verbs a route node can bind."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    ANY = "ANY"

    @classmethod
    def from_str(cls, value: str) -> HttpMethod:
        """Parse a verb, case-insensitively."""
        try:
            return cls(value.upper())
        except ValueError:
            valid = [m.value for m in cls]
            raise ValueError(f"Invalid HTTP method '{value}'. Valid methods: {valid}") from None


class MethodLoggingLevel(Enum):
    """Access logging level of the API stage."""

    OFF = "OFF"
    ERROR = "ERROR"
    INFO = "INFO"


@dataclass(frozen=True)
class Resource:
    """A declared unit of persistent storage.

    Resources are pure data. They are never invoked; compute units learn
    their identity through environment references and act on them through
    grants.

    Attributes:
        identifier: Unique, stable identifier within the graph
        kind: Resource kind (immutable)
        retention: Teardown behaviour
        properties: Flat provider settings, emitted verbatim

    Example:
        >>> bucket = Resource("Uploads", ResourceKind.OBJECT_STORE)
    """

    identifier: str
    kind: ResourceKind
    retention: RetentionPolicy = RetentionPolicy.DESTROY
    properties: Mapping[str, Any] = dataclass_field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("Resource identifier cannot be empty")
        if not isinstance(self.kind, ResourceKind):
            raise ValueError(f"Resource '{self.identifier}' has invalid kind {self.kind!r}")
        object.__setattr__(self, "properties", freeze_value(self.properties))

    def ref(self, attribute: str = "name") -> ResourceRef:
        """Build a reference to one of this resource's attributes."""
        return ResourceRef(self.identifier, attribute)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: Dict[str, Any] = {
            "id": self.identifier,
            "kind": self.kind.value,
            "retention": self.retention.value,
        }
        if self.properties:
            result["properties"] = {
                k: thaw_value(self.properties[k]) for k in sorted(self.properties)
            }
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Resource:
        """Create from dictionary representation."""
        return cls(
            identifier=data["id"],
            kind=ResourceKind.from_str(data["kind"]),
            retention=RetentionPolicy(data.get("retention", RetentionPolicy.DESTROY.value)),
            properties=dict(data.get("properties") or {}),
        )


@dataclass(frozen=True)
class ResourceRef:
    """Reference to an attribute of a declared resource.

    The value behind the reference is assigned by the deployment executor,
    so it is kept symbolic until emission.
    """

    resource_id: str
    attribute: str = "name"

    def to_dict(self) -> Dict[str, str]:
        return {"ref": self.resource_id, "attribute": self.attribute}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ResourceRef:
        return cls(resource_id=data["ref"], attribute=data.get("attribute", "name"))


EnvValue = Union[str, ResourceRef]


@dataclass(frozen=True)
class Bundling:
    """Code bundling options for a handler."""

    minify: bool = True
    external_modules: Tuple[str, ...] = ("aws-sdk",)

    def to_dict(self) -> Dict[str, Any]:
        return {"minify": self.minify, "external_modules": list(self.external_modules)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Bundling:
        return cls(
            minify=data.get("minify", True),
            external_modules=tuple(data.get("external_modules", ("aws-sdk",))),
        )


@dataclass(frozen=True)
class HandlerRef:
    """The handler contract a compute unit is bound to.

    Attributes:
        entry: Path of the handler source
        handler: Exported function name
        runtime: Runtime identifier
        bundling: Bundling options
    """

    entry: str
    handler: str = "handler"
    runtime: str = "nodejs16.x"
    bundling: Bundling = dataclass_field(default_factory=Bundling)

    def __post_init__(self) -> None:
        if not self.entry:
            raise ValueError("Handler entry cannot be empty")
        if not self.handler:
            raise ValueError(f"Handler name cannot be empty for entry '{self.entry}'")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry": self.entry,
            "handler": self.handler,
            "runtime": self.runtime,
            "bundling": self.bundling.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> HandlerRef:
        return cls(
            entry=data["entry"],
            handler=data.get("handler", "handler"),
            runtime=data.get("runtime", "nodejs16.x"),
            bundling=Bundling.from_dict(data.get("bundling") or {}),
        )


@dataclass(frozen=True)
class ComputeUnit:
    """A declared execution unit bound to one handler.

    Attributes:
        identifier: Unique identifier within the graph
        handler: Handler contract reference
        memory_budget: Memory in MB (positive integer)
        environment: Key -> literal string or ResourceRef

    Invariants:
        - memory_budget > 0
        - environment values are str or ResourceRef

    Example:
        >>> unit = ComputeUnit(
        ...     identifier="GetOrder",
        ...     handler=HandlerRef("src/handlers/get-order.ts"),
        ...     memory_budget=1024,
        ...     environment={"TABLE_NAME": ResourceRef("OrdersTable")},
        ... )
    """

    identifier: str
    handler: HandlerRef
    memory_budget: int
    environment: Mapping[str, EnvValue] = dataclass_field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("Compute unit identifier cannot be empty")
        budget = self.memory_budget
        if isinstance(budget, bool) or not isinstance(budget, int) or budget <= 0:
            raise InvalidMemoryBudgetError(self.identifier, budget)
        for key, value in self.environment.items():
            if not isinstance(value, (str, ResourceRef)):
                raise TypeError(
                    f"Environment '{key}' of compute unit '{self.identifier}' must be "
                    f"a string or ResourceRef, got {type(value).__name__}"
                )
        object.__setattr__(self, "environment", MappingProxyType(dict(self.environment)))

    def resource_refs(self) -> Iterator[Tuple[str, ResourceRef]]:
        """Yield (key, ref) for every environment value that is a reference."""
        for key in sorted(self.environment):
            value = self.environment[key]
            if isinstance(value, ResourceRef):
                yield key, value


@dataclass(frozen=True)
class Grant:
    """ComputeUnit `subject` may perform `capability` on Resource `object_id`."""

    subject: str
    object_id: str
    capability: Capability

    def __post_init__(self) -> None:
        if self.capability is Capability.READ_WRITE:
            raise ValueError("Grant capability must be atomic; expand read-write first")

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.subject, self.object_id, self.capability.value)

    def to_dict(self) -> Dict[str, str]:
        return {
            "subject": self.subject,
            "object": self.object_id,
            "capability": self.capability.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Grant:
        return cls(
            subject=data["subject"],
            object_id=data["object"],
            capability=Capability(data["capability"]),
        )


@dataclass(frozen=True)
class ApiSettings:
    """Flat settings of the HTTP API fronting the route table."""

    name: str = "Api"
    description: str = ""
    stage_name: str = "prod"
    logging_level: MethodLoggingLevel = MethodLoggingLevel.INFO
    deploy: bool = True

    def __post_init__(self) -> None:
        if not self.stage_name:
            raise ValueError("API stage name cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "stage_name": self.stage_name,
            "logging_level": self.logging_level.value,
            "deploy": self.deploy,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ApiSettings:
        return cls(
            name=data.get("name", "Api"),
            description=data.get("description", ""),
            stage_name=data.get("stage_name", "prod"),
            logging_level=MethodLoggingLevel(data.get("logging_level", "INFO")),
            deploy=data.get("deploy", True),
        )
