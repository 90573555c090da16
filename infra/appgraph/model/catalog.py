"""
Kind catalog: what each resource kind supports.

For every ResourceKind the catalog records:
- the capabilities that may be granted on it
- the attributes an environment value may reference
- the property holding an explicit physical name, if any

Invariants:
    - Every ResourceKind has exactly one profile
    - Catalogs are immutable; restrict() returns a new catalog
    - The default catalog allows read and write on every kind

How to change safely:
    - New kinds need a profile here before they can be declared
    - Removing a capability from a profile turns existing grants into
      validation failures, so restrict per application instead
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from .types import Capability, ResourceKind


@dataclass(frozen=True)
class KindProfile:
    """Capabilities and attributes of one resource kind."""

    kind: ResourceKind
    capabilities: FrozenSet[Capability]
    attributes: Tuple[str, ...]
    name_property: Optional[str] = None

    def supports(self, capability: Capability) -> bool:
        return all(c in self.capabilities for c in capability.expand())


class KindCatalog:
    """Lookup of KindProfiles by resource kind.

    Example:
        >>> catalog = DEFAULT_CATALOG.restrict(ResourceKind.OBJECT_STORE, [Capability.WRITE])
        >>> catalog.supports(ResourceKind.OBJECT_STORE, Capability.READ)
        False
    """

    def __init__(self, profiles: Iterable[KindProfile]) -> None:
        self._profiles: Dict[ResourceKind, KindProfile] = {}
        for profile in profiles:
            if profile.kind in self._profiles:
                raise ValueError(f"Duplicate profile for kind '{profile.kind.value}'")
            self._profiles[profile.kind] = profile
        missing = [k.value for k in ResourceKind if k not in self._profiles]
        if missing:
            raise ValueError(f"Kind catalog is missing profiles for: {missing}")

    def profile(self, kind: ResourceKind) -> KindProfile:
        return self._profiles[kind]

    def supports(self, kind: ResourceKind, capability: Capability) -> bool:
        """Whether `capability` may be granted on resources of `kind`."""
        return self._profiles[kind].supports(capability)

    def has_attribute(self, kind: ResourceKind, attribute: str) -> bool:
        return attribute in self._profiles[kind].attributes

    def restrict(self, kind: ResourceKind, capabilities: Iterable[Capability]) -> KindCatalog:
        """Return a copy where `kind` supports only `capabilities`."""
        allowed = frozenset(c for cap in capabilities for c in cap.expand())
        profiles = []
        for profile in self._profiles.values():
            if profile.kind is kind:
                profile = KindProfile(
                    kind=profile.kind,
                    capabilities=allowed,
                    attributes=profile.attributes,
                    name_property=profile.name_property,
                )
            profiles.append(profile)
        return KindCatalog(profiles)


DEFAULT_CATALOG = KindCatalog(
    [
        KindProfile(
            kind=ResourceKind.OBJECT_STORE,
            capabilities=frozenset({Capability.READ, Capability.WRITE}),
            attributes=("name", "arn", "domain_name"),
            name_property="bucket_name",
        ),
        KindProfile(
            kind=ResourceKind.KEYED_TABLE,
            capabilities=frozenset({Capability.READ, Capability.WRITE}),
            attributes=("name", "arn", "stream_arn"),
            name_property="table_name",
        ),
    ]
)
