"""
Provider-agnostic declaration emitted from a validated graph.

The declaration is the contract handed to an external deployment
executor. It enumerates resources, compute units (with their resolved
environment), grants, routes and API settings.

Invariants:
    - Same declaration calls produce byte-identical JSON
    - Every list is sorted by identifier (routes by path, then verb)
    - The fingerprint is SHA-256 over the canonical JSON of the content
    - Environment references stay symbolic unless the resource carries an
      explicit physical name

How to change safely:
    - Bump DECLARATION_VERSION when the document shape changes
    - Add keys, never rename them; executors parse this document
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import yaml

from .model.catalog import KindCatalog
from .model.registry import ResourceRegistry
from .model.types import ComputeUnit, ResourceRef

DECLARATION_VERSION = 1


def resolve_environment(
    unit: ComputeUnit,
    resources: ResourceRegistry,
    catalog: KindCatalog,
) -> Dict[str, Any]:
    """Resolve a unit's environment for emission.

    Literal values pass through. A reference to a resource's `name` whose
    resource declares an explicit physical name resolves to that name;
    every other reference is emitted as a {"ref", "attribute"} token for
    the executor to fill in.
    """
    resolved: Dict[str, Any] = {}
    for key in sorted(unit.environment):
        value = unit.environment[key]
        if not isinstance(value, ResourceRef):
            resolved[key] = value
            continue
        resource = resources.get(value.resource_id)
        name_property = catalog.profile(resource.kind).name_property if resource else None
        if (
            value.attribute == "name"
            and name_property
            and resource.properties.get(name_property)
        ):
            resolved[key] = resource.properties[name_property]
        else:
            resolved[key] = value.to_dict()
    return resolved


@dataclass(frozen=True)
class Declaration:
    """The emitted application declaration.

    Attributes:
        name: Application name
        api: API settings
        resources: Resource entries sorted by id
        compute_units: Compute unit entries sorted by id
        grants: Grant entries sorted by (subject, object, capability)
        routes: Route entries sorted by (path, method)
    """

    name: str
    api: Dict[str, Any]
    resources: Tuple[Dict[str, Any], ...]
    compute_units: Tuple[Dict[str, Any], ...]
    grants: Tuple[Dict[str, Any], ...]
    routes: Tuple[Dict[str, Any], ...]

    def content(self) -> Dict[str, Any]:
        return {
            "version": DECLARATION_VERSION,
            "name": self.name,
            "api": self.api,
            "resources": list(self.resources),
            "compute_units": list(self.compute_units),
            "grants": list(self.grants),
            "routes": list(self.routes),
        }

    @property
    def fingerprint(self) -> str:
        canonical = json.dumps(self.content(), sort_keys=True, separators=(",", ":"))
        return f"sha256:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"

    def to_dict(self) -> Dict[str, Any]:
        result = self.content()
        result["fingerprint"] = self.fingerprint
        return result

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=True, default_flow_style=False)

    def render(self, output_format: str = "json", indent: Optional[int] = 2) -> str:
        if output_format == "yaml":
            return self.to_yaml()
        if output_format == "json":
            return self.to_json(indent=indent)
        raise ValueError(f"Unknown output format '{output_format}'. Valid formats: json, yaml")

    def resource(self, identifier: str) -> Optional[Dict[str, Any]]:
        return _find(self.resources, "id", identifier)

    def compute_unit(self, identifier: str) -> Optional[Dict[str, Any]]:
        return _find(self.compute_units, "id", identifier)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Declaration:
        """Rebuild a declaration from its emitted form.

        Raises:
            ValueError: If the version is unsupported
        """
        version = data.get("version", DECLARATION_VERSION)
        if version != DECLARATION_VERSION:
            raise ValueError(f"Unsupported declaration version {version}")
        return cls(
            name=data.get("name", ""),
            api=dict(data.get("api") or {}),
            resources=tuple(data.get("resources") or ()),
            compute_units=tuple(data.get("compute_units") or ()),
            grants=tuple(data.get("grants") or ()),
            routes=tuple(data.get("routes") or ()),
        )

    @classmethod
    def load(cls, path: Union[str, Path]) -> Declaration:
        """Read an emitted declaration; .yaml and .yml are YAML, anything else JSON.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the file is not a valid declaration
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        if path.suffix in (".yaml", ".yml"):
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        else:
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(
                f"Declaration {path} must be a mapping, got {type(data).__name__}"
            )
        return cls.from_dict(data)


def _find(entries: Iterable[Dict[str, Any]], key: str, value: str) -> Optional[Dict[str, Any]]:
    for entry in entries:
        if entry.get(key) == value:
            return entry
    return None
