"""
YAML/JSON manifest format for application graphs.

A manifest describes a whole application in one document. Loading it is
two-phase: every resource and compute unit is declared first, then
grants and routes are resolved against them. The graph is built in
deferred mode, so reference and duplicate problems surface together when
the graph is validated.

Example manifest:
    name: Shop
    api:
      name: ShopApi
      stage_name: prod
    resources:
      - id: Orders
        kind: keyed-table
        retention: destroy
        properties:
          table_name: orders
          partition_key: id
    compute_units:
      - id: GetOrder
        memory: 1024
        handler:
          entry: src/handlers/get-order.ts
        environment:
          TABLE_NAME: {ref: Orders, attribute: name}
    grants:
      - {subject: GetOrder, object: Orders, capability: read}
    routes:
      - {path: "/orders/{id}", method: GET, target: GetOrder}

Invariants:
    - Structural problems (missing keys, bad kinds) raise ManifestError
      naming the offending entry
    - Referential problems are left to ApplicationGraph.validate()
    - Entry order inside each section does not matter
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import InvalidMemoryBudgetError, ManifestError
from .graph import ApplicationGraph
from .model.catalog import DEFAULT_CATALOG, KindCatalog
from .model.types import ApiSettings, EnvValue, HandlerRef, ResourceRef

logger = logging.getLogger(__name__)

SECTIONS = ("resources", "compute_units", "grants", "routes")


def parse_yaml(yaml_str: str) -> Dict[str, Any]:
    """Parse a manifest from a YAML string."""
    try:
        data = yaml.safe_load(yaml_str)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML: {e}") from e
    return _as_mapping(data)


def parse_json(json_str: str) -> Dict[str, Any]:
    """Parse a manifest from a JSON string."""
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON: {e}") from e
    return _as_mapping(data)


def read_manifest(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a manifest file; .json is parsed as JSON, anything else as YAML."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return parse_json(text)
    return parse_yaml(text)


def load_manifest(
    path: Union[str, Path],
    catalog: KindCatalog = DEFAULT_CATALOG,
) -> ApplicationGraph:
    """Read a manifest file and assemble its graph (not yet validated)."""
    graph = build_graph(read_manifest(path), catalog=catalog)
    logger.info(f"Loaded manifest {path} as graph '{graph.name}'")
    return graph


def build_graph(
    data: Dict[str, Any],
    catalog: KindCatalog = DEFAULT_CATALOG,
) -> ApplicationGraph:
    """Assemble an ApplicationGraph from a parsed manifest.

    Args:
        data: Parsed manifest
        catalog: Kind catalog for the graph

    Returns:
        A graph in deferred mode; call validate() or emit() on it

    Raises:
        ManifestError: If an entry is structurally invalid
        InvalidMemoryBudgetError: If a compute unit's memory is not positive
    """
    for section in SECTIONS:
        if not isinstance(data.get(section) or [], list):
            raise ManifestError(f"'{section}' must be a list", location=section)

    graph = ApplicationGraph(
        name=data.get("name", "App"),
        api=_parse_api(data.get("api") or {}),
        catalog=catalog,
        strict=False,
    )

    # Phase 1: identifier-indexed declarations
    for i, entry in enumerate(data.get("resources") or []):
        location = f"resources[{i}]"
        entry = _entry(entry, location, ("id", "kind"))
        try:
            graph.declare_resource(
                entry["id"],
                entry["kind"],
                entry.get("retention", "destroy"),
                entry.get("properties") or {},
            )
        except ValueError as e:
            raise ManifestError(str(e), location=location) from e

    for i, entry in enumerate(data.get("compute_units") or []):
        location = f"compute_units[{i}]"
        entry = _entry(entry, location, ("id", "handler", "memory"))
        try:
            graph.declare_compute_unit(
                entry["id"],
                _parse_handler(entry["handler"], location),
                entry["memory"],
                _parse_environment(entry.get("environment") or {}, location),
            )
        except InvalidMemoryBudgetError:
            raise
        except (ValueError, TypeError) as e:
            raise ManifestError(str(e), location=location) from e

    # Phase 2: references
    for i, entry in enumerate(data.get("grants") or []):
        location = f"grants[{i}]"
        entry = _entry(entry, location, ("subject", "object", "capability"))
        try:
            graph.grant(entry["subject"], entry["object"], entry["capability"])
        except ValueError as e:
            raise ManifestError(str(e), location=location) from e

    for i, entry in enumerate(data.get("routes") or []):
        location = f"routes[{i}]"
        entry = _entry(entry, location, ("path", "method", "target"))
        try:
            node = graph.add_route(entry["path"])
            graph.add_method(node, entry["method"], entry["target"], proxy=entry.get("proxy", True))
        except ValueError as e:
            raise ManifestError(str(e), location=location) from e

    return graph


def _as_mapping(data: Any) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest must be a mapping, got {type(data).__name__}")
    return data


def _entry(entry: Any, location: str, required: tuple) -> Dict[str, Any]:
    if not isinstance(entry, dict):
        raise ManifestError(f"entry must be a mapping, got {type(entry).__name__}", location)
    missing = [key for key in required if key not in entry]
    if missing:
        raise ManifestError(f"missing required key(s): {', '.join(missing)}", location)
    return entry


def _parse_api(data: Dict[str, Any]) -> ApiSettings:
    try:
        return ApiSettings.from_dict(data)
    except ValueError as e:
        raise ManifestError(str(e), location="api") from e


def _parse_handler(data: Any, location: str) -> HandlerRef:
    if isinstance(data, str):
        return HandlerRef(entry=data)
    if not isinstance(data, dict) or "entry" not in data:
        raise ManifestError("handler must be a string or a mapping with 'entry'", location)
    return HandlerRef.from_dict(data)


def _parse_environment(data: Any, location: str) -> Dict[str, EnvValue]:
    if not isinstance(data, dict):
        raise ManifestError("environment must be a mapping", location)
    environment: Dict[str, EnvValue] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            if "ref" not in value:
                raise ManifestError(f"environment '{key}' reference needs 'ref'", location)
            environment[key] = ResourceRef.from_dict(value)
        elif isinstance(value, (str, int, float, bool)):
            environment[key] = _literal(value)
        else:
            raise ManifestError(f"environment '{key}' has unsupported value {value!r}", location)
    return environment


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def dump_manifest(graph: ApplicationGraph, output_format: Optional[str] = "yaml") -> str:
    """Render a graph back into manifest form."""
    data: Dict[str, Any] = {
        "name": graph.name,
        "api": graph.api.to_dict(),
        "resources": [graph.resources.get(i).to_dict() for i in graph.resources.identifiers()],
        "compute_units": [],
        "grants": [g.to_dict() for g in graph.grants.grants()],
        "routes": [
            {
                "path": b.path,
                "method": b.verb.value,
                "target": b.target,
                "proxy": b.proxy,
            }
            for b in graph.routes.bindings()
        ],
    }
    units: List[Dict[str, Any]] = data["compute_units"]
    for identifier in graph.compute_units.identifiers():
        unit = graph.compute_units.get(identifier)
        units.append(
            {
                "id": unit.identifier,
                "memory": unit.memory_budget,
                "handler": unit.handler.to_dict(),
                "environment": {
                    k: (v.to_dict() if isinstance(v, ResourceRef) else v)
                    for k, v in sorted(unit.environment.items())
                },
            }
        )
    if output_format == "json":
        return json.dumps(data, indent=2, sort_keys=True)
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
