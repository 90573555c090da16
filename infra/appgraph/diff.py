"""
Declaration diffing for AppGraph.

Compares two emitted declarations and classifies every difference.
Destructive changes are the ones an executor can only apply by losing
data or replacing a live resource:
- Removing a resource whose retention policy is `destroy`
- Changing a resource's kind
- Changing a resource's explicit physical name

Everything else (adding or removing units, grants and routes, retuning
memory, editing environment) is applied in place.

Invariants:
    - Destructive changes fail `appgraph diff` with a non-zero exit
    - Changes are reported in a stable order: resources, compute units,
      grants, routes, api

Example:
    >>> changes = diff_declarations(old, new)
    >>> destructive = [c for c in changes if c.is_destructive]
    >>> if destructive:
    ...     raise DestructiveChangeError(destructive)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple

from .declaration import Declaration
from .errors import AppGraphError

logger = logging.getLogger(__name__)

_NAME_PROPERTIES = ("bucket_name", "table_name")


class ChangeKind(Enum):
    """Kinds of declaration changes."""
    # In-place changes
    RESOURCE_ADDED = auto()
    RETENTION_CHANGED = auto()
    PROPERTY_CHANGED = auto()
    UNIT_ADDED = auto()
    UNIT_REMOVED = auto()
    MEMORY_CHANGED = auto()
    HANDLER_CHANGED = auto()
    ENVIRONMENT_CHANGED = auto()
    GRANT_ADDED = auto()
    GRANT_REMOVED = auto()
    ROUTE_ADDED = auto()
    ROUTE_REMOVED = auto()
    ROUTE_TARGET_CHANGED = auto()
    API_CHANGED = auto()

    # Destructive changes
    RESOURCE_REMOVED = auto()
    RESOURCE_RETAINED_REMOVED = auto()
    RESOURCE_KIND_CHANGED = auto()
    PHYSICAL_NAME_CHANGED = auto()

    @property
    def is_destructive(self) -> bool:
        return self in {
            ChangeKind.RESOURCE_REMOVED,
            ChangeKind.RESOURCE_KIND_CHANGED,
            ChangeKind.PHYSICAL_NAME_CHANGED,
        }


@dataclass
class DeclarationChange:
    """A single difference between two declarations.

    Attributes:
        kind: The type of change
        path: Path to the changed element (e.g. "Resource:Orders")
        old_value: Previous value (if applicable)
        new_value: New value (if applicable)
        message: Human-readable description
    """
    kind: ChangeKind
    path: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    message: str = ""

    @property
    def is_destructive(self) -> bool:
        return self.kind.is_destructive

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.name,
            "path": self.path,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "message": self.message,
            "is_destructive": self.is_destructive,
        }

    def __str__(self) -> str:
        status = "DESTRUCTIVE" if self.is_destructive else "OK"
        return f"[{status}] {self.kind.name}: {self.path} - {self.message}"


class DestructiveChangeError(AppGraphError):
    """Raised when destructive declaration changes are detected."""

    def __init__(self, changes: List[DeclarationChange]) -> None:
        self.changes = changes
        super().__init__(
            f"Declaration diff found {len(changes)} destructive change(s):\n"
            + "\n".join(str(c) for c in changes),
            code="DESTRUCTIVE_CHANGE",
            details={"changes": [c.to_dict() for c in changes]},
        )


def diff_declarations(old: Declaration, new: Declaration) -> List[DeclarationChange]:
    """Compare two declarations.

    Args:
        old: The currently deployed declaration
        new: The declaration about to be deployed

    Returns:
        Every difference, in stable order
    """
    changes: List[DeclarationChange] = []
    changes.extend(_check_resources(_index(old.resources), _index(new.resources)))
    changes.extend(_check_units(_index(old.compute_units), _index(new.compute_units)))
    changes.extend(_check_grants(old.grants, new.grants))
    changes.extend(_check_routes(old.routes, new.routes))
    if old.api != new.api:
        changes.append(DeclarationChange(
            kind=ChangeKind.API_CHANGED,
            path="Api",
            old_value=old.api,
            new_value=new.api,
            message="API settings changed",
        ))
    return changes


def check_destructive(old: Declaration, new: Declaration) -> None:
    """Raise if `new` cannot be applied over `old` without data loss.

    Raises:
        DestructiveChangeError: If destructive changes are detected
    """
    changes = diff_declarations(old, new)
    destructive = [c for c in changes if c.is_destructive]
    if destructive:
        raise DestructiveChangeError(destructive)
    logger.info(f"Declaration diff passed with {len(changes)} non-destructive change(s)")


def _index(entries: Tuple[Dict[str, Any], ...]) -> Dict[str, Dict[str, Any]]:
    return {e["id"]: e for e in entries}


def _check_resources(
    old: Dict[str, Dict[str, Any]],
    new: Dict[str, Dict[str, Any]],
) -> List[DeclarationChange]:
    changes: List[DeclarationChange] = []

    for rid in sorted(old):
        if rid in new:
            continue
        retained = old[rid].get("retention") == "preserve"
        changes.append(DeclarationChange(
            kind=ChangeKind.RESOURCE_RETAINED_REMOVED if retained else ChangeKind.RESOURCE_REMOVED,
            path=f"Resource:{rid}",
            old_value=old[rid].get("kind"),
            message=(
                f"Resource '{rid}' removed from the declaration but retained by the executor"
                if retained
                else f"Resource '{rid}' removed and will be destroyed"
            ),
        ))

    for rid in sorted(new):
        if rid not in old:
            changes.append(DeclarationChange(
                kind=ChangeKind.RESOURCE_ADDED,
                path=f"Resource:{rid}",
                new_value=new[rid].get("kind"),
                message=f"Resource '{rid}' added",
            ))
            continue

        before, after = old[rid], new[rid]
        path = f"Resource:{rid}"
        if before.get("kind") != after.get("kind"):
            changes.append(DeclarationChange(
                kind=ChangeKind.RESOURCE_KIND_CHANGED,
                path=path,
                old_value=before.get("kind"),
                new_value=after.get("kind"),
                message=f"Kind changed from {before.get('kind')} to {after.get('kind')}",
            ))
        if before.get("retention") != after.get("retention"):
            changes.append(DeclarationChange(
                kind=ChangeKind.RETENTION_CHANGED,
                path=path,
                old_value=before.get("retention"),
                new_value=after.get("retention"),
                message=f"Retention changed from {before.get('retention')} to {after.get('retention')}",
            ))

        old_props = before.get("properties") or {}
        new_props = after.get("properties") or {}
        for key in sorted(set(old_props) | set(new_props)):
            if old_props.get(key) == new_props.get(key):
                continue
            kind = (
                ChangeKind.PHYSICAL_NAME_CHANGED
                if key in _NAME_PROPERTIES
                else ChangeKind.PROPERTY_CHANGED
            )
            changes.append(DeclarationChange(
                kind=kind,
                path=f"{path}.{key}",
                old_value=old_props.get(key),
                new_value=new_props.get(key),
                message=f"Property '{key}' changed",
            ))

    return changes


def _check_units(
    old: Dict[str, Dict[str, Any]],
    new: Dict[str, Dict[str, Any]],
) -> List[DeclarationChange]:
    changes: List[DeclarationChange] = []

    for uid in sorted(set(old) - set(new)):
        changes.append(DeclarationChange(
            kind=ChangeKind.UNIT_REMOVED,
            path=f"ComputeUnit:{uid}",
            message=f"Compute unit '{uid}' removed",
        ))

    for uid in sorted(new):
        path = f"ComputeUnit:{uid}"
        if uid not in old:
            changes.append(DeclarationChange(
                kind=ChangeKind.UNIT_ADDED,
                path=path,
                message=f"Compute unit '{uid}' added",
            ))
            continue

        before, after = old[uid], new[uid]
        if before.get("memory_budget") != after.get("memory_budget"):
            changes.append(DeclarationChange(
                kind=ChangeKind.MEMORY_CHANGED,
                path=path,
                old_value=before.get("memory_budget"),
                new_value=after.get("memory_budget"),
                message=(
                    f"Memory budget changed from {before.get('memory_budget')} "
                    f"to {after.get('memory_budget')}"
                ),
            ))
        if before.get("handler") != after.get("handler"):
            changes.append(DeclarationChange(
                kind=ChangeKind.HANDLER_CHANGED,
                path=path,
                old_value=before.get("handler"),
                new_value=after.get("handler"),
                message="Handler reference changed",
            ))
        old_env = before.get("environment") or {}
        new_env = after.get("environment") or {}
        for key in sorted(set(old_env) | set(new_env)):
            if old_env.get(key) != new_env.get(key):
                changes.append(DeclarationChange(
                    kind=ChangeKind.ENVIRONMENT_CHANGED,
                    path=f"{path}.environment.{key}",
                    old_value=old_env.get(key),
                    new_value=new_env.get(key),
                    message=f"Environment '{key}' changed",
                ))

    return changes


def _check_grants(old: Tuple[Dict[str, Any], ...], new: Tuple[Dict[str, Any], ...]) -> List[DeclarationChange]:
    def key(g: Dict[str, Any]) -> Tuple[str, str, str]:
        return (g["subject"], g["object"], g["capability"])

    old_keys = {key(g) for g in old}
    new_keys = {key(g) for g in new}
    changes: List[DeclarationChange] = []
    for subject, obj, cap in sorted(old_keys - new_keys):
        changes.append(DeclarationChange(
            kind=ChangeKind.GRANT_REMOVED,
            path=f"Grant:{subject}->{obj}",
            old_value=cap,
            message=f"'{subject}' loses {cap} on '{obj}'",
        ))
    for subject, obj, cap in sorted(new_keys - old_keys):
        changes.append(DeclarationChange(
            kind=ChangeKind.GRANT_ADDED,
            path=f"Grant:{subject}->{obj}",
            new_value=cap,
            message=f"'{subject}' gains {cap} on '{obj}'",
        ))
    return changes


def _check_routes(old: Tuple[Dict[str, Any], ...], new: Tuple[Dict[str, Any], ...]) -> List[DeclarationChange]:
    old_routes = {(r["path"], r["method"]): r for r in old}
    new_routes = {(r["path"], r["method"]): r for r in new}
    changes: List[DeclarationChange] = []

    for path, method in sorted(set(old_routes) - set(new_routes)):
        changes.append(DeclarationChange(
            kind=ChangeKind.ROUTE_REMOVED,
            path=f"Route:{method} {path}",
            old_value=old_routes[(path, method)]["target"],
            message=f"{method} {path} removed",
        ))
    for route_key in sorted(new_routes):
        path, method = route_key
        if route_key not in old_routes:
            changes.append(DeclarationChange(
                kind=ChangeKind.ROUTE_ADDED,
                path=f"Route:{method} {path}",
                new_value=new_routes[route_key]["target"],
                message=f"{method} {path} added",
            ))
        elif old_routes[route_key]["target"] != new_routes[route_key]["target"]:
            changes.append(DeclarationChange(
                kind=ChangeKind.ROUTE_TARGET_CHANGED,
                path=f"Route:{method} {path}",
                old_value=old_routes[route_key]["target"],
                new_value=new_routes[route_key]["target"],
                message=(
                    f"{method} {path} retargeted from '{old_routes[route_key]['target']}' "
                    f"to '{new_routes[route_key]['target']}'"
                ),
            ))
    return changes
