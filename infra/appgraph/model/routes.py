"""
Route table for the HTTP API.

The route table is a tree of path segments. Each node may bind HTTP
verbs to compute units. The table is static: dispatching requests is the
job of an external router, which consumes the emitted bindings.

Segments are a tagged variant:
- LiteralSegment(text): matches exactly `text`
- ParameterSegment(name): matches any single path token, captured as `name`

Invariants:
    - A (node, verb) pair binds exactly one compute unit; in deferred mode
      the first binding wins and later ones are reported by validation
    - A parameter segment captures exactly one path token
    - At most one parameter segment per level (otherwise matching is ambiguous)
    - Children keep insertion order
    - A frozen table rejects every mutation

Example:
    >>> table = RouteTable()
    >>> orders = table.add_resource(table.root, "orders")
    >>> order = table.add_resource(orders, "{id}")
    >>> table.add_method(order, "GET", "GetOrder")
    >>> table.match("GET", "/orders/42").parameters
    {'id': '42'}
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from ..errors import DuplicateBindingError, GraphFrozenError, UnknownComputeUnitError
from .types import HttpMethod

logger = logging.getLogger(__name__)

_PARAMETER_RE = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")


@dataclass(frozen=True)
class LiteralSegment:
    """Path segment that matches its text exactly."""

    text: str

    def matches(self, token: str) -> bool:
        return token == self.text

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class ParameterSegment:
    """Path segment that captures one token under `name`."""

    name: str

    def matches(self, token: str) -> bool:
        return bool(token)

    def __str__(self) -> str:
        return "{" + self.name + "}"


PathSegment = Union[LiteralSegment, ParameterSegment]


def parse_segment(part: str) -> PathSegment:
    """Parse one path part into a segment.

    Args:
        part: A single path part, e.g. "orders" or "{id}"

    Returns:
        ParameterSegment for brace-delimited parts, LiteralSegment otherwise

    Raises:
        ValueError: If the part is empty, contains '/', or is a malformed parameter
    """
    if not part:
        raise ValueError("Path segment cannot be empty")
    if "/" in part:
        raise ValueError(f"Path segment '{part}' must not contain '/'")
    match = _PARAMETER_RE.match(part)
    if match:
        return ParameterSegment(match.group(1))
    if "{" in part or "}" in part:
        raise ValueError(f"Malformed path parameter '{part}'")
    return LiteralSegment(part)


@dataclass(frozen=True)
class MethodBinding:
    """One verb bound to one compute unit on a route node."""

    verb: HttpMethod
    target: str
    proxy: bool = True


@dataclass(eq=False)
class RouteNode:
    """One node of the path tree.

    Attributes:
        segment: This node's segment (None for the root)
        parent: Parent node (None for the root)
        children: Child nodes in insertion order
        methods: Verb -> binding
    """

    segment: Optional[PathSegment] = None
    parent: Optional[RouteNode] = None
    children: List[RouteNode] = field(default_factory=list)
    methods: Dict[HttpMethod, MethodBinding] = field(default_factory=dict)

    @property
    def path(self) -> str:
        parts = [str(node.segment) for node in self._lineage() if node.segment is not None]
        return "/" + "/".join(parts)

    @property
    def parameters(self) -> Tuple[str, ...]:
        """Names of the parameters captured on the way to this node."""
        return tuple(
            node.segment.name
            for node in self._lineage()
            if isinstance(node.segment, ParameterSegment)
        )

    def get_child(self, segment: PathSegment) -> Optional[RouteNode]:
        for child in self.children:
            if child.segment == segment:
                return child
        return None

    def _lineage(self) -> List[RouteNode]:
        nodes: List[RouteNode] = []
        node: Optional[RouteNode] = self
        while node is not None:
            nodes.append(node)
            node = node.parent
        nodes.reverse()
        return nodes

    def __repr__(self) -> str:
        verbs = ",".join(sorted(v.value for v in self.methods))
        return f"RouteNode(path={self.path!r}, methods=[{verbs}])"


@dataclass(frozen=True)
class RouteBinding:
    """Flattened (path, verb, target) entry of the route table."""

    path: str
    verb: HttpMethod
    target: str
    parameters: Tuple[str, ...] = ()
    proxy: bool = True

    def to_dict(self) -> Dict[str, object]:
        return {
            "path": self.path,
            "method": self.verb.value,
            "target": self.target,
            "parameters": list(self.parameters),
            "proxy": self.proxy,
        }


@dataclass(frozen=True)
class RouteMatch:
    """Result of matching a request path against the table."""

    path: str
    verb: HttpMethod
    target: str
    parameters: Dict[str, str] = field(default_factory=dict, hash=False)


class RouteTable:
    """Builder for the static route tree.

    Args:
        unit_exists: Optional predicate checked on every add_method(); when
            omitted, binding targets are only checked by graph validation.
        strict: Raise on a duplicate (path, verb) binding (True) or record it
            for validation and keep the first binding (False)
    """

    def __init__(
        self,
        unit_exists: Optional[Callable[[str], bool]] = None,
        strict: bool = True,
    ) -> None:
        self.root = RouteNode()
        self._unit_exists = unit_exists
        self._strict = strict
        self._duplicates: List[DuplicateBindingError] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def duplicates(self) -> List[DuplicateBindingError]:
        """Duplicate bindings recorded in deferred mode."""
        return list(self._duplicates)

    def add_resource(self, parent: RouteNode, path_part: str) -> RouteNode:
        """Add (or return the existing) child of `parent` for `path_part`.

        Raises:
            GraphFrozenError: If the table is frozen
            ValueError: If the segment is malformed, or a different parameter
                already exists at this level
        """
        self._check_mutable()
        segment = parse_segment(path_part)
        existing = parent.get_child(segment)
        if existing is not None:
            return existing
        if isinstance(segment, ParameterSegment):
            for child in parent.children:
                if isinstance(child.segment, ParameterSegment):
                    raise ValueError(
                        f"Path {parent.path} already has parameter '{child.segment.name}'; "
                        f"cannot add '{segment.name}' at the same level"
                    )
        node = RouteNode(segment=segment, parent=parent)
        parent.children.append(node)
        logger.debug(f"Added route resource: {node.path}")
        return node

    def resource_for_path(self, path: str) -> RouteNode:
        """Return the node for `path`, creating intermediate nodes as needed."""
        node = self.root
        for part in _split_path(path):
            node = self.add_resource(node, part)
        return node

    def add_method(
        self,
        node: RouteNode,
        verb: Union[str, HttpMethod],
        compute_unit_id: str,
        proxy: bool = True,
    ) -> MethodBinding:
        """Bind `verb` on `node` to a compute unit.

        Raises:
            GraphFrozenError: If the table is frozen
            DuplicateBindingError: If `verb` is already bound on `node` (strict mode)
            UnknownComputeUnitError: If the unit is not declared
        """
        self._check_mutable()
        method = verb if isinstance(verb, HttpMethod) else HttpMethod.from_str(verb)
        existing = node.methods.get(method)
        if existing is not None:
            error = DuplicateBindingError(node.path, method.value, existing.target)
            if self._strict:
                raise error
            logger.warning(f"Deferred duplicate binding: {error.message}")
            self._duplicates.append(error)
            return existing
        if self._unit_exists is not None and not self._unit_exists(compute_unit_id):
            raise UnknownComputeUnitError(compute_unit_id, node.path, method.value)
        binding = MethodBinding(verb=method, target=compute_unit_id, proxy=proxy)
        node.methods[method] = binding
        logger.debug(f"Bound {method.value} {node.path} -> {compute_unit_id}")
        return binding

    def nodes(self) -> Iterator[RouteNode]:
        """Depth-first walk in insertion order, root first."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def bindings(self) -> List[RouteBinding]:
        """All bindings, sorted by (path, verb)."""
        result = [
            RouteBinding(
                path=node.path,
                verb=binding.verb,
                target=binding.target,
                parameters=node.parameters,
                proxy=binding.proxy,
            )
            for node in self.nodes()
            for binding in node.methods.values()
        ]
        result.sort(key=lambda b: (b.path, b.verb.value))
        return result

    def match(self, verb: Union[str, HttpMethod], path: str) -> Optional[RouteMatch]:
        """Match a request against the table.

        Literal children win over a parameter child at the same level.
        An ANY binding serves verbs that have no explicit binding.

        Returns:
            RouteMatch, or None when no node or binding matches
        """
        method = verb if isinstance(verb, HttpMethod) else HttpMethod.from_str(verb)
        node = self.root
        captured: Dict[str, str] = {}
        for token in _split_path(path):
            next_node = None
            for child in node.children:
                if isinstance(child.segment, LiteralSegment) and child.segment.matches(token):
                    next_node = child
                    break
            if next_node is None:
                for child in node.children:
                    if isinstance(child.segment, ParameterSegment) and child.segment.matches(token):
                        captured[child.segment.name] = token
                        next_node = child
                        break
            if next_node is None:
                return None
            node = next_node

        binding = node.methods.get(method) or node.methods.get(HttpMethod.ANY)
        if binding is None:
            return None
        return RouteMatch(path=node.path, verb=method, target=binding.target, parameters=captured)

    def _check_mutable(self) -> None:
        if self._frozen:
            raise GraphFrozenError("Cannot modify route table: graph is validated")


def _split_path(path: str) -> List[str]:
    return [part for part in path.strip("/").split("/") if part]
