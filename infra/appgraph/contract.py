"""
Handler contract shared by every compute unit.

Handlers run inside the executor's runtime, never inside this package.
This module fixes the shape of what they receive and return, and how
route parameters captured by the route table reach them by name.

Invariants:
    - A request carries the method, the matched path parameters and the body
    - A response carries a status code and a body
    - Handlers signal failure by raising HandlerError
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .model.routes import RouteMatch


@dataclass(frozen=True)
class HandlerRequest:
    """Structured request delivered to a handler."""

    method: str
    path: str
    path_parameters: Dict[str, str] = field(default_factory=dict, hash=False)
    body: Any = None


@dataclass(frozen=True)
class HandlerResponse:
    """Structured response returned by a handler."""

    status_code: int
    body: Any = None

    def __post_init__(self) -> None:
        if not 100 <= self.status_code <= 599:
            raise ValueError(f"Invalid HTTP status code {self.status_code}")


class HandlerError(Exception):
    """A handler failed to produce a response."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code


def build_request(match: RouteMatch, body: Optional[Any] = None) -> HandlerRequest:
    """Build the request a handler receives for a matched route."""
    return HandlerRequest(
        method=match.verb.value,
        path=match.path,
        path_parameters=dict(match.parameters),
        body=body,
    )
