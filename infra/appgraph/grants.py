"""
Permission grant engine.

Grants are pure data: a (subject, object, capability) triple saying a
compute unit may read or write a resource. Enforcement belongs to the
deployment executor; this module only records what was declared.

Invariants:
    - Every capability is stated explicitly; nothing is inferred, there is
      no default allow and no propagation through shared compute units
    - read-write expands to read + write, added atomically
    - The grant set is keyed by (subject, object, capability); re-granting
      an existing triple is a no-op
    - A failed grant() adds nothing

How to change safely:
    - New capabilities must expand to atomic ones in Capability.expand()
    - Keep grants() sorted; it feeds the declaration fingerprint
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from .errors import GraphFrozenError, UnknownObjectError, UnknownSubjectError
from .model.types import Capability, Grant

logger = logging.getLogger(__name__)


class GrantEngine:
    """Collects grants as an idempotent set.

    Args:
        subject_exists: Predicate for declared compute units
        object_exists: Predicate for declared resources

    When the predicates are omitted (deferred assembly), unknown subjects
    and objects are reported by graph validation instead.

    Example:
        >>> engine = GrantEngine()
        >>> engine.grant("CreateOrder", "Orders", "read-write")
        [Grant(subject='CreateOrder', object_id='Orders', capability=<Capability.READ: 'read'>), ...]
        >>> len(engine)
        2
    """

    def __init__(
        self,
        subject_exists: Optional[Callable[[str], bool]] = None,
        object_exists: Optional[Callable[[str], bool]] = None,
    ) -> None:
        self._grants: Dict[Tuple[str, str, str], Grant] = {}
        self._subject_exists = subject_exists
        self._object_exists = object_exists
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def grant(
        self,
        compute_unit_id: str,
        resource_id: str,
        capability: Union[str, Capability],
    ) -> List[Grant]:
        """Grant `capability` on a resource to a compute unit.

        Args:
            compute_unit_id: Subject
            resource_id: Object
            capability: read, write or read-write

        Returns:
            The grants newly added (empty if all already existed)

        Raises:
            GraphFrozenError: If the engine is frozen
            UnknownSubjectError: If the compute unit is not declared
            UnknownObjectError: If the resource is not declared
            ValueError: If capability is not recognised
        """
        if self._frozen:
            raise GraphFrozenError(
                f"Cannot grant on '{resource_id}' to '{compute_unit_id}': graph is validated"
            )
        cap = capability if isinstance(capability, Capability) else Capability(capability)
        if self._subject_exists is not None and not self._subject_exists(compute_unit_id):
            raise UnknownSubjectError(compute_unit_id, resource_id)
        if self._object_exists is not None and not self._object_exists(resource_id):
            raise UnknownObjectError(resource_id, compute_unit_id)

        added = []
        for atomic in cap.expand():
            grant = Grant(subject=compute_unit_id, object_id=resource_id, capability=atomic)
            if grant.key in self._grants:
                continue
            self._grants[grant.key] = grant
            added.append(grant)
            logger.debug(f"Granted {atomic.value} on {resource_id} to {compute_unit_id}")
        return added

    def grants(self) -> List[Grant]:
        """All grants, sorted by (subject, object, capability)."""
        return [self._grants[key] for key in sorted(self._grants)]

    def for_subject(self, compute_unit_id: str) -> List[Grant]:
        return [g for g in self.grants() if g.subject == compute_unit_id]

    def __iter__(self) -> Iterator[Grant]:
        yield from self.grants()

    def __len__(self) -> int:
        return len(self._grants)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, Grant) and item.key in self._grants
