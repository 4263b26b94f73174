"""Reference tracking for writing and reading.

Both trackers live for a single top-level call and are then discarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from graph_io.errors import DanglingReferenceError
from graph_io.graph import GraphNode

logger = logging.getLogger(__name__)


class WriteTracker:
    """Identity bookkeeping for one write.

    The trace pre-pass calls :meth:`see` for every composite value reachable
    from the root; values seen more than once are *shared*. While rendering,
    the first emission of a shared value gets the next identity and later
    visits refer back to it. Identity is ``id()``, never equality.
    """

    def __init__(self) -> None:
        # Values are kept alive so their id() cannot be reused mid-call.
        self._seen: dict[int, Any] = {}
        self._shared: set[int] = set()
        self._emitted: dict[int, int] = {}
        self._order: list[int] = []

    def see(self, obj: Any) -> bool:
        """Record a visit during tracing; return True on the first visit."""
        key = id(obj)
        if key in self._seen:
            self._shared.add(key)
            return False
        self._seen[key] = obj
        return True

    def is_shared(self, obj: Any) -> bool:
        return id(obj) in self._shared

    def identity_of(self, obj: Any) -> int | None:
        """Return the identity already emitted for ``obj``, if any."""
        return self._emitted.get(id(obj))

    def emit(self, obj: Any) -> int | None:
        """Mark ``obj`` as rendered; return its new identity if it is shared."""
        key = id(obj)
        if key not in self._shared:
            return None
        self._seen.setdefault(key, obj)
        identity = len(self._order) + 1
        self._emitted[key] = identity
        self._order.append(key)
        return identity

    def mark(self) -> int:
        return len(self._order)

    def rollback(self, mark: int) -> None:
        """Forget identities emitted after ``mark`` (their output was discarded)."""
        for key in self._order[mark:]:
            del self._emitted[key]
        del self._order[mark:]

    @property
    def shared_count(self) -> int:
        return len(self._shared)


@dataclass
class PendingPatch:
    """An injection waiting for the object with ``identity`` to exist."""

    identity: int
    inject: Callable[[Any], None]
    where: str = ""


class ReadTracker:
    """The ``identity -> node`` arena of one read plus its pending patches."""

    def __init__(self, nodes: Mapping[int, GraphNode]) -> None:
        self.nodes = dict(nodes)
        self._pending: dict[int, list[PendingPatch]] = {}

    def lookup(self, identity: int) -> GraphNode | None:
        return self.nodes.get(identity)

    def defer(self, identity: int, inject: Callable[[Any], None], where: str = "") -> PendingPatch:
        """Queue ``inject`` to run once ``identity`` has an object."""
        patch = PendingPatch(identity, inject, where)
        self._pending.setdefault(identity, []).append(patch)
        return patch

    def attach(self, node: GraphNode, target: Any) -> None:
        """Attach ``target`` to ``node`` and run every patch waiting on it."""
        node.attach(target)
        if node.identity is None:
            return
        for patch in self._pending.pop(node.identity, ()):
            logger.debug("Patching %s with @id %d", patch.where or "value", patch.identity)
            patch.inject(target)

    @property
    def pending(self) -> list[int]:
        return sorted(self._pending)

    def check_complete(self) -> None:
        """Raise if any reference never found its target.

        Raises:
            DanglingReferenceError: Naming every unresolved identity.
        """
        if self._pending:
            raise DanglingReferenceError(self._pending)
