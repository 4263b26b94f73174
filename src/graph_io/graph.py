"""Intermediate graph model built by the parser and consumed by the resolver."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Iterator


class NodeKind(enum.Enum):
    PRIMITIVE = "primitive"  # {"@type": T, "value": v}
    ARRAY = "array"  # [...] or {"@items": [...]}
    MEMBERS = "members"  # {"name": value, ...}
    ENTRIES = "entries"  # {"@keys": [...], "@items": [...]}
    REFERENCE = "reference"  # {"@ref": N}


@dataclass(eq=False)
class GraphNode:
    """One composite value of a parsed document.

    Children in ``items``, ``keys`` and ``members`` are either nested nodes or
    plain JSON scalars (``str``, ``int``, ``float``, ``bool``, ``None``).
    """

    kind: NodeKind
    type_name: str | None = None
    identity: int | None = None
    value: Any = None
    items: list[Any] | None = None
    keys: list[Any] | None = None
    members: dict[str, Any] | None = None
    ref: int | None = None
    line: int | None = None

    # Phase 2 state.
    target: Any = field(default=None, repr=False)
    attached: bool = field(default=False, repr=False)
    started: bool = field(default=False, repr=False)
    finished: bool = field(default=False, repr=False)

    @property
    def is_reference(self) -> bool:
        return self.kind is NodeKind.REFERENCE

    def attach(self, target: Any) -> None:
        """Record the materialized object for this node."""
        self.target = target
        self.attached = True

    def children(self) -> Iterator[Any]:
        """Yield every direct child, keys before values."""
        if self.keys:
            yield from self.keys
        if self.items:
            yield from self.items
        if self.members:
            yield from self.members.values()

    def to_plain(self) -> Any:
        """Return the node as plain JSON-compatible data, meta keys included."""
        if self.kind is NodeKind.REFERENCE:
            return {"@ref": self.ref}
        out: dict[str, Any] = {}
        if self.type_name is not None:
            out["@type"] = self.type_name
        if self.identity is not None:
            out["@id"] = self.identity
        if self.kind is NodeKind.PRIMITIVE:
            out["value"] = self.value
        elif self.kind is NodeKind.ARRAY:
            items = [_plain(child) for child in self.items or ()]
            if not out:
                return items
            out["@items"] = items
        elif self.kind is NodeKind.ENTRIES:
            out["@keys"] = [_plain(child) for child in self.keys or ()]
            out["@items"] = [_plain(child) for child in self.items or ()]
        else:
            for name, child in (self.members or {}).items():
                out[name] = _plain(child)
        return out


def _plain(child: Any) -> Any:
    if isinstance(child, GraphNode):
        return child.to_plain()
    return child


@dataclass
class Graph:
    """A parsed document: the root value plus its ``@id`` arena."""

    root: Any
    nodes: dict[int, GraphNode] = field(default_factory=dict)

    def walk(self) -> Iterator[GraphNode]:
        """Yield every node depth-first in document order."""
        if not isinstance(self.root, GraphNode):
            return
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed([c for c in node.children() if isinstance(c, GraphNode)]))

    def references(self) -> list[int]:
        """Return the identities named by reference markers, in document order."""
        return [node.ref for node in self.walk() if node.kind is NodeKind.REFERENCE]  # type: ignore[misc]
