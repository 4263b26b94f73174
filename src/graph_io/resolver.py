"""Resolver engine: wire text to typed objects in two phases.

Phase 1 (:class:`graph_io.parsing.GraphParser`) builds the intermediate graph
and registers every ``@id`` node in an arena. Phase 2 (this module) walks the
graph depth-first. Each object is allocated and attached to its node before
its members are resolved, so a member referring back to an ancestor links
directly. A reference to a node that has no object yet (an immutable
container still collecting its elements, a factory still running, or a node
further down the document) is injected later through a pending patch.

Failure policy: an error inside one subtree is recorded in
:attr:`Resolver.errors` and the subtree becomes ``None`` in its parent.
Unresolved references and runaway nesting abort the whole read.
"""

from __future__ import annotations

import collections
import collections.abc
import inspect
import logging
from typing import Any, Callable

from graph_io.convert import Converter
from graph_io.errors import (
    DanglingReferenceError,
    GraphIOError,
    GraphTooDeepError,
    InvalidTargetError,
    UnsupportedConversionError,
)
from graph_io.extensions import ObjectFactory
from graph_io.graph import Graph, GraphNode, NodeKind
from graph_io.options import ReadOptions
from graph_io.parsing import shared_parser
from graph_io.reflect.members import MemberDescriptor
from graph_io.references import ReadTracker
from graph_io.types import TypeResolver, declared_class, element_hint, mapping_hints, type_name

logger = logging.getLogger(__name__)

# Builtins that cannot take members after allocation.
_NO_MEMBERS = (int, float, complex, str, bytes, bytearray, tuple, frozenset, list, set, collections.deque)


class ForwardReference:
    """Stands in for the object with ``identity`` until it exists."""

    __slots__ = ("identity",)

    def __init__(self, identity: int) -> None:
        self.identity = identity

    def __repr__(self) -> str:
        return f"ForwardReference({self.identity})"


class _Failed:
    def __repr__(self) -> str:
        return "FAILED"


# Returned by _child() for a subtree whose failure was recorded.
FAILED = _Failed()


def _is_abstract(cls: type) -> bool:
    return inspect.isabstract(cls) or bool(getattr(cls, "_is_protocol", False))


class Resolver:
    """Materializes graphs into objects.

    Attributes:
        errors: Subtree failures recorded by the last read.
        converter: Coercion used for scalars and primitive forms; factories use it too.
    """

    def __init__(self, options: ReadOptions | None = None) -> None:
        self.options = options or ReadOptions()
        self.converter = Converter(self.options.converter)
        self.types = TypeResolver(self.options.type_aliases, allow_import=self.options.allow_import)
        self.members = self.options.members
        self.extensions = self.options.extensions
        self.errors: list[GraphIOError] = []
        self._tracker = ReadTracker({})

    def read(self, text: str, root_type: Any = None) -> Any:
        """Parse ``text`` and materialize it."""
        graph = shared_parser(self.options.max_depth).parse(text)
        return self.materialize(graph, root_type)

    def materialize(self, graph: Graph, root_type: Any = None) -> Any:
        """Turn a parsed graph into objects.

        ``root_type`` plays the part of a declared type for the root value.

        Raises:
            DanglingReferenceError: A reference names an identity with no node.
            GraphTooDeepError: Nesting exceeds ``max_depth``.
            GraphIOError: The root itself cannot be built.
        """
        self.errors = []
        self._tracker = ReadTracker(graph.nodes)
        try:
            result = self.resolve(graph.root, root_type, 0)
        except RecursionError as exc:
            raise GraphTooDeepError(self.options.max_depth) from exc
        if isinstance(result, ForwardReference):
            raise DanglingReferenceError([result.identity])
        self._tracker.check_complete()
        return result

    # --- Callbacks for factories -----------------------------------------

    def resolve(self, raw: Any, hint: Any = None, depth: int = 0) -> Any:
        """Return the object for a graph child (node or scalar).

        Returns a :class:`ForwardReference` when ``raw`` refers to an object
        that does not exist yet; pass it to :meth:`defer`.
        """
        if self.options.return_as_maps:
            hint = None
        if not isinstance(raw, GraphNode):
            return self._coerce(raw, hint)
        if raw.kind is NodeKind.REFERENCE:
            return self._follow(raw, hint, depth)
        return self._materialize(raw, hint, depth)

    def defer(self, pending: ForwardReference, inject: Callable[[Any], None], where: str = "") -> None:
        """Run ``inject`` with the referenced object once it is attached."""
        self._tracker.defer(pending.identity, inject, where)

    def _require_target(self, pending: ForwardReference) -> None:
        """Raise if ``pending`` names an identity the document never defines."""
        if self._tracker.lookup(pending.identity) is None:
            raise DanglingReferenceError([pending.identity])

    # --- Nodes -------------------------------------------------------------

    def _follow(self, ref: GraphNode, hint: Any, depth: int) -> Any:
        node = self._tracker.lookup(ref.ref)  # type: ignore[arg-type]
        if node is None:
            return ForwardReference(ref.ref)  # type: ignore[arg-type]
        if node.attached:
            return node.target
        if not node.started:
            # Defined further down the document: build it now.
            return self._materialize(node, hint, depth)
        return ForwardReference(ref.ref)  # type: ignore[arg-type]

    def _materialize(self, node: GraphNode, hint: Any, depth: int) -> Any:
        if node.attached:
            return node.target
        if depth > self.options.max_depth:
            raise GraphTooDeepError(self.options.max_depth, identity=node.identity)
        node.started = True
        try:
            result = self._build(node, hint, depth)
        except GraphIOError:
            # Anything waiting on this node gets the null the parent will see.
            if node.identity is not None and not node.attached:
                self._tracker.attach(node, None)
            raise
        node.finished = True
        return result

    def _build(self, node: GraphNode, hint: Any, depth: int) -> Any:
        if self.options.return_as_maps:
            return self._build_plain(node, depth)
        cls = self._node_class(node, hint)
        factory = self.extensions.find_factory(cls)
        if factory is not None:
            return self._from_factory(factory, cls, node, depth)
        if node.kind is NodeKind.PRIMITIVE:
            if self.converter.can_convert(node.value, cls):
                obj = self.converter.convert(node.value, cls)
                self._tracker.attach(node, obj)
                return obj
            # A class whose only member happens to be called "value".
            node.members = {"value": node.value}
        if node.kind is NodeKind.ARRAY:
            return self._build_sequence(node, cls, hint, depth)
        if node.kind is NodeKind.ENTRIES:
            return self._build_entries(node, cls, hint, depth)
        return self._build_members(node, cls, hint, depth)

    def _map_class(self) -> type:
        return collections.OrderedDict if self.options.ordered_maps else dict

    def _node_class(self, node: GraphNode, hint: Any) -> type:
        if node.type_name is not None:
            return self.types.resolve(node.type_name)
        declared = declared_class(hint)
        usable = declared is not None and declared is not object and not _is_abstract(declared)
        if node.kind is NodeKind.ARRAY:
            if not usable:
                return list
            if not issubclass(declared, (list, tuple, set, frozenset, collections.deque)):  # type: ignore[arg-type]
                raise UnsupportedConversionError([], declared)
            return declared  # type: ignore[return-value]
        if usable:
            return declared  # type: ignore[return-value]
        return self._map_class()

    def _from_factory(self, factory: ObjectFactory, cls: type, node: GraphNode, depth: int) -> Any:
        try:
            obj = factory.instantiate(cls, node, self)
        except (GraphIOError, RecursionError):
            raise
        except Exception as exc:
            raise GraphIOError(
                f"Factory failed: {type(exc).__name__}: {exc}", type_name=type_name(cls), identity=node.identity
            ) from exc
        self._tracker.attach(node, obj)
        if not factory.is_final and node.kind is NodeKind.MEMBERS:
            self._inject_members(node, obj, type(obj), depth)
        return obj

    def _allocate(self, cls: type, node: GraphNode) -> Any:
        """Create an instance without running ``__init__``."""
        try:
            return cls.__new__(cls)
        except RecursionError:
            raise
        except Exception as exc:
            raise InvalidTargetError(
                f"Cannot allocate instance: {exc}", type_name=type_name(cls), identity=node.identity
            ) from exc

    def _new_container(self, cls: type, node: GraphNode) -> Any:
        try:
            return cls()
        except RecursionError:
            raise
        except Exception as exc:
            raise InvalidTargetError(
                f"Cannot create empty container: {exc}", type_name=type_name(cls), identity=node.identity
            ) from exc

    # --- Children ----------------------------------------------------------

    def _child(self, raw: Any, hint: Any, depth: int, owner: str, member: str) -> Any:
        """Resolve a child; a recorded failure yields ``FAILED``."""
        try:
            return self.resolve(raw, hint, depth)
        except (DanglingReferenceError, GraphTooDeepError):
            raise
        except GraphIOError as exc:
            self._fail(exc, owner, member)
            return FAILED

    def _fail(self, exc: GraphIOError, owner: str, member: str) -> None:
        if self.options.strict:
            raise exc
        self.errors.append(exc)
        logger.warning("Set %s.%s to None: %s", owner, member, exc)

    def _coerce(self, raw: Any, hint: Any) -> Any:
        cls = declared_class(hint)
        if cls is None or raw is None or type(raw) is cls:
            return raw
        return self.converter.convert(raw, cls)

    # --- Sequences ---------------------------------------------------------

    def _build_sequence(self, node: GraphNode, cls: type, hint: Any, depth: int) -> Any:
        owner = type_name(cls)
        items = node.items or []
        item_hint = element_hint(hint)

        if issubclass(cls, (list, collections.deque)):
            seq = [] if cls is list else self._new_container(cls, node)
            self._tracker.attach(node, seq)
            for index, raw in enumerate(items):
                seq.append(None)
                value = self._child(raw, item_hint, depth + 1, owner, f"[{index}]")
                if isinstance(value, ForwardReference):
                    self.defer(value, _setter(seq, index), f"{owner}[{index}]")
                elif value is not FAILED:
                    seq[index] = value
            return seq

        if issubclass(cls, set):
            found = self._new_container(cls, node)
            self._tracker.attach(node, found)
            for index, raw in enumerate(items):
                value = self._child(raw, item_hint, depth + 1, owner, f"[{index}]")
                if isinstance(value, ForwardReference):
                    self.defer(value, lambda target, s=found, o=owner: self._add(s, target, o), f"{owner}[{index}]")
                elif value is not FAILED:
                    self._add(found, value, owner)
            return found

        if issubclass(cls, (tuple, frozenset)):
            values = []
            for index, raw in enumerate(items):
                value = self._child(raw, item_hint, depth + 1, owner, f"[{index}]")
                if isinstance(value, ForwardReference):
                    self._require_target(value)
                    raise InvalidTargetError(
                        "Cannot patch a forward reference into an immutable container",
                        type_name=owner,
                        member=f"[{index}]",
                        identity=value.identity,
                    )
                values.append(None if value is FAILED else value)
            obj = self._immutable(cls, values, node)
            self._tracker.attach(node, obj)
            return obj

        raise UnsupportedConversionError(items, cls)

    def _immutable(self, cls: type, values: list[Any], node: GraphNode) -> Any:
        try:
            if cls is tuple or cls is frozenset:
                return cls(values)
            if hasattr(cls, "_make"):
                return cls._make(values)  # type: ignore[attr-defined]
            return cls(values)
        except RecursionError:
            raise
        except Exception as exc:
            raise InvalidTargetError(
                f"Cannot build container: {exc}", type_name=type_name(cls), identity=node.identity
            ) from exc

    def _add(self, found: set, value: Any, owner: str) -> None:
        try:
            found.add(value)
        except TypeError as exc:
            self._fail(InvalidTargetError(f"Unhashable set element: {exc}", type_name=owner), owner, "[]")

    # --- Mappings ----------------------------------------------------------

    def _build_entries(self, node: GraphNode, cls: type, hint: Any, depth: int) -> Any:
        if not issubclass(cls, dict):
            raise UnsupportedConversionError({}, cls)
        owner = type_name(cls)
        mapping = self._new_container(cls, node)
        self._tracker.attach(node, mapping)
        key_hint, value_hint = mapping_hints(hint)
        for index, (raw_key, raw_value) in enumerate(zip(node.keys or [], node.items or [])):
            member = f"@keys[{index}]"
            key = self._child(raw_key, key_hint, depth + 1, owner, member)
            if key is FAILED:
                continue
            if isinstance(key, ForwardReference):
                self._require_target(key)
                self._fail(
                    InvalidTargetError("A forward reference cannot be a mapping key", type_name=owner, member=member, identity=key.identity),
                    owner,
                    member,
                )
                continue
            if self.options.return_as_maps and isinstance(key, list):
                key = tuple(key)
            try:
                mapping[key] = None
            except TypeError as exc:
                self._fail(InvalidTargetError(f"Unhashable mapping key: {exc}", type_name=owner, member=member), owner, member)
                continue
            self._fill(mapping, key, raw_value, value_hint, depth, owner, f"@items[{index}]")
        return mapping

    def _fill(self, mapping: Any, key: Any, raw: Any, hint: Any, depth: int, owner: str, member: str) -> None:
        value = self._child(raw, hint, depth + 1, owner, member)
        if isinstance(value, ForwardReference):
            self.defer(value, _setter(mapping, key), f"{owner}.{member}")
        elif value is not FAILED:
            mapping[key] = value

    def _build_members(self, node: GraphNode, cls: type, hint: Any, depth: int) -> Any:
        if issubclass(cls, dict):
            owner = type_name(cls)
            mapping = self._new_container(cls, node)
            self._tracker.attach(node, mapping)
            if self.options.return_as_maps and node.type_name is not None:
                mapping["@type"] = node.type_name
            _, value_hint = mapping_hints(hint)
            for name, raw in (node.members or {}).items():
                mapping[name] = None
                self._fill(mapping, name, raw, value_hint, depth, owner, name)
            return mapping
        if issubclass(cls, _NO_MEMBERS):
            raise UnsupportedConversionError(node.members, cls, identity=node.identity)
        obj = self._allocate(cls, node)
        self._tracker.attach(node, obj)
        self._inject_members(node, obj, cls, depth)
        return obj

    def _build_plain(self, node: GraphNode, depth: int) -> Any:
        """Map mode: objects become dicts that keep their ``@type``."""
        if node.kind is NodeKind.PRIMITIVE:
            obj = self._map_class()({"@type": node.type_name, "value": node.value})
            self._tracker.attach(node, obj)
            return obj
        if node.kind is NodeKind.ARRAY:
            return self._build_sequence(node, list, None, depth)
        if node.kind is NodeKind.ENTRIES:
            return self._build_entries(node, self._map_class(), None, depth)
        return self._build_members(node, self._map_class(), None, depth)

    # --- Members -----------------------------------------------------------

    def _inject_members(self, node: GraphNode, obj: Any, cls: type, depth: int) -> None:
        descriptors = self.members.members(cls)
        owner = type_name(cls)
        for name, raw in (node.members or {}).items():
            descriptor = descriptors.get(name)
            if descriptor is None:
                if not _has_dict(obj):
                    self._missing(obj, name, raw)
                    continue
                descriptor = self.members.dynamic_member(cls, name)
                if descriptor is None:
                    continue
            if not descriptor.writable:
                continue
            value = self._child(raw, descriptor.value_type, depth + 1, owner, name)
            if isinstance(value, ForwardReference):
                self.defer(value, self._injector(obj, descriptor, owner), f"{owner}.{name}")
                continue
            self._store(obj, descriptor, None if value is FAILED else value, owner)

    def _missing(self, obj: Any, name: str, raw: Any) -> None:
        handler = self.options.missing_member_handler
        value = raw.to_plain() if isinstance(raw, GraphNode) else raw
        if handler is not None:
            handler(obj, name, value)
        else:
            logger.warning("No member '%s' on %s; value dropped", name, type(obj).__qualname__)

    def _store(self, obj: Any, descriptor: MemberDescriptor, value: Any, owner: str) -> None:
        try:
            descriptor.set(obj, value)
        except GraphIOError as exc:
            self._fail(exc, owner, descriptor.unique_name)

    def _injector(self, obj: Any, descriptor: MemberDescriptor, owner: str) -> Callable[[Any], None]:
        def inject(target: Any) -> None:
            self._store(obj, descriptor, target, owner)

        return inject


def _has_dict(obj: Any) -> bool:
    try:
        object.__getattribute__(obj, "__dict__")
    except AttributeError:
        return False
    return True


def _setter(container: Any, key: Any) -> Callable[[Any], None]:
    def inject(target: Any) -> None:
        container[key] = target

    return inject
