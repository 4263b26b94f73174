"""Writer engine: walks a live object graph and emits it through a ``Sink``.

Writing happens in two passes. A trace pre-pass walks everything reachable
from the root and records which composite values are reached more than once.
The render pass then visits values in document order: a shared value gets an
``@id`` the first time it is emitted and is written as ``{"@ref": N}`` on
every later visit, without descending into it again.

Output is buffered, so a member whose value cannot be written is dropped and
replaced by ``null`` while its siblings carry on.
"""

from __future__ import annotations

import collections
import io
import logging
import math
import threading
import types
from typing import Any, Iterable

from graph_io.errors import GraphIOError, GraphTooDeepError, MemberWriteError
from graph_io.extensions import ObjectWriter
from graph_io.options import ShowType, WriteOptions
from graph_io.printer import BufferedSink, JsonPrinter, Sink
from graph_io.reflect.access import ABSENT
from graph_io.references import WriteTracker
from graph_io.types import declared_class, element_hint, mapping_hints, type_name

logger = logging.getLogger(__name__)

# Values that are never written; they become null.
NON_SERIALIZABLE = (
    types.ModuleType,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.GeneratorType,
    types.CoroutineType,
    type,
    io.IOBase,
    threading.Thread,
    type(threading.Lock()),
    type(threading.RLock()),
)

SEQUENCE_TYPES = (list, tuple, set, frozenset, collections.deque)


class WriteContext:
    """Lets an :class:`ObjectWriter` write nested values through the engine."""

    def __init__(self, writer: GraphWriter, sink: Sink, owner: Any, depth: int) -> None:
        self.writer = writer
        self.sink = sink
        self.owner = owner
        self.depth = depth

    @property
    def options(self) -> WriteOptions:
        return self.writer.options

    def write_member(self, name: str, value: Any, declared: Any = None) -> None:
        """Emit ``name`` followed by ``value``, written like any other member."""
        self.sink.name(name)
        self.writer._write_child(value, self.sink, declared, self.depth + 1, type(self.owner).__qualname__, name)

    def write_members(self, value: Any = None) -> None:
        """Emit the discovered members of ``value`` (default: the object being written)."""
        self.writer._write_members(self.owner if value is None else value, self.sink, self.depth)


class GraphWriter:
    """Renders object graphs.

    Attributes:
        errors: Member failures recorded by the last :meth:`write`.
    """

    def __init__(self, options: WriteOptions | None = None) -> None:
        self.options = options or WriteOptions()
        self.members = self.options.members
        self.extensions = self.options.extensions
        self.errors: list[MemberWriteError] = []
        self._aliases = dict(self.options.type_aliases)
        self._tracker = WriteTracker()

    def write(self, obj: Any, sink: Sink, declared: Any = None) -> None:
        """Write ``obj`` to ``sink``.

        ``declared`` is the type the reader will expect at the root, if any;
        it decides whether the root needs a type tag.

        Raises:
            GraphTooDeepError: Nesting exceeds ``max_depth``.
        """
        self.errors = []
        self._tracker = WriteTracker()
        buffer = BufferedSink()
        try:
            self._trace(obj)
            self._write_value(obj, buffer, declared, 0)
        except RecursionError as exc:
            raise GraphTooDeepError(self.options.max_depth) from exc
        buffer.replay(sink)

    def to_text(self, obj: Any, declared: Any = None) -> str:
        """Write ``obj`` and return the JSON text."""
        printer = JsonPrinter(indent=self.options.indent, allow_nan=self.options.allow_nan)
        self.write(obj, printer, declared)
        return printer.getvalue()

    # --- Trace pass --------------------------------------------------------

    def _primitive_writer(self, value: Any) -> ObjectWriter | None:
        writer = self.extensions.find_writer(type(value))
        if writer is not None and writer.has_primitive_form(value):
            return writer
        return None

    def _referenceable(self, value: Any) -> bool:
        if value is None or isinstance(value, NON_SERIALIZABLE):
            return False
        if self._primitive_writer(value) is not None:
            return False
        return not isinstance(value, (str, int, float))

    def _children(self, value: Any) -> Iterable[Any]:
        writer = self.extensions.find_writer(type(value))
        if writer is not None:
            found = writer.children(value)
            if found is not None:
                return found
        if isinstance(value, dict):
            return [*value.keys(), *value.values()]
        if isinstance(value, SEQUENCE_TYPES):
            return list(value)
        children = []
        for descriptor in self.members.instance_members(value):
            if descriptor.readable:
                child = descriptor.retrieve(value)
                if child is not ABSENT:
                    children.append(child)
        return children

    def _trace(self, root: Any) -> None:
        """Record every composite value reachable from ``root``, noting repeats."""
        stack = [root]
        while stack:
            value = stack.pop()
            if not self._referenceable(value):
                continue
            if not self._tracker.see(value):
                continue
            stack.extend(reversed(list(self._children(value))))

    # --- Render pass -------------------------------------------------------

    def _needs_type(self, cls: type, declared: Any, default: type | None = None) -> bool:
        show = self.options.show_type
        if show is ShowType.ALWAYS:
            return True
        if show is ShowType.NEVER:
            return False
        expected = declared_class(declared)
        if expected is None:
            return cls is not default
        return cls is not expected

    def _type_tag(self, sink: Sink, cls: type) -> None:
        sink.name("@type")
        sink.emit_string(self._aliases.get(cls) or type_name(cls))

    def _write_child(self, value: Any, sink: Sink, declared: Any, depth: int, owner: str, member: str) -> None:
        """Write one member or element; on failure write null and record the error."""
        mark = sink.mark()  # type: ignore[attr-defined]
        tracked = self._tracker.mark()
        try:
            self._write_value(value, sink, declared, depth)
        except (GraphTooDeepError, RecursionError):
            raise
        except Exception as exc:
            if self.options.strict:
                raise
            reason = exc.reason if isinstance(exc, GraphIOError) else f"{type(exc).__name__}: {exc}"
            error = MemberWriteError(reason, type_name=owner, member=member)
            error.__cause__ = exc
            sink.rollback(mark)  # type: ignore[attr-defined]
            self._tracker.rollback(tracked)
            sink.emit_null()
            self.errors.append(error)
            logger.warning("Wrote null in place of unwritable value: %s", error)

    def _write_value(self, value: Any, sink: Sink, declared: Any, depth: int) -> None:
        if depth > self.options.max_depth:
            raise GraphTooDeepError(self.options.max_depth)
        if value is None:
            sink.emit_null()
            return
        cls = type(value)
        if cls is bool:
            sink.emit_bool(value)
        elif cls is str:
            sink.emit_string(value)
        elif cls is int:
            sink.emit_number(value)
        elif cls is float:
            self._write_float(value, sink)
        elif isinstance(value, NON_SERIALIZABLE):
            logger.debug("Writing null for non-serializable %s", cls.__qualname__)
            sink.emit_null()
        else:
            self._write_composite(value, cls, sink, declared, depth)

    def _write_float(self, value: float, sink: Sink) -> None:
        if not self.options.allow_nan and not math.isfinite(value):
            sink.emit_null()
        else:
            sink.emit_number(value)

    def _write_composite(self, value: Any, cls: type, sink: Sink, declared: Any, depth: int) -> None:
        writer = self.extensions.find_writer(cls)
        if writer is not None and writer.has_primitive_form(value):
            self._write_primitive(value, cls, sink, declared, writer)
            return
        if writer is None and isinstance(value, (str, int, float)):
            self._write_primitive(value, cls, sink, declared, None)
            return

        identity = self._tracker.identity_of(value)
        if identity is not None:
            sink.begin_object()
            sink.name("@ref")
            sink.emit_number(identity)
            sink.end_object()
            return
        identity = self._tracker.emit(value)

        if writer is not None:
            self._write_custom(value, cls, writer, sink, declared, depth, identity)
        elif isinstance(value, dict):
            self._write_dict(value, cls, sink, declared, depth, identity)
        elif isinstance(value, SEQUENCE_TYPES):
            self._write_sequence(value, cls, sink, declared, depth, identity)
        else:
            self._write_object(value, cls, sink, declared, depth, identity)

    def _write_primitive(self, value: Any, cls: type, sink: Sink, declared: Any, writer: ObjectWriter | None) -> None:
        tagged = self._needs_type(cls, declared)
        if tagged:
            sink.begin_object()
            self._type_tag(sink, cls)
            sink.name("value")
        if writer is not None:
            writer.write_primitive(value, sink)
        elif isinstance(value, str):
            sink.emit_string(str.__str__(value))
        elif isinstance(value, int):
            sink.emit_number(int(value))
        else:
            self._write_float(float(value), sink)
        if tagged:
            sink.end_object()

    def _open(self, sink: Sink, cls: type, tagged: bool, identity: int | None) -> None:
        sink.begin_object()
        if tagged:
            self._type_tag(sink, cls)
        if identity is not None:
            sink.name("@id")
            sink.emit_number(identity)

    def _write_custom(
        self, value: Any, cls: type, writer: ObjectWriter, sink: Sink, declared: Any, depth: int, identity: int | None
    ) -> None:
        self._open(sink, cls, self._needs_type(cls, declared), identity)
        writer.write(value, sink, WriteContext(self, sink, value, depth))
        sink.end_object()

    def _write_object(self, value: Any, cls: type, sink: Sink, declared: Any, depth: int, identity: int | None) -> None:
        self._open(sink, cls, self._needs_type(cls, declared), identity)
        self._write_members(value, sink, depth)
        sink.end_object()

    def _write_members(self, value: Any, sink: Sink, depth: int) -> None:
        owner = type(value).__qualname__
        for descriptor in self.members.instance_members(value):
            if not descriptor.readable:
                continue
            member_value = descriptor.retrieve(value)
            if member_value is ABSENT:
                continue
            sink.name(descriptor.unique_name)
            self._write_child(member_value, sink, descriptor.value_type, depth + 1, owner, descriptor.unique_name)

    def _write_sequence(self, value: Any, cls: type, sink: Sink, declared: Any, depth: int, identity: int | None) -> None:
        tagged = self._needs_type(cls, declared, default=list)
        hint = element_hint(declared)
        owner = cls.__qualname__
        if not tagged and identity is None:
            sink.begin_array()
            self._write_elements(value, sink, hint, depth, owner, "")
            sink.end_array()
            return
        self._open(sink, cls, tagged, identity)
        sink.name("@items")
        sink.begin_array()
        self._write_elements(value, sink, hint, depth, owner, "")
        sink.end_array()
        sink.end_object()

    def _write_elements(self, items: Iterable[Any], sink: Sink, hint: Any, depth: int, owner: str, prefix: str) -> None:
        for index, item in enumerate(list(items)):
            self._write_child(item, sink, hint, depth + 1, owner, f"{prefix}[{index}]")

    def _write_dict(self, value: dict, cls: type, sink: Sink, declared: Any, depth: int, identity: int | None) -> None:
        key_hint, value_hint = mapping_hints(declared)
        owner = cls.__qualname__
        self._open(sink, cls, self._needs_type(cls, declared, default=dict), identity)
        entries = list(value.items())
        if all(type(key) is str and not key.startswith("@") for key, _ in entries):
            for key, item in entries:
                sink.name(key)
                self._write_child(item, sink, value_hint, depth + 1, owner, key)
        else:
            sink.name("@keys")
            sink.begin_array()
            self._write_elements((key for key, _ in entries), sink, key_hint, depth, owner, "@keys")
            sink.end_array()
            sink.name("@items")
            sink.begin_array()
            self._write_elements((item for _, item in entries), sink, value_hint, depth, owner, "@items")
            sink.end_array()
        sink.end_object()
