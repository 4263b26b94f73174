"""Push-style output: the ``Sink`` interface, a rollback buffer and the JSON printer."""

from __future__ import annotations

import json
import math
from typing import Any


class Sink:
    """Receives the writer's emit calls in document order.

    Inside an object every value is preceded by :meth:`name`.
    """

    def begin_object(self) -> None:
        raise NotImplementedError

    def name(self, key: str) -> None:
        raise NotImplementedError

    def end_object(self) -> None:
        raise NotImplementedError

    def begin_array(self) -> None:
        raise NotImplementedError

    def end_array(self) -> None:
        raise NotImplementedError

    def emit_string(self, value: str) -> None:
        raise NotImplementedError

    def emit_number(self, value: int | float) -> None:
        raise NotImplementedError

    def emit_bool(self, value: bool) -> None:
        raise NotImplementedError

    def emit_null(self) -> None:
        raise NotImplementedError

    def emit_scalar(self, value: Any) -> None:
        """Emit a JSON scalar, dispatching on its type."""
        if value is None:
            self.emit_null()
        elif isinstance(value, bool):
            self.emit_bool(value)
        elif isinstance(value, (int, float)):
            self.emit_number(value)
        elif isinstance(value, str):
            self.emit_string(value)
        else:
            raise TypeError(f"Not a JSON scalar: {type(value).__name__}")


class BufferedSink(Sink):
    """Records emit calls so a failed branch can be dropped before printing.

    ``mark()`` returns a position; ``rollback(mark)`` forgets everything
    emitted after it; ``replay(sink)`` forwards the recorded calls.
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, tuple[Any, ...]]] = []

    def begin_object(self) -> None:
        self.events.append(("begin_object", ()))

    def name(self, key: str) -> None:
        self.events.append(("name", (key,)))

    def end_object(self) -> None:
        self.events.append(("end_object", ()))

    def begin_array(self) -> None:
        self.events.append(("begin_array", ()))

    def end_array(self) -> None:
        self.events.append(("end_array", ()))

    def emit_string(self, value: str) -> None:
        self.events.append(("emit_string", (value,)))

    def emit_number(self, value: int | float) -> None:
        self.events.append(("emit_number", (value,)))

    def emit_bool(self, value: bool) -> None:
        self.events.append(("emit_bool", (value,)))

    def emit_null(self) -> None:
        self.events.append(("emit_null", ()))

    def mark(self) -> int:
        return len(self.events)

    def rollback(self, mark: int) -> None:
        del self.events[mark:]

    def replay(self, sink: Sink) -> None:
        for method, args in self.events:
            getattr(sink, method)(*args)


class JsonPrinter(Sink):
    """Renders emit calls as JSON text.

    Compact by default (no whitespace); ``indent`` gives one member or
    element per line. Non-finite floats print as ``NaN``/``Infinity``
    literals when ``allow_nan`` is set and raise ``ValueError`` otherwise.
    """

    def __init__(self, indent: int | None = None, allow_nan: bool = True) -> None:
        self.indent = indent
        self.allow_nan = allow_nan
        self._parts: list[str] = []
        # One [is_object, count] frame per open container.
        self._stack: list[list[Any]] = []
        self._after_name = False

    def getvalue(self) -> str:
        return "".join(self._parts)

    def _newline(self) -> str:
        if self.indent is None:
            return ""
        return "\n" + " " * (self.indent * len(self._stack))

    def _separate(self) -> None:
        frame = self._stack[-1]
        if frame[1]:
            self._parts.append(",")
        frame[1] += 1
        self._parts.append(self._newline())

    def _before_value(self) -> None:
        if self._after_name:
            self._after_name = False
            return
        if not self._stack:
            return
        if self._stack[-1][0]:
            raise ValueError("Object member emitted without a name")
        self._separate()

    def _close(self, closer: str) -> None:
        frame = self._stack.pop()
        if frame[1]:
            self._parts.append(self._newline())
        self._parts.append(closer)

    def begin_object(self) -> None:
        self._before_value()
        self._parts.append("{")
        self._stack.append([True, 0])

    def name(self, key: str) -> None:
        self._separate()
        self._parts.append(json.dumps(key, ensure_ascii=False))
        self._parts.append(": " if self.indent is not None else ":")
        self._after_name = True

    def end_object(self) -> None:
        self._close("}")

    def begin_array(self) -> None:
        self._before_value()
        self._parts.append("[")
        self._stack.append([False, 0])

    def end_array(self) -> None:
        self._close("]")

    def emit_string(self, value: str) -> None:
        self._before_value()
        self._parts.append(json.dumps(value, ensure_ascii=False))

    def emit_number(self, value: int | float) -> None:
        self._before_value()
        self._parts.append(self._number(value))

    def emit_bool(self, value: bool) -> None:
        self._before_value()
        self._parts.append("true" if value else "false")

    def emit_null(self) -> None:
        self._before_value()
        self._parts.append("null")

    def _number(self, value: int | float) -> str:
        if isinstance(value, int):
            return int.__repr__(value)
        if math.isfinite(value):
            return float.__repr__(value)
        if not self.allow_nan:
            raise ValueError(f"Out of range float value {value!r}")
        if math.isnan(value):
            return "NaN"
        return "Infinity" if value > 0 else "-Infinity"


def render(node_or_value: Any, indent: int | None = None, allow_nan: bool = True) -> str:
    """Print plain JSON-compatible data (dicts, lists, scalars) through a :class:`JsonPrinter`."""
    printer = JsonPrinter(indent=indent, allow_nan=allow_nan)
    _push(node_or_value, printer)
    return printer.getvalue()


def _push(value: Any, sink: Sink) -> None:
    if isinstance(value, dict):
        sink.begin_object()
        for key, child in value.items():
            sink.name(key)
            _push(child, sink)
        sink.end_object()
    elif isinstance(value, list):
        sink.begin_array()
        for child in value:
            _push(child, sink)
        sink.end_array()
    else:
        sink.emit_scalar(value)
