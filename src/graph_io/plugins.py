"""Standard writers and factories for types the generic engine cannot rebuild.

Enums come back as the exact member of their class, never a new instance.
Temporal types, decimals, fractions, UUIDs, complex numbers, byte strings and
paths have a primitive form: a single scalar, tagged only where the declared
type does not already say what it is.
"""

from __future__ import annotations

import base64
import datetime as dt
import decimal
import enum
import fractions
import pathlib
import uuid
from typing import TYPE_CHECKING, Any, Callable

from graph_io.errors import UnsupportedConversionError
from graph_io.extensions import ExtensionRegistry, ObjectFactory, ObjectWriter
from graph_io.graph import GraphNode, NodeKind
from graph_io.reflect.filters import ENUM_INTERNAL_NAMES

if TYPE_CHECKING:
    from graph_io.printer import Sink
    from graph_io.resolver import Resolver
    from graph_io.writer import WriteContext


def _is_internal(name: str) -> bool:
    if name in ENUM_INTERNAL_NAMES:
        return True
    return name.startswith("_") and name.endswith("_")


def enum_attributes(member: enum.Enum) -> list[str]:
    """Return the attribute names an enum's ``__init__`` added to ``member``."""
    return [name for name in vars(member) if not _is_internal(name)]


class EnumWriter(ObjectWriter):
    """Writes a plain enum member as its name, and one with attributes as an object."""

    def has_primitive_form(self, value: Any) -> bool:
        return not enum_attributes(value)

    def write_primitive(self, value: Any, sink: Sink) -> None:
        # Composite flags have no member name of their own.
        if isinstance(value, enum.Flag) and value.name not in type(value).__members__:
            sink.emit_number(value.value)
        else:
            sink.emit_string(value.name)

    def write(self, value: Any, sink: Sink, context: WriteContext) -> None:
        context.write_members(value)


class EnumFactory(ObjectFactory):
    """Looks an enum member up by name; member attributes are never injected."""

    is_final = True

    def instantiate(self, cls: type, node: GraphNode, resolver: Resolver) -> Any:
        if node.kind is NodeKind.PRIMITIVE:
            key = node.value
        elif node.kind is NodeKind.MEMBERS and node.members is not None:
            key = node.members.get("name")
        else:
            raise UnsupportedConversionError(node.kind.value, cls)
        return resolver.converter.convert(key, cls)


class ScalarWriter(ObjectWriter):
    """Writes a value as the scalar returned by ``to_wire``."""

    def __init__(self, to_wire: Callable[[Any], Any]) -> None:
        self.to_wire = to_wire

    def has_primitive_form(self, value: Any) -> bool:
        return True

    def write_primitive(self, value: Any, sink: Sink) -> None:
        sink.emit_scalar(self.to_wire(value))

    def write(self, value: Any, sink: Sink, context: WriteContext) -> None:
        sink.name("value")
        self.write_primitive(value, sink)


class ScalarFactory(ObjectFactory):
    """Rebuilds a value from its primitive form through the resolver's converter."""

    is_final = True

    def instantiate(self, cls: type, node: GraphNode, resolver: Resolver) -> Any:
        if node.kind is NodeKind.PRIMITIVE:
            return resolver.converter.convert(node.value, cls)
        if node.kind is NodeKind.MEMBERS and node.members and "value" in node.members:
            return resolver.converter.convert(node.members["value"], cls)
        raise UnsupportedConversionError(node.kind.value, cls)


def _b64(value: bytes | bytearray) -> str:
    return base64.b64encode(value).decode("ascii")


SCALAR_TYPES: dict[type, Callable[[Any], Any]] = {
    dt.datetime: dt.datetime.isoformat,
    dt.date: dt.date.isoformat,
    dt.time: dt.time.isoformat,
    dt.timedelta: str,
    decimal.Decimal: str,
    fractions.Fraction: str,
    complex: str,
    uuid.UUID: str,
    bytes: _b64,
    bytearray: _b64,
    pathlib.PurePath: str,
}


def register_defaults(registry: ExtensionRegistry) -> ExtensionRegistry:
    """Register the standard plugins on ``registry`` and return it."""
    registry.add_writer(enum.Enum, EnumWriter())
    registry.add_factory(enum.Enum, EnumFactory())
    factory = ScalarFactory()
    for cls, to_wire in SCALAR_TYPES.items():
        registry.add_writer(cls, ScalarWriter(to_wire))
        registry.add_factory(cls, factory)
    return registry
