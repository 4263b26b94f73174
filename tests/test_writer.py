"""Tests for the graph writer."""

from __future__ import annotations

import datetime as dt
import decimal
import enum
from dataclasses import dataclass
from typing import Optional

import pytest

from graph_io import GraphWriter, ShowType, WriteOptions, to_json
from graph_io.errors import GraphTooDeepError, MemberWriteError
from graph_io.extensions import ObjectWriter, default_registry
from graph_io.printer import BufferedSink


@dataclass
class Point:
    x: int
    y: int


@dataclass
class Animal:
    name: str


@dataclass
class Dog(Animal):
    breed: str = ""


@dataclass
class Owner:
    pet: Optional[Animal] = None


class Node:
    def __init__(self, name, next=None):
        self.name = name
        self.next = next


class Base:
    __slots__ = ("v", "w")


class Derived(Base):
    __slots__ = ("v",)


class Color(enum.Enum):
    RED = 1
    GREEN = 2


class Planet(enum.Enum):
    EARTH = (5.976e24, 6.37814e6)

    def __init__(self, mass, radius):
        self.mass = mass
        self.radius = radius


@dataclass
class Paint:
    color: Color


@dataclass
class Event:
    when: dt.datetime


class Box:
    def __init__(self, content):
        self._content = content


class BoxWriter(ObjectWriter):
    def write(self, value, sink, context):
        context.write_member("content", value._content)


class Exploding:
    pass


class BoomWriter(ObjectWriter):
    def write(self, value, sink, context):
        raise RuntimeError("boom")


class Half:
    def __init__(self, shared):
        self.shared = shared


class HalfWriter(ObjectWriter):
    """Writes one member and then fails."""

    def write(self, value, sink, context):
        context.write_member("shared", value.shared)
        raise RuntimeError("half written")


def _registry(**writers):
    registry = default_registry().copy()
    for cls, writer in writers.values():
        registry.add_writer(cls, writer)
    return registry


# ---- Objects and type tags ----


class TestObjects:
    def test_root_object_is_tagged(self):
        assert to_json(Point(1, 2)) == '{"@type":"test_writer.Point","x":1,"y":2}'

    def test_declared_root_untagged(self):
        """A root matching the declared type needs no tag."""
        assert to_json(Point(1, 2), declared=Point) == '{"x":1,"y":2}'

    def test_member_of_declared_type_untagged(self):
        assert to_json(Owner(Animal("rex")), declared=Owner) == '{"pet":{"name":"rex"}}'

    def test_subclass_member_tagged(self):
        """A value whose class differs from the declared member type is tagged."""
        text = to_json(Owner(Dog("rex", "lab")), declared=Owner)
        assert text == '{"pet":{"@type":"test_writer.Dog","name":"rex","breed":"lab"}}'

    def test_show_type_never(self):
        options = WriteOptions(show_type=ShowType.NEVER)
        assert to_json([Point(1, 2), (3,)], options) == '[{"x":1,"y":2},[3]]'

    def test_show_type_always(self):
        options = WriteOptions(show_type=ShowType.ALWAYS)
        assert to_json([1, "a"], options) == '{"@type":"list","@items":[1,"a"]}'

    def test_type_alias(self):
        options = WriteOptions(type_aliases={Point: "Pt"})
        assert to_json(Point(0, 0), options) == '{"@type":"Pt","x":0,"y":0}'

    def test_dynamic_members(self):
        node = Node("a")
        assert to_json(node) == '{"@type":"test_writer.Node","name":"a","next":null}'

    def test_shadowed_slots(self):
        """Both copies of a re-declared slot are written, parent first."""
        obj = Derived()
        Base.v.__set__(obj, "parent")
        obj.v = "child"
        obj.w = 2
        assert to_json(obj) == '{"@type":"test_writer.Derived","Base.v":"parent","w":2,"v":"child"}'

    def test_unset_slot_omitted(self):
        obj = Derived()
        obj.w = 1
        assert to_json(obj) == '{"@type":"test_writer.Derived","w":1}'

    def test_excluded_member(self):
        options = WriteOptions().with_members(excluded_members={Point: {"y"}})
        assert to_json(Point(1, 2), options) == '{"@type":"test_writer.Point","x":1}'


# ---- Containers ----


class TestContainers:
    def test_list_is_bare_array(self):
        assert to_json([1, [2, 3], []]) == "[1,[2,3],[]]"

    def test_tuple_and_set_tagged(self):
        assert to_json([(1, 2), {3}]) == '[{"@type":"tuple","@items":[1,2]},{"@type":"set","@items":[3]}]'

    def test_string_keyed_dict(self):
        assert to_json({"a": 1, "b": None}) == '{"a":1,"b":null}'

    def test_non_string_keys(self):
        assert to_json({1: "a", 2: "b"}) == '{"@keys":[1,2],"@items":["a","b"]}'

    def test_meta_looking_keys(self):
        """String keys starting with @ use the keys/items form."""
        assert to_json({"@id": 1}) == '{"@keys":["@id"],"@items":[1]}'

    def test_declared_element_type(self):
        assert to_json([Point(1, 2)], declared=list[Point]) == '[{"x":1,"y":2}]'


# ---- Scalars ----


class TestScalars:
    def test_json_scalars(self):
        assert to_json([True, None, 1.5, "s"]) == '[true,null,1.5,"s"]'

    def test_non_finite(self):
        assert to_json([float("inf")]) == "[Infinity]"
        assert to_json([float("nan")], WriteOptions(allow_nan=False)) == "[null]"

    def test_enum_primitive(self):
        assert to_json(Color.RED) == '{"@type":"test_writer.Color","value":"RED"}'
        assert to_json(Paint(Color.GREEN), declared=Paint) == '{"color":"GREEN"}'

    def test_enum_with_attributes(self):
        """Enum members carrying attributes are written as objects."""
        assert to_json(Planet.EARTH) == (
            '{"@type":"test_writer.Planet","name":"EARTH","mass":5.976e+24,"radius":6378140.0}'
        )

    def test_datetime_member(self):
        event = Event(dt.datetime(2024, 1, 2, 3, 4, 5))
        assert to_json(event, declared=Event) == '{"when":"2024-01-02T03:04:05"}'

    def test_timedelta_text_form(self):
        text = to_json([dt.timedelta(days=1, microseconds=5)])
        assert text == '[{"@type":"datetime.timedelta","value":"1 day, 0:00:00.000005"}]'

    def test_decimal_in_untyped_list(self):
        assert to_json([decimal.Decimal("1.5")]) == '[{"@type":"decimal.Decimal","value":"1.5"}]'

    def test_non_serializable_becomes_null(self):
        assert to_json({"f": len, "m": dt}) == '{"f":null,"m":null}'

    def test_indent(self):
        assert to_json({"a": [1]}, WriteOptions(indent=2)) == '{\n  "a": [\n    1\n  ]\n}'


# ---- References ----


class TestReferences:
    def test_shared_value(self):
        """The same object under two keys is defined once and referenced once."""
        x = {"v": 1}
        assert to_json({"a": x, "b": x}) == '{"a":{"@id":1,"v":1},"b":{"@ref":1}}'

    def test_self_cycle(self):
        node = Node("a")
        node.next = node
        assert to_json(node) == '{"@type":"test_writer.Node","@id":1,"name":"a","next":{"@ref":1}}'

    def test_shared_list(self):
        shared = [1, 2]
        assert to_json([shared, shared]) == '[{"@id":1,"@items":[1,2]},{"@ref":1}]'

    def test_equal_values_not_merged(self):
        assert to_json([[1], [1]]) == "[[1],[1]]"

    def test_identities_in_document_order(self):
        a, b = {"n": "a"}, {"n": "b"}
        text = to_json([b, a, a, b])
        assert text == '[{"@id":1,"n":"b"},{"@id":2,"n":"a"},{"@ref":2},{"@ref":1}]'

    def test_tuple_inside_list_cycle(self):
        items = []
        items.append((items,))
        assert to_json(items) == '{"@id":1,"@items":[{"@type":"tuple","@items":[{"@ref":1}]}]}'


# ---- Extensions and failures ----


class TestCustomWriters:
    def test_custom_writer(self):
        options = WriteOptions(extensions=_registry(box=(Box, BoxWriter())))
        assert to_json(Box([1]), options) == '{"@type":"test_writer.Box","content":[1]}'

    def test_failing_member_becomes_null(self):
        """A member that cannot be written is nulled and its siblings still appear."""
        writer = GraphWriter(WriteOptions(extensions=_registry(boom=(Exploding, BoomWriter()))))
        text = writer.to_text({"ok": 1, "bad": Exploding(), "after": 2})
        assert text == '{"ok":1,"bad":null,"after":2}'
        assert len(writer.errors) == 1
        error = writer.errors[0]
        assert isinstance(error, MemberWriteError)
        assert error.member == "bad"
        assert isinstance(error.__cause__, RuntimeError)

    def test_strict_raises(self):
        options = WriteOptions(strict=True, extensions=_registry(boom=(Exploding, BoomWriter())))
        with pytest.raises(RuntimeError, match="boom"):
            to_json([Exploding()], options)

    def test_rollback_releases_identity(self):
        """An identity emitted inside a dropped member is issued again later."""
        shared = {"v": 1}
        options = WriteOptions(extensions=_registry(half=(Half, HalfWriter())))
        text = to_json({"first": Half(shared), "second": shared}, options)
        assert text == '{"first":null,"second":{"@id":1,"v":1}}'

    def test_write_to_sink(self):
        sink = BufferedSink()
        GraphWriter().write([1], sink)
        assert sink.events == [("begin_array", ()), ("emit_number", (1,)), ("end_array", ())]


class TestDepth:
    def _nested(self, levels):
        value = []
        for _ in range(levels):
            value = [value]
        return value

    def test_max_depth(self):
        options = WriteOptions(max_depth=10)
        to_json(self._nested(10), options)
        with pytest.raises(GraphTooDeepError):
            to_json(self._nested(11), options)

    def test_default_depth_guard(self):
        with pytest.raises(GraphTooDeepError):
            to_json(self._nested(5000))
