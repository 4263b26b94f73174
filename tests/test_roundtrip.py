"""End-to-end tests: write an object graph, read it back, compare."""

from __future__ import annotations

import collections
import datetime as dt
import decimal
import enum
import fractions
import pathlib
import uuid
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

import pytest

from graph_io import DanglingReferenceError, ReadOptions, WriteOptions, deep_copy, from_json, to_json


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
class Zoo:
    animals: list[Animal] = field(default_factory=list)
    keeper: Optional[Animal] = None


class Node:
    def __init__(self, name, next=None):
        self.name = name
        self.next = next


class Tree:
    def __init__(self, label):
        self.label = label
        self.parent = None
        self.children = []

    def add(self, child):
        child.parent = self
        self.children.append(child)
        return child


class Base:
    __slots__ = ("v", "w")


class Derived(Base):
    __slots__ = ("v",)


class Color(enum.Enum):
    RED = 1
    GREEN = 2


class Level(enum.IntEnum):
    LOW = 1
    HIGH = 2


class Perm(enum.Flag):
    R = 4
    W = 2
    X = 1


class Planet(enum.Enum):
    MERCURY = (3.303e23, 2.4397e6)
    EARTH = (5.976e24, 6.37814e6)

    def __init__(self, mass, radius):
        self.mass = mass
        self.radius = radius


@dataclass
class Settings:
    color: Color = Color.RED
    level: Level = Level.LOW
    perms: Perm = Perm.R
    home: Planet = Planet.EARTH


class Pair(NamedTuple):
    left: int
    right: int


class Account:
    def __init__(self, owner):
        self._owner = owner

    def get_owner(self):
        return self._owner

    def set_owner(self, value):
        self._owner = value.upper()


@dataclass
class Span:
    length: dt.timedelta


@dataclass
class Record:
    when: dt.datetime
    day: dt.date
    at: dt.time
    span: dt.timedelta
    price: decimal.Decimal
    ratio: fractions.Fraction
    wave: complex
    key: uuid.UUID
    blob: bytes
    path: pathlib.PurePosixPath


def roundtrip(obj, write_options=None, read_options=None):
    return from_json(to_json(obj, write_options), options=read_options)


# ---- Values ----


class TestValues:
    def test_dataclass(self):
        assert roundtrip(Point(1, 2)) == Point(1, 2)

    def test_nested_with_subclass(self):
        """Runtime classes survive when they differ from the declared type."""
        zoo = Zoo([Animal("cat"), Dog("rex", "lab")], keeper=Dog("bo"))
        copy = roundtrip(zoo)
        assert copy == zoo
        assert type(copy.animals[1]) is Dog
        assert type(copy.keeper) is Dog

    def test_containers(self):
        value = {
            "list": [1, "a", None, True],
            "tuple": (1, 2),
            "set": {3, 4},
            "frozen": frozenset({5}),
            "deque": collections.deque([6]),
            "ordered": collections.OrderedDict(b=1, a=2),
            "pair": Pair(7, 8),
            "keys": {(1, 2): "tuple key", 3: "int key"},
        }
        copy = roundtrip(value)
        assert copy == value
        for name, item in value.items():
            assert type(copy[name]) is type(item)

    def test_scalars_in_typed_members(self):
        record = Record(
            when=dt.datetime(2024, 1, 2, 3, 4, 5, tzinfo=dt.timezone.utc),
            day=dt.date(2024, 2, 29),
            at=dt.time(12, 30),
            span=dt.timedelta(days=1, seconds=5),
            price=decimal.Decimal("19.99"),
            ratio=fractions.Fraction(1, 3),
            wave=complex(1, -2),
            key=uuid.UUID("12345678-1234-5678-1234-567812345678"),
            blob=b"\x00\xff",
            path=pathlib.PurePosixPath("a/b.txt"),
        )
        assert roundtrip(record) == record

    def test_long_timedelta_exact(self):
        """Durations keep their microseconds however many days they span."""
        span = Span(dt.timedelta(days=10**6, microseconds=1))
        assert roundtrip(span) == span
        assert roundtrip([span.length]) == [span.length]

    def test_scalars_untyped(self):
        """Scalars without a declared type carry a tag and come back as themselves."""
        values = [
            dt.datetime(2024, 1, 2, 3, 4, 5),
            dt.date(2024, 1, 2),
            dt.timedelta(minutes=90),
            decimal.Decimal("0.1"),
            fractions.Fraction(3, 4),
            complex(0, 1),
            uuid.UUID(int=1),
            b"hi",
            bytearray(b"yo"),
        ]
        copy = roundtrip(values)
        assert copy == values
        assert [type(v) for v in copy] == [type(v) for v in values]

    def test_non_finite_floats(self):
        copy = roundtrip([float("inf"), float("-inf")])
        assert copy == [float("inf"), float("-inf")]

    def test_accessor_pair_used(self):
        """A get_x/set_x pair is used in both directions."""
        account = roundtrip(Account("ann"))
        assert account.get_owner() == "ANN"

    def test_shadowed_members(self):
        obj = Derived()
        Base.v.__set__(obj, "parent")
        obj.v = "child"
        obj.w = 3
        copy = roundtrip(obj)
        assert Base.v.__get__(copy, Derived) == "parent"
        assert copy.v == "child"
        assert copy.w == 3


# ---- Enums ----


class TestEnums:
    @pytest.mark.parametrize("member", [Color.GREEN, Level.HIGH, Perm.W, Planet.MERCURY])
    def test_root_identity(self, member):
        """An enum comes back as the very same member."""
        assert roundtrip(member) is member

    def test_flag_combination(self):
        assert roundtrip(Perm.R | Perm.X) == Perm.R | Perm.X

    def test_members_of_dataclass(self):
        settings = Settings(Color.GREEN, Level.HIGH, Perm.R | Perm.W, Planet.MERCURY)
        copy = roundtrip(settings)
        assert copy.color is Color.GREEN
        assert copy.level is Level.HIGH
        assert copy.perms == Perm.R | Perm.W
        assert copy.home is Planet.MERCURY

    def test_shared_enum_with_attributes(self):
        copy = roundtrip([Planet.EARTH, Planet.EARTH])
        assert copy[0] is Planet.EARTH
        assert copy[1] is Planet.EARTH


# ---- Identity ----


class TestIdentity:
    def test_shared_wire_form(self):
        x = Point(1, 1)
        text = to_json({"a": x, "b": x})
        assert text == '{"a":{"@type":"test_roundtrip.Point","@id":1,"x":1,"y":1},"b":{"@ref":1}}'
        copy = from_json(text)
        assert copy["a"] is copy["b"]

    def test_equal_but_distinct(self):
        copy = roundtrip([Point(1, 1), Point(1, 1)])
        assert copy[0] == copy[1]
        assert copy[0] is not copy[1]

    def test_self_cycle(self):
        node = Node("a")
        node.next = node
        copy = roundtrip(node)
        assert copy.next is copy
        assert copy.name == "a"

    def test_ring(self):
        a, b, c = Node("a"), Node("b"), Node("c")
        a.next, b.next, c.next = b, c, a
        copy = roundtrip(a)
        assert copy.next.next.next is copy
        assert [copy.name, copy.next.name, copy.next.next.name] == ["a", "b", "c"]

    def test_parent_links(self):
        root = Tree("root")
        left = root.add(Tree("left"))
        left.add(Tree("leaf"))
        copy = roundtrip(root)
        assert copy.children[0].parent is copy
        assert copy.children[0].children[0].parent is copy.children[0]

    def test_list_containing_itself(self):
        items = [1]
        items.append(items)
        copy = roundtrip(items)
        assert copy[1] is copy

    def test_dict_cycle_through_tuple(self):
        holder = {}
        holder["t"] = (holder, 1)
        copy = roundtrip(holder)
        assert copy["t"][0] is copy

    def test_shared_across_members(self):
        shared = [1, 2]
        zoo = {"first": shared, "second": {"again": shared}}
        copy = roundtrip(zoo)
        assert copy["first"] is copy["second"]["again"]

    def test_dangling_rejected(self):
        with pytest.raises(DanglingReferenceError):
            from_json('{"a":{"@id":1,"n":1},"b":{"@ref":2}}')


# ---- deep_copy ----


class TestDeepCopy:
    def test_independent_copy(self):
        original = Zoo([Animal("cat")])
        copy = deep_copy(original)
        assert copy == original
        assert copy is not original
        assert copy.animals[0] is not original.animals[0]

    def test_preserves_topology(self):
        node = Node("a")
        node.next = Node("b", node)
        copy = deep_copy(node)
        assert copy.next.next is copy
        assert copy is not node

    def test_options_passed_through(self):
        copy = deep_copy({"a": 1}, WriteOptions(indent=2), ReadOptions(ordered_maps=True))
        assert type(copy) is collections.OrderedDict
