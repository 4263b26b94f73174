"""Filters that decide which discovered members are serializable."""

from __future__ import annotations

import dataclasses
import enum
import functools
import typing
from dataclasses import dataclass
from typing import Any, Mapping

# Bookkeeping the enum module keeps on classes and members.
ENUM_INTERNAL_NAMES = frozenset(
    {
        "_value_",
        "_name_",
        "_sort_order_",
        "__objclass__",
        "_member_map_",
        "_member_names_",
        "_member_type_",
        "_value2member_map_",
        "_unhashable_values_",
        "_new_member_",
        "_use_args_",
        "_generate_next_value_",
        "_missing_",
        "_ignore_",
        "_order_",
        "_boundary_",
        "_flag_mask_",
        "_singles_mask_",
        "_all_bits_",
        "_inverted_",
    }
)

# Process-wide deny-list, keyed by declaring type. A name listed for a class
# is excluded from that class and from every subclass.
DEFAULT_EXCLUDED_MEMBERS: Mapping[type, frozenset[str]] = {
    enum.Enum: ENUM_INTERNAL_NAMES,
}

_SYNTHETIC_SLOTS = frozenset({"__dict__", "__weakref__"})

_STATIC_KINDS = (
    staticmethod,
    classmethod,
    property,
    functools.cached_property,
    type,
)


@dataclass(frozen=True)
class MemberCandidate:
    """A member found during discovery, before filtering."""

    cls: type  # the type being described
    owner: type  # the class that declares the member
    name: str
    storage: str  # "slot" or "dict"
    hint: Any = None
    dataclass_field: dataclasses.Field | None = None  # type: ignore[type-arg]


class MemberFilter:
    """Base filter: ``excludes`` returns True to drop a candidate."""

    def excludes(self, candidate: MemberCandidate) -> bool:
        raise NotImplementedError

    def __call__(self, candidate: MemberCandidate) -> bool:
        return self.excludes(candidate)


class SyntheticFilter(MemberFilter):
    """Drops dunder names, ``__dict__``/``__weakref__`` slots and ``InitVar`` pseudo-fields."""

    def excludes(self, candidate: MemberCandidate) -> bool:
        name = candidate.name
        if name in _SYNTHETIC_SLOTS:
            return True
        if name.startswith("__") and name.endswith("__"):
            return True
        if isinstance(candidate.hint, dataclasses.InitVar) or candidate.hint is dataclasses.InitVar:
            return True
        return False


class StaticFilter(MemberFilter):
    """Drops class-level members: ``ClassVar`` annotations, methods and properties."""

    def excludes(self, candidate: MemberCandidate) -> bool:
        hint = candidate.hint
        if hint is typing.ClassVar or typing.get_origin(hint) is typing.ClassVar:
            return True
        if candidate.storage == "slot":
            return False
        for klass in candidate.cls.__mro__:
            attr = klass.__dict__.get(candidate.name)
            if attr is None:
                continue
            if isinstance(attr, _STATIC_KINDS) or callable(attr):
                return True
            break
        return False


class TransientFilter(MemberFilter):
    """Drops members marked transient.

    A dataclass field with ``metadata={"transient": True}`` or a name listed in
    a class's ``__transient__`` tuple is transient.
    """

    def excludes(self, candidate: MemberCandidate) -> bool:
        f = candidate.dataclass_field
        if f is not None and f.metadata.get("transient"):
            return True
        for klass in candidate.cls.__mro__:
            if candidate.name in klass.__dict__.get("__transient__", ()):
                return True
        return False


class ExcludedNamesFilter(MemberFilter):
    """Drops names on a per-declaring-type deny-list."""

    def __init__(self, excluded: Mapping[type, frozenset[str]]) -> None:
        self.excluded = excluded

    def excludes(self, candidate: MemberCandidate) -> bool:
        if not self.excluded:
            return False
        names = self.excluded.get(candidate.owner)
        if names and candidate.name in names:
            return True
        for klass in candidate.cls.__mro__:
            names = self.excluded.get(klass)
            if names and candidate.name in names:
                return True
        return False


class EnumFilter(MemberFilter):
    """On enum types, drops the member table and value/ordering bookkeeping.

    Enum members then expose only ``name`` (added by discovery) and any
    attributes the enum's own ``__init__`` assigns.
    """

    def excludes(self, candidate: MemberCandidate) -> bool:
        if not issubclass(candidate.cls, enum.Enum):
            return False
        name = candidate.name
        if name in ENUM_INTERNAL_NAMES:
            return True
        return len(name) > 2 and name.startswith("_") and name.endswith("_") and not name.startswith("__")


def default_filters(excluded: Mapping[type, frozenset[str]] | None = None) -> list[MemberFilter]:
    """Return the standard filter pipeline."""
    merged: dict[type, frozenset[str]] = dict(DEFAULT_EXCLUDED_MEMBERS)
    for cls, names in (excluded or {}).items():
        merged[cls] = merged.get(cls, frozenset()) | frozenset(names)
    return [
        SyntheticFilter(),
        StaticFilter(),
        TransientFilter(),
        ExcludedNamesFilter(merged),
        EnumFilter(),
    ]
