"""Member discovery: builds and caches the serializable members of a type."""

from __future__ import annotations

import dataclasses
import enum
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from graph_io.reflect.access import (
    DirectAccessor,
    FieldAccessor,
    choose_accessor,
    mangle,
)
from graph_io.reflect.filters import MemberCandidate, MemberFilter, default_filters
from graph_io.types import class_hints, declared_class


@dataclass(frozen=True)
class MemberDescriptor:
    """One serializable slot on a type and how to read/write it."""

    declaring_type: type
    name: str
    unique_name: str
    value_type: Any
    readable: bool
    writable: bool
    public: bool
    accessor: FieldAccessor

    @property
    def declared_class(self) -> type | None:
        """The class the member's annotation constrains values to, if any."""
        return declared_class(self.value_type)

    @property
    def shadowed(self) -> bool:
        return self.unique_name != self.name

    def get(self, instance: Any) -> Any:
        return self.accessor.get(instance)

    def retrieve(self, instance: Any) -> Any:
        return self.accessor.retrieve(instance)

    def set(self, instance: Any, value: Any) -> None:
        self.accessor.set(instance, value)


def _slot_names(klass: type) -> list[str]:
    slots = klass.__dict__.get("__slots__", ())
    if isinstance(slots, str):
        slots = (slots,)
    return [mangle(klass, s) for s in slots]


def _own_dataclass_fields(klass: type) -> dict[str, dataclasses.Field]:  # type: ignore[type-arg]
    fields = klass.__dict__.get("__dataclass_fields__")
    if not fields:
        return {}
    return dict(fields)


class MemberRegistry:
    """Discovers, filters and caches member descriptors per type.

    Walks the MRO from most- to least-derived. A ``__dict__``-backed name seen
    closer to the leaf hides the same name further up. A slot re-declared in a
    subclass is a separate storage location, so the parent's copy is kept under
    a unique ``"<Parent>.<name>"`` name.

    Entries are computed once under a lock and never change afterwards.
    """

    def __init__(
        self,
        excluded_members: Mapping[type, Iterable[str]] | None = None,
        accessor_overrides: Mapping[type, Mapping[str, tuple[str | None, str | None]]] | None = None,
        filters: list[MemberFilter] | None = None,
    ) -> None:
        excluded = {cls: frozenset(names) for cls, names in (excluded_members or {}).items()}
        self.filters = filters if filters is not None else default_filters(excluded)
        self.accessor_overrides = dict(accessor_overrides or {})
        self._cache: dict[type, Mapping[str, MemberDescriptor]] = {}
        self._lock = threading.Lock()

    def members(self, cls: type) -> Mapping[str, MemberDescriptor]:
        """Return the class-level members of ``cls`` keyed by unique name."""
        found = self._cache.get(cls)
        if found is not None:
            return found
        with self._lock:
            found = self._cache.get(cls)
            if found is None:
                found = MappingProxyType(self._discover(cls))
                self._cache[cls] = found
        return found

    def instance_members(self, obj: Any) -> list[MemberDescriptor]:
        """Return the class-level members plus dynamic ``__dict__`` entries of ``obj``.

        Dynamic entries are filtered like class-level ones but not cached.
        """
        cls = type(obj)
        declared = self.members(cls)
        result = list(declared.values())
        try:
            instance_dict = object.__getattribute__(obj, "__dict__")
        except AttributeError:
            return result
        for name in list(instance_dict):
            if not isinstance(name, str) or name in declared:
                continue
            descriptor = self.dynamic_member(cls, name)
            if descriptor is not None:
                result.append(descriptor)
        return result

    def dynamic_member(self, cls: type, name: str) -> MemberDescriptor | None:
        """Return a descriptor for an instance attribute ``cls`` does not declare.

        None if the filters exclude the name.
        """
        candidate = MemberCandidate(cls=cls, owner=cls, name=name, storage="dict")
        if self._excluded(candidate):
            return None
        return self._descriptor(candidate, name)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def _excluded(self, candidate: MemberCandidate) -> bool:
        return any(f.excludes(candidate) for f in self.filters)

    def _descriptor(self, candidate: MemberCandidate, unique_name: str) -> MemberDescriptor:
        accessor = choose_accessor(
            candidate.cls,
            candidate.owner,
            candidate.name,
            candidate.storage,
            is_bool=declared_class(candidate.hint) is bool,
            overrides=self.accessor_overrides,
        )
        readable = writable = True
        if hasattr(accessor, "getter"):
            readable = accessor.getter is not None
            writable = accessor.setter is not None
        return MemberDescriptor(
            declaring_type=candidate.owner,
            name=candidate.name,
            unique_name=unique_name,
            value_type=candidate.hint,
            readable=readable,
            writable=writable,
            public=not candidate.name.startswith("_"),
            accessor=accessor,
        )

    def _candidates(self, cls: type, klass: type) -> list[MemberCandidate]:
        hints = class_hints(klass)
        dc_fields = _own_dataclass_fields(klass)
        slots = _slot_names(klass)
        names = list(hints)
        names.extend(s for s in slots if s not in hints)
        return [
            MemberCandidate(
                cls=cls,
                owner=klass,
                name=name,
                storage="slot" if name in slots else "dict",
                hint=hints.get(name),
                dataclass_field=dc_fields.get(name),
            )
            for name in names
        ]

    def _discover(self, cls: type) -> dict[str, MemberDescriptor]:
        per_class: list[list[MemberDescriptor]] = []
        seen: set[str] = set()

        for klass in cls.__mro__:
            if klass is object:
                continue
            own: list[MemberDescriptor] = []
            for candidate in self._candidates(cls, klass):
                if self._excluded(candidate):
                    continue
                if candidate.name not in seen:
                    seen.add(candidate.name)
                    unique = candidate.name
                elif candidate.storage == "slot":
                    unique = f"{klass.__qualname__}.{candidate.name}"
                else:
                    continue
                own.append(self._descriptor(candidate, unique))
            per_class.append(own)

        # Base classes first, each in source order.
        result: dict[str, MemberDescriptor] = {}
        for own in reversed(per_class):
            for descriptor in own:
                result[descriptor.unique_name] = descriptor

        if issubclass(cls, enum.Enum) and "name" not in result:
            result = {"name": _enum_name_descriptor(cls), **result}
        return result


class _ReadOnly(DirectAccessor):
    def _set(self, instance: Any, value: Any) -> None:
        raise AttributeError(f"'{self.name}' is read-only")


def _enum_name_descriptor(cls: type) -> MemberDescriptor:
    return MemberDescriptor(
        declaring_type=cls,
        name="name",
        unique_name="name",
        value_type=str,
        readable=True,
        writable=False,
        public=True,
        accessor=_ReadOnly("name", cls),
    )


_default_registry: MemberRegistry | None = None
_default_lock = threading.Lock()


def default_member_registry() -> MemberRegistry:
    """Return the process-wide registry built from the documented default filters."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                _default_registry = MemberRegistry()
    return _default_registry


def configure_default_members(
    excluded_members: Mapping[type, Iterable[str]] | None = None,
    accessor_overrides: Mapping[type, Mapping[str, tuple[str | None, str | None]]] | None = None,
) -> MemberRegistry:
    """Replace the process-wide member registry.

    Options created afterwards without an explicit registry use the new one.
    """
    global _default_registry
    with _default_lock:
        _default_registry = MemberRegistry(excluded_members, accessor_overrides)
    return _default_registry
