"""Custom writers and factories, looked up by type.

Lookup for a class ``T`` is one algorithm shared by writers and factories:

1. an entry registered for ``T`` itself;
2. the primary superclass chain, following ``__bases__[0]`` up to ``object``;
3. the remaining classes of ``T.__mro__`` (mixins and secondary bases), in
   MRO order, then registered abstract base classes and ``runtime_checkable``
   protocols that ``T`` satisfies, in registration order;
4. nothing, meaning the generic engine handles ``T``.
"""

from __future__ import annotations

import abc
import threading
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from graph_io.graph import GraphNode
    from graph_io.printer import Sink
    from graph_io.resolver import Resolver
    from graph_io.writer import WriteContext

_MISSING = object()


class ObjectWriter:
    """Writes values of some type in place of generic member walking.

    ``write`` is called inside an already opened object, after the engine has
    emitted ``@type`` and ``@id``; it emits ``name``/value pairs.
    """

    def write(self, value: Any, sink: Sink, context: WriteContext) -> None:
        raise NotImplementedError

    def has_primitive_form(self, value: Any) -> bool:
        """Return True if ``value`` can be written as a single scalar."""
        return False

    def write_primitive(self, value: Any, sink: Sink) -> None:
        raise NotImplementedError

    def children(self, value: Any) -> Iterable[Any] | None:
        """Values ``write`` will visit, for reference tracing.

        None means the value's discovered members.
        """
        return None


class ObjectFactory:
    """Creates instances of some type in place of generic allocation."""

    # True when ``instantiate`` returns a fully populated object, so the
    # resolver does not inject members afterwards.
    is_final = False

    def instantiate(self, cls: type, node: GraphNode, resolver: Resolver) -> Any:
        """Return the object for ``node``, whose type resolved to ``cls``."""
        raise NotImplementedError


def _is_capability(key: type) -> bool:
    return isinstance(key, abc.ABCMeta) or bool(getattr(key, "_is_protocol", False))


def lookup(table: dict[type, Any], cls: type) -> Any:
    """Find the entry for ``cls`` in ``table`` using the documented order."""
    found = table.get(cls, _MISSING)
    if found is not _MISSING:
        return found

    klass = cls
    while klass.__bases__:
        klass = klass.__bases__[0]
        found = table.get(klass, _MISSING)
        if found is not _MISSING:
            return found

    for klass in cls.__mro__:
        found = table.get(klass, _MISSING)
        if found is not _MISSING:
            return found

    for key, entry in table.items():
        if not _is_capability(key):
            continue
        try:
            if issubclass(cls, key):
                return entry
        except TypeError:
            # Protocols with non-method members refuse issubclass().
            continue
    return None


class ExtensionRegistry:
    """Two independent maps: writer overrides and factory overrides.

    Lookups are cached per class; registering clears the caches.
    """

    def __init__(self) -> None:
        self._writers: dict[type, ObjectWriter] = {}
        self._factories: dict[type, ObjectFactory] = {}
        self._writer_cache: dict[type, ObjectWriter | None] = {}
        self._factory_cache: dict[type, ObjectFactory | None] = {}
        self._lock = threading.Lock()

    def add_writer(self, types: type | Iterable[type], writer: ObjectWriter) -> None:
        with self._lock:
            for cls in _as_types(types):
                self._writers[cls] = writer
            self._writer_cache.clear()

    def add_factory(self, types: type | Iterable[type], factory: ObjectFactory) -> None:
        with self._lock:
            for cls in _as_types(types):
                self._factories[cls] = factory
            self._factory_cache.clear()

    def remove_writer(self, cls: type) -> None:
        with self._lock:
            self._writers.pop(cls, None)
            self._writer_cache.clear()

    def remove_factory(self, cls: type) -> None:
        with self._lock:
            self._factories.pop(cls, None)
            self._factory_cache.clear()

    def find_writer(self, cls: type) -> ObjectWriter | None:
        return self._find(self._writers, self._writer_cache, cls)

    def find_factory(self, cls: type) -> ObjectFactory | None:
        return self._find(self._factories, self._factory_cache, cls)

    def _find(self, table: dict[type, Any], cache: dict[type, Any], cls: type) -> Any:
        found = cache.get(cls, _MISSING)
        if found is not _MISSING:
            return found
        with self._lock:
            found = cache.get(cls, _MISSING)
            if found is _MISSING:
                found = lookup(table, cls)
                cache[cls] = found
        return found

    def copy(self) -> ExtensionRegistry:
        """Return an independent registry with the same entries."""
        other = ExtensionRegistry()
        with self._lock:
            other._writers = dict(self._writers)
            other._factories = dict(self._factories)
        return other


def _as_types(types: type | Iterable[type]) -> list[type]:
    if isinstance(types, type):
        return [types]
    return list(types)


_default: ExtensionRegistry | None = None
_default_lock = threading.Lock()


def default_registry() -> ExtensionRegistry:
    """Return the process-wide registry, populated with the standard plugins on first use."""
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                from graph_io.plugins import register_defaults

                registry = ExtensionRegistry()
                register_defaults(registry)
                _default = registry
    return _default
