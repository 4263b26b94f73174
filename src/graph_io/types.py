"""Type naming, type-tag resolution and declared-type helpers."""

from __future__ import annotations

import importlib
import inspect
import sys
import threading
import types
import typing
from typing import Any, Mapping

from graph_io.errors import UnresolvableTypeError

# Builtin containers and scalars are written with their bare name.
BUILTIN_TYPES: dict[str, type] = {
    t.__name__: t
    for t in (
        list,
        dict,
        set,
        frozenset,
        tuple,
        str,
        int,
        float,
        bool,
        complex,
        bytes,
        bytearray,
        object,
    )
}

# Types whose values are written as bare JSON scalars.
JSON_SCALAR_TYPES = (str, int, float, bool, type(None))

_NONE_TYPE = type(None)


def type_name(cls: type) -> str:
    """Return the wire name of a class: ``module.QualName`` or a bare builtin name."""
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


class TypeResolver:
    """Resolves ``@type`` strings to classes.

    Aliases are checked first, then builtins, then the name is split into an
    importable module prefix and an attribute path. Results are cached.
    """

    def __init__(self, aliases: Mapping[str, type] | None = None, allow_import: bool = True) -> None:
        self.aliases = dict(aliases or {})
        self.allow_import = allow_import
        self._cache: dict[str, type] = {}
        self._lock = threading.Lock()

    def resolve(self, name: str) -> type:
        """Return the class named by ``name``.

        Raises:
            UnresolvableTypeError: If the name cannot be mapped to a class.
        """
        cached = self._cache.get(name)
        if cached is not None:
            return cached
        with self._lock:
            cached = self._cache.get(name)
            if cached is None:
                cached = self._load(name)
                self._cache[name] = cached
        return cached

    def _load(self, name: str) -> type:
        if not isinstance(name, str) or not name:
            raise UnresolvableTypeError(f"Invalid type tag {name!r}")
        alias = self.aliases.get(name)
        if alias is not None:
            return alias
        builtin = BUILTIN_TYPES.get(name)
        if builtin is not None:
            return builtin
        if "<locals>" in name:
            raise UnresolvableTypeError("Locally defined classes must be registered as aliases", type_name=name)

        parts = name.split(".")
        for split in range(len(parts) - 1, 0, -1):
            module_name = ".".join(parts[:split])
            module = sys.modules.get(module_name)
            if module is None and self.allow_import:
                try:
                    module = importlib.import_module(module_name)
                except ImportError:
                    continue
            if module is None:
                continue
            obj: Any = module
            try:
                for attr in parts[split:]:
                    obj = getattr(obj, attr)
            except AttributeError:
                continue
            if isinstance(obj, type):
                return obj
            raise UnresolvableTypeError(f"Tag does not name a class (got {type(obj).__name__})", type_name=name)
        raise UnresolvableTypeError("Unknown type", type_name=name)


# --- Declared types -------------------------------------------------------


def _strip(hint: Any) -> Any:
    """Remove ``Annotated`` and ``Optional`` wrappers from a type hint."""
    while True:
        origin = typing.get_origin(hint)
        if origin is typing.Annotated:
            hint = typing.get_args(hint)[0]
            continue
        if origin is typing.Union or origin is types.UnionType:
            args = [a for a in typing.get_args(hint) if a is not _NONE_TYPE]
            if len(args) == 1:
                hint = args[0]
                continue
            return None
        return hint


def declared_class(hint: Any) -> type | None:
    """Return the concrete class a type hint constrains values to, if any.

    ``Optional[Foo]`` gives ``Foo``, ``list[int]`` gives ``list``; ``Any``,
    unions and unresolved forward references give ``None``.
    """
    if hint is None:
        return None
    hint = _strip(hint)
    if hint is None or hint is typing.Any:
        return None
    if typing.get_origin(hint) is typing.ClassVar:
        return None
    origin = typing.get_origin(hint)
    if isinstance(origin, type):
        return origin
    if isinstance(hint, type):
        return hint
    return None


def element_hint(hint: Any) -> Any:
    """Return the element type hint of a homogeneous collection hint."""
    hint = _strip(hint)
    if hint is None:
        return None
    args = typing.get_args(hint)
    origin = typing.get_origin(hint)
    if not args or not isinstance(origin, type):
        return None
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        return None
    if len(args) == 1:
        return args[0]
    return None


def mapping_hints(hint: Any) -> tuple[Any, Any]:
    """Return the ``(key, value)`` hints of a mapping hint, or ``(None, None)``."""
    hint = _strip(hint)
    if hint is None:
        return None, None
    args = typing.get_args(hint)
    if len(args) == 2 and typing.get_origin(hint) is not tuple:
        return args[0], args[1]
    return None, None


_HINT_ERRORS = (NameError, AttributeError, SyntaxError, TypeError)


def class_hints(cls: type) -> dict[str, Any]:
    """Return the annotations declared directly on ``cls``, evaluated if possible.

    Forward references that cannot be evaluated are kept as ``None``.
    """
    try:
        raw = inspect.get_annotations(cls)
    except NameError:
        return {}
    if not raw:
        return {}
    try:
        resolved = typing.get_type_hints(cls, include_extras=True)
    except _HINT_ERRORS:
        # One bad annotation anywhere in the MRO; evaluate ours one by one.
        resolved = {}
    localns = dict(vars(cls))
    localns.setdefault(cls.__name__, cls)
    hints: dict[str, Any] = {}
    for name, value in raw.items():
        if name in resolved:
            hints[name] = resolved[name]
        elif isinstance(value, str):
            hints[name] = _evaluate_hint(cls, name, value, localns)
        else:
            hints[name] = value
    return hints


def _evaluate_hint(cls: type, name: str, text: str, localns: dict[str, Any]) -> Any:
    holder = type(cls.__name__, (), {"__annotations__": {name: text}, "__module__": cls.__module__})
    try:
        return typing.get_type_hints(holder, localns=localns, include_extras=True)[name]
    except _HINT_ERRORS:
        return None
