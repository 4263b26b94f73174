"""Uniform get/set access to a named member of an arbitrary object.

Three variants exist: ``DirectAccessor`` reads and writes the instance
``__dict__`` (bypassing ``__setattr__`` so frozen dataclasses can be
rebuilt), ``SlotAccessor`` goes through the slot descriptor of the declaring
class, and ``MethodAccessor`` calls a getter/setter pair.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from graph_io.errors import AccessorInvocationError, InvalidTargetError

logger = logging.getLogger(__name__)


class _Absent:
    """Marker for a member whose value could not be read."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


def mangle(cls: type, name: str) -> str:
    """Apply private name mangling the way the compiler does for ``cls``."""
    if name.startswith("__") and not name.endswith("__"):
        return f"_{cls.__name__.lstrip('_')}{name}"
    return name


class FieldAccessor:
    """Gets and sets one member on instances of a type."""

    kind = "abstract"

    def __init__(self, name: str, declaring_type: type) -> None:
        self.name = name
        self.declaring_type = declaring_type

    def _get(self, instance: Any) -> Any:
        raise NotImplementedError

    def _set(self, instance: Any, value: Any) -> None:
        raise NotImplementedError

    def get(self, instance: Any) -> Any:
        """Return the member value.

        Raises:
            InvalidTargetError: If ``instance`` is None.
            AccessorInvocationError: If reading the member raised.
        """
        if instance is None:
            raise InvalidTargetError("Cannot read from None", type_name=self.declaring_type.__qualname__, member=self.name)
        try:
            return self._get(instance)
        except Exception as exc:
            raise AccessorInvocationError(
                f"{type(exc).__name__} reading member: {exc}",
                type_name=type(instance).__qualname__,
                member=self.name,
            ) from exc

    def retrieve(self, instance: Any) -> Any:
        """Return the member value, or ``ABSENT`` if it cannot be read."""
        try:
            return self.get(instance)
        except AccessorInvocationError as exc:
            logger.debug("Treating member as absent: %s", exc)
            return ABSENT

    def set(self, instance: Any, value: Any) -> None:
        """Store ``value`` into the member.

        Raises:
            InvalidTargetError: If ``instance`` is None.
            AccessorInvocationError: If the setter or storage raised.
        """
        if instance is None:
            raise InvalidTargetError("Cannot inject into None", type_name=self.declaring_type.__qualname__, member=self.name)
        try:
            self._set(instance, value)
        except Exception as exc:
            raise AccessorInvocationError(
                f"{type(exc).__name__} writing member: {exc}",
                type_name=type(instance).__qualname__,
                member=self.name,
            ) from exc

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.declaring_type.__qualname__}.{self.name})"


class DirectAccessor(FieldAccessor):
    """Access through the instance attribute storage."""

    kind = "direct"

    def _get(self, instance: Any) -> Any:
        return getattr(instance, self.name)

    def _set(self, instance: Any, value: Any) -> None:
        object.__setattr__(instance, self.name, value)


class SlotAccessor(FieldAccessor):
    """Access through the ``__slots__`` descriptor of the declaring class.

    A subclass re-declaring a slot gets its own storage location, so the
    parent's slot stays reachable only through the parent's descriptor.
    """

    kind = "slot"

    def __init__(self, name: str, declaring_type: type) -> None:
        super().__init__(name, declaring_type)
        self.descriptor = declaring_type.__dict__[mangle(declaring_type, name)]

    def _get(self, instance: Any) -> Any:
        return self.descriptor.__get__(instance, type(instance))

    def _set(self, instance: Any, value: Any) -> None:
        self.descriptor.__set__(instance, value)


class MethodAccessor(FieldAccessor):
    """Access through a getter/setter method pair."""

    kind = "method"

    def __init__(self, name: str, declaring_type: type, getter: str | None, setter: str | None) -> None:
        super().__init__(name, declaring_type)
        self.getter = getter
        self.setter = setter

    def _get(self, instance: Any) -> Any:
        if self.getter is None:
            raise AttributeError(f"no getter for '{self.name}'")
        return getattr(instance, self.getter)()

    def _set(self, instance: Any, value: Any) -> None:
        if self.setter is None:
            raise AttributeError(f"no setter for '{self.name}'")
        getattr(instance, self.setter)(value)

    def __repr__(self) -> str:
        return f"MethodAccessor({self.declaring_type.__qualname__}.{self.getter}/{self.setter})"


def _public_method(cls: type, name: str) -> bool:
    if name.startswith("_"):
        return False
    attr = getattr(cls, name, None)
    return callable(attr) and not isinstance(attr, type)


def find_override(
    cls: type, name: str, overrides: Mapping[type, Mapping[str, tuple[str | None, str | None]]]
) -> tuple[str | None, str | None] | None:
    """Return a configured ``(getter, setter)`` pair for ``cls.name``, searching the MRO."""
    for klass in cls.__mro__:
        names = overrides.get(klass)
        if names and name in names:
            return names[name]
    return None


def choose_accessor(
    cls: type,
    declaring_type: type,
    name: str,
    storage: str,
    is_bool: bool = False,
    overrides: Mapping[type, Mapping[str, tuple[str | None, str | None]]] | None = None,
) -> FieldAccessor:
    """Pick the accessor for a member.

    Priority: an explicit override from options, then a conventional
    ``get_x``/``set_x`` (``is_x`` for booleans) pair on ``cls`` when both are
    public methods, then direct storage access.
    """
    pair = find_override(cls, name, overrides or {})
    if pair is not None:
        return MethodAccessor(name, declaring_type, pair[0], pair[1])

    base = name.lstrip("_")
    if base and not base.startswith("_"):
        setter = f"set_{base}"
        getters = [f"is_{base}", f"get_{base}"] if is_bool else [f"get_{base}"]
        if _public_method(cls, setter):
            for getter in getters:
                if _public_method(cls, getter):
                    return MethodAccessor(name, declaring_type, getter, setter)

    if storage == "slot":
        return SlotAccessor(name, declaring_type)
    return DirectAccessor(name, declaring_type)
