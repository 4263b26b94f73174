"""Exception types raised by the graph_io engine."""

from __future__ import annotations

from typing import Any, Iterable


class GraphIOError(Exception):
    """Base class for all graph_io errors.

    Carries the owning type name, member name and graph identity where known,
    so a failure deep inside a graph can be located.
    """

    def __init__(
        self,
        message: str,
        *,
        type_name: str | None = None,
        member: str | None = None,
        identity: int | None = None,
    ) -> None:
        self.type_name = type_name
        self.member = member
        self.identity = identity
        self.reason = message
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        where = []
        if self.type_name is not None:
            where.append(f"type '{self.type_name}'")
        if self.member is not None:
            where.append(f"member '{self.member}'")
        if self.identity is not None:
            where.append(f"@id {self.identity}")
        if not where:
            return message
        return f"{message} ({', '.join(where)})"


class InvalidTargetError(GraphIOError):
    """A value was injected into a missing (None) or unpatchable target."""


class AccessorInvocationError(GraphIOError):
    """A getter or setter raised while being invoked by the engine."""


class ConversionError(GraphIOError):
    """Base class for coercion failures."""


class UnsupportedConversionError(ConversionError):
    """No conversion exists between the source value and the target type."""

    def __init__(self, value: Any, target: Any, **kwargs: Any) -> None:
        self.value = value
        self.target = target
        target_name = getattr(target, "__qualname__", repr(target))
        super().__init__(
            f"Cannot convert {type(value).__name__} value {value!r} to {target_name}",
            **kwargs,
        )


class UnknownEnumConstantError(ConversionError):
    """A string did not name any member of the target enum."""

    def __init__(self, name: Any, enum_type: type, **kwargs: Any) -> None:
        self.name = name
        self.enum_type = enum_type
        kwargs.setdefault("type_name", enum_type.__qualname__)
        super().__init__(f"Unknown enum constant {name!r}", **kwargs)


class DanglingReferenceError(GraphIOError):
    """A reference marker pointed at an identity never defined in the graph."""

    def __init__(self, identities: Iterable[int]) -> None:
        self.identities = sorted(set(identities))
        first = self.identities[0] if self.identities else None
        listed = ", ".join(str(i) for i in self.identities)
        super().__init__(f"Unresolved reference(s) to @id {listed}", identity=first)


class GraphTooDeepError(GraphIOError):
    """The object graph nests deeper than the configured maximum."""

    def __init__(self, max_depth: int, **kwargs: Any) -> None:
        self.max_depth = max_depth
        super().__init__(f"Object graph too deep (>{max_depth} levels)", **kwargs)


class UnresolvableTypeError(GraphIOError):
    """A @type tag names a type that could not be found or loaded."""


class WireSyntaxError(GraphIOError):
    """The input text is not well-formed."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        self.line = line
        self.column = column
        if line is not None:
            message = f"{message} at line {line}, column {column}"
        super().__init__(message)


class MemberWriteError(GraphIOError):
    """Records a member whose value could not be written."""
