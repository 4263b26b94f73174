"""Immutable read/write options."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from graph_io.convert import ConverterOptions
from graph_io.extensions import ExtensionRegistry, default_registry
from graph_io.reflect.members import MemberRegistry, default_member_registry

# Default recursion guard. Each level of nesting costs a few interpreter
# frames, so this stays well under the interpreter's own recursion limit.
DEFAULT_MAX_DEPTH = 150


class ShowType(enum.Enum):
    """When the writer emits ``@type`` tags."""

    ALWAYS = "always"
    MINIMAL = "minimal"  # only where the runtime class differs from the declared type
    NEVER = "never"


def _member_registry(
    excluded_members: Mapping[type, Iterable[str]] | None,
    accessor_overrides: Mapping[type, Mapping[str, tuple[str | None, str | None]]] | None,
) -> MemberRegistry:
    return MemberRegistry(excluded_members, accessor_overrides)


@dataclass(frozen=True)
class WriteOptions:
    """Options for :class:`graph_io.writer.GraphWriter`.

    Attributes:
        show_type: Type tag policy.
        indent: Spaces per nesting level, or None for compact output.
        allow_nan: Emit ``NaN``/``Infinity`` literals; otherwise such floats become null.
        max_depth: Maximum nesting before ``GraphTooDeepError``.
        strict: Raise the first member failure instead of writing null.
        type_aliases: Short wire names for classes.
        members: Member discovery registry (filters and accessor overrides).
        extensions: Custom writers.
    """

    show_type: ShowType = ShowType.MINIMAL
    indent: int | None = None
    allow_nan: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH
    strict: bool = False
    type_aliases: Mapping[type, str] = field(default_factory=dict)
    members: MemberRegistry = field(default_factory=default_member_registry)
    extensions: ExtensionRegistry = field(default_factory=default_registry)

    def replace(self, **changes: Any) -> WriteOptions:
        """Return a copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    def with_members(
        self,
        excluded_members: Mapping[type, Iterable[str]] | None = None,
        accessor_overrides: Mapping[type, Mapping[str, tuple[str | None, str | None]]] | None = None,
    ) -> WriteOptions:
        """Return a copy that discovers members with its own deny-list and accessor overrides."""
        return self.replace(members=_member_registry(excluded_members, accessor_overrides))


@dataclass(frozen=True)
class ReadOptions:
    """Options for :class:`graph_io.resolver.Resolver`.

    Attributes:
        max_depth: Maximum nesting before ``GraphTooDeepError``.
        strict: Raise the first subtree failure instead of nulling the subtree.
        ordered_maps: Materialize untyped objects as ``OrderedDict`` instead of ``dict``.
        return_as_maps: Skip type resolution; objects become dicts keeping ``@type``.
        allow_import: Import modules named by ``@type`` tags that are not loaded yet.
        type_aliases: Wire names mapped to classes.
        converter: Coercion settings (date patterns, timezone, decimal context).
        missing_member_handler: Called with ``(target, name, value)`` for members
            that cannot be stored on the target.
        members: Member discovery registry.
        extensions: Custom factories.
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    strict: bool = False
    ordered_maps: bool = False
    return_as_maps: bool = False
    allow_import: bool = True
    type_aliases: Mapping[str, type] = field(default_factory=dict)
    converter: ConverterOptions = field(default_factory=ConverterOptions)
    missing_member_handler: Callable[[Any, str, Any], None] | None = None
    members: MemberRegistry = field(default_factory=default_member_registry)
    extensions: ExtensionRegistry = field(default_factory=default_registry)

    def replace(self, **changes: Any) -> ReadOptions:
        """Return a copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    def with_members(
        self,
        excluded_members: Mapping[type, Iterable[str]] | None = None,
        accessor_overrides: Mapping[type, Mapping[str, tuple[str | None, str | None]]] | None = None,
    ) -> ReadOptions:
        """Return a copy that discovers members with its own deny-list and accessor overrides."""
        return self.replace(members=_member_registry(excluded_members, accessor_overrides))
