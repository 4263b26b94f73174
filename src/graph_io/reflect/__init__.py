"""Reflection layer: member access, discovery and filtering."""

from graph_io.reflect.access import (
    ABSENT,
    DirectAccessor,
    FieldAccessor,
    MethodAccessor,
    SlotAccessor,
    choose_accessor,
)
from graph_io.reflect.members import (
    MemberDescriptor,
    MemberRegistry,
    configure_default_members,
    default_member_registry,
)

__all__ = [
    "ABSENT",
    "DirectAccessor",
    "FieldAccessor",
    "MemberDescriptor",
    "MemberRegistry",
    "MethodAccessor",
    "SlotAccessor",
    "choose_accessor",
    "configure_default_members",
    "default_member_registry",
]
