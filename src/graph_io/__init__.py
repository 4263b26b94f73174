"""graph_io - Object-graph serialization with shared and cyclic references."""

from graph_io.api import deep_copy, from_json, parse_graph, to_json
from graph_io.convert import Converter, ConverterOptions
from graph_io.errors import (
    AccessorInvocationError,
    ConversionError,
    DanglingReferenceError,
    GraphIOError,
    GraphTooDeepError,
    InvalidTargetError,
    MemberWriteError,
    UnknownEnumConstantError,
    UnresolvableTypeError,
    UnsupportedConversionError,
    WireSyntaxError,
)
from graph_io.extensions import ExtensionRegistry, ObjectFactory, ObjectWriter, default_registry
from graph_io.graph import Graph, GraphNode, NodeKind
from graph_io.options import ReadOptions, ShowType, WriteOptions
from graph_io.reflect import MemberDescriptor, MemberRegistry, default_member_registry
from graph_io.resolver import Resolver
from graph_io.writer import GraphWriter

__all__ = [
    # Main API
    "to_json",
    "from_json",
    "parse_graph",
    "deep_copy",
    "GraphWriter",
    "Resolver",
    # Options
    "ReadOptions",
    "WriteOptions",
    "ShowType",
    "ConverterOptions",
    "Converter",
    # Extension points
    "ExtensionRegistry",
    "ObjectWriter",
    "ObjectFactory",
    "default_registry",
    "MemberDescriptor",
    "MemberRegistry",
    "default_member_registry",
    # Graph model
    "Graph",
    "GraphNode",
    "NodeKind",
    # Errors
    "GraphIOError",
    "InvalidTargetError",
    "AccessorInvocationError",
    "ConversionError",
    "UnsupportedConversionError",
    "UnknownEnumConstantError",
    "DanglingReferenceError",
    "GraphTooDeepError",
    "UnresolvableTypeError",
    "WireSyntaxError",
    "MemberWriteError",
]

__version__ = "0.1.0"
