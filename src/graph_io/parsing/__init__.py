"""Parsing module for the wire syntax."""

from graph_io.parsing.graph_parser import GraphParser, shared_parser
from graph_io.parsing.wire_lexer import WireLexer

__all__ = [
    "GraphParser",
    "WireLexer",
    "shared_parser",
]
