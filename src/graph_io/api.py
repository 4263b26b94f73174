"""Top-level convenience functions."""

from __future__ import annotations

from typing import Any

from graph_io.graph import Graph
from graph_io.options import ReadOptions, WriteOptions
from graph_io.parsing import shared_parser
from graph_io.resolver import Resolver
from graph_io.writer import GraphWriter


def to_json(obj: Any, options: WriteOptions | None = None, declared: Any = None) -> str:
    """Serialize ``obj`` to JSON text."""
    return GraphWriter(options).to_text(obj, declared)


def from_json(text: str, root_type: Any = None, options: ReadOptions | None = None) -> Any:
    """Rebuild an object graph from JSON text.

    ``root_type`` is the type expected at the root; it is only needed when
    the root was written without a type tag.
    """
    return Resolver(options).read(text, root_type)


def parse_graph(text: str, options: ReadOptions | None = None) -> Graph:
    """Parse JSON text into the intermediate graph without materializing it."""
    options = options or ReadOptions()
    return shared_parser(options.max_depth).parse(text)


def deep_copy(obj: Any, write_options: WriteOptions | None = None, read_options: ReadOptions | None = None) -> Any:
    """Return a deep copy of ``obj`` made by writing it and reading it back.

    Sharing and cycles inside ``obj`` are reproduced in the copy.
    """
    return from_json(to_json(obj, write_options), options=read_options)
