"""Inspect graph documents from the command line."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from graph_io.api import parse_graph
from graph_io.errors import GraphIOError
from graph_io.graph import Graph, GraphNode, NodeKind
from graph_io.options import ReadOptions
from graph_io.printer import render
from graph_io.resolver import Resolver


def _header(node: GraphNode) -> str:
    parts = [node.kind.value]
    if node.type_name is not None:
        parts.append(node.type_name)
    if node.identity is not None:
        parts.append(f"@id={node.identity}")
    if node.kind is NodeKind.ARRAY:
        parts.append(f"({len(node.items or [])} items)")
    elif node.kind is NodeKind.ENTRIES:
        parts.append(f"({len(node.keys or [])} entries)")
    return " ".join(parts)


def format_value(value: Any, indent: int = 0, label: str = "") -> list[str]:
    """Return the lines describing one graph value and its children."""
    pad = "  " * indent
    if not isinstance(value, GraphNode):
        return [f"{pad}{label}{value!r}"]
    if value.kind is NodeKind.REFERENCE:
        return [f"{pad}{label}-> @ref {value.ref}"]
    if value.kind is NodeKind.PRIMITIVE:
        return [f"{pad}{label}{_header(value)} = {value.value!r}"]

    lines = [f"{pad}{label}{_header(value)}"]
    if value.kind is NodeKind.ARRAY:
        for index, item in enumerate(value.items or []):
            lines.extend(format_value(item, indent + 1, f"[{index}]: "))
    elif value.kind is NodeKind.ENTRIES:
        for index, (key, item) in enumerate(zip(value.keys or [], value.items or [])):
            lines.extend(format_value(key, indent + 1, f"key[{index}]: "))
            lines.extend(format_value(item, indent + 2, "value: "))
    else:
        for name, item in (value.members or {}).items():
            lines.extend(format_value(item, indent + 1, f"{name}: "))
    return lines


def format_graph(graph: Graph) -> list[str]:
    """Return the node tree of ``graph`` followed by a summary line."""
    lines = format_value(graph.root)
    refs = graph.references()
    lines.append(f"-- {len(graph.nodes)} identities, {len(refs)} references")
    return lines


def resolve_document(text: str) -> int:
    """Materialize ``text`` as plain maps and report what failed."""
    resolver = Resolver(ReadOptions(return_as_maps=True))
    result = resolver.read(text)
    print(f"Resolved {type(result).__name__} with {len(resolver.errors)} error(s)")
    for error in resolver.errors:
        print(f"  {error}")
    return 1 if resolver.errors else 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Show the intermediate graph of a JSON object-graph document"
    )
    parser.add_argument(
        "file",
        type=Path,
        help="Path to the document",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-g", "--graph",
        action="store_true",
        help="Print the node tree (default)",
    )
    mode.add_argument(
        "-p", "--pretty",
        action="store_true",
        help="Print the document re-rendered with indentation",
    )
    mode.add_argument(
        "-r", "--resolve",
        action="store_true",
        help="Materialize the document as plain maps and report failures",
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="Indentation for --pretty (default: 2)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log more (repeat for debug output)",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=max(logging.WARNING - 10 * args.verbose, logging.DEBUG))

    if not args.file.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1

    text = args.file.read_text(encoding="utf-8")
    try:
        if args.resolve:
            return resolve_document(text)
        graph = parse_graph(text)
    except GraphIOError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.pretty:
        root = graph.root.to_plain() if isinstance(graph.root, GraphNode) else graph.root
        print(render(root, indent=args.indent))
    else:
        for line in format_graph(graph):
            print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
