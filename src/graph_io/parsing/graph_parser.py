"""Phase 1 parser: wire text to an intermediate graph."""

from __future__ import annotations

import json
import threading
from typing import Any

import ply.lex as lex
import ply.yacc as yacc

from graph_io.errors import GraphTooDeepError, WireSyntaxError
from graph_io.graph import Graph, GraphNode, NodeKind
from graph_io.options import DEFAULT_MAX_DEPTH
from graph_io.parsing.wire_lexer import WireLexer

META_KEYS = frozenset({"@type", "@id", "@ref", "@items", "@keys"})

_OPENERS = frozenset({"LBRACE", "LBRACKET"})
_CLOSERS = frozenset({"RBRACE", "RBRACKET"})
_PUNCTUATION = _OPENERS | _CLOSERS | {"COLON", "COMMA"}

# Built parsers, one per thread; building the LALR tables is the slow part.
_local = threading.local()


class _Member:
    """A parsed ``"key": value`` pair with the position of its key."""

    __slots__ = ("key", "value", "line", "lexpos")

    def __init__(self, key: str, value: Any, line: int, lexpos: int) -> None:
        self.key = key
        self.value = value
        self.line = line
        self.lexpos = lexpos


class GraphParser:
    """Parser for graph documents.

    Builds :class:`GraphNode` trees and the ``@id`` arena. Meta keys are
    validated as each member is reduced; the node kind is settled when its
    object is complete. Nesting is counted as tokens are pulled from the lexer.
    """

    tokens = WireLexer.tokens

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.max_depth = max_depth
        self.lexer = WireLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        self._nodes: dict[int, GraphNode] = {}
        self._depth = 0

    # --- Grammar -----------------------------------------------------------

    def p_document(self, p: yacc.YaccProduction) -> None:
        """document : value"""
        p[0] = p[1]

    def p_value_scalar(self, p: yacc.YaccProduction) -> None:
        """value : STRING
                 | NUMBER
                 | TRUE
                 | FALSE
                 | NULL
                 | NAN
                 | INFINITY
                 | NEG_INFINITY"""
        p[0] = p[1]

    def p_value_composite(self, p: yacc.YaccProduction) -> None:
        """value : object
                 | array"""
        p[0] = p[1]

    def p_object_empty(self, p: yacc.YaccProduction) -> None:
        """object : LBRACE RBRACE"""
        p[0] = GraphNode(NodeKind.MEMBERS, members={}, line=p.lineno(1))

    def p_object(self, p: yacc.YaccProduction) -> None:
        """object : LBRACE member_list RBRACE"""
        node = GraphNode(NodeKind.MEMBERS, line=p.lineno(1))
        members: dict[str, Any] = {}
        for member in p[2]:
            if member.key in META_KEYS:
                self._meta(node, member)
            else:
                members[member.key] = member.value
        self._settle(node, members, p.lineno(1), p.lexpos(1))
        p[0] = node

    def p_member_list_single(self, p: yacc.YaccProduction) -> None:
        """member_list : member"""
        p[0] = [p[1]]

    def p_member_list_multiple(self, p: yacc.YaccProduction) -> None:
        """member_list : member_list COMMA member"""
        p[0] = p[1]
        p[0].append(p[3])

    def p_member(self, p: yacc.YaccProduction) -> None:
        """member : STRING COLON value"""
        member = _Member(p[1], p[3], p.lineno(1), p.lexpos(1))
        if member.key == "@id":
            self._register_identity(member)
        p[0] = member

    def p_array_empty(self, p: yacc.YaccProduction) -> None:
        """array : LBRACKET RBRACKET"""
        p[0] = GraphNode(NodeKind.ARRAY, items=[], line=p.lineno(1))

    def p_array(self, p: yacc.YaccProduction) -> None:
        """array : LBRACKET element_list RBRACKET"""
        p[0] = GraphNode(NodeKind.ARRAY, items=p[2], line=p.lineno(1))

    def p_element_list_single(self, p: yacc.YaccProduction) -> None:
        """element_list : value"""
        p[0] = [p[1]]

    def p_element_list_multiple(self, p: yacc.YaccProduction) -> None:
        """element_list : element_list COMMA value"""
        p[0] = p[1]
        p[0].append(p[3])

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            shown = f"'{p.value}'" if p.type in _PUNCTUATION else json.dumps(p.value)
            raise WireSyntaxError(f"Unexpected {shown}", line=p.lineno, column=self.lexer.column(p.lexpos))
        raise WireSyntaxError(
            "Unexpected end of input",
            line=self.lexer.lexer.lineno,
            column=self.lexer.column(len(self.lexer.lexer.lexdata)),
        )

    # --- Meta keys ---------------------------------------------------------

    def _error(self, message: str, line: int, lexpos: int) -> None:
        raise WireSyntaxError(message, line=line, column=self.lexer.column(lexpos))

    def _register_identity(self, member: _Member) -> None:
        identity = member.value
        if type(identity) is not int or identity < 0:
            self._error(f"@id must be a non-negative integer, got {identity!r}", member.line, member.lexpos)
        if identity in self._nodes:
            self._error(f"Duplicate @id {identity}", member.line, member.lexpos)
        # Claimed now; the owning node is stored once its object is complete.
        self._nodes[identity] = None  # type: ignore[assignment]

    def _meta(self, node: GraphNode, member: _Member) -> None:
        key, value = member.key, member.value
        if key == "@type":
            if not isinstance(value, str):
                self._error(f"@type must be a string, got {value!r}", member.line, member.lexpos)
            node.type_name = value
        elif key == "@id":
            if node.identity is not None:
                self._error("Object has more than one @id", member.line, member.lexpos)
            node.identity = value
            self._nodes[value] = node
        elif key == "@ref":
            if type(value) is not int or value < 0:
                self._error(f"@ref must be a non-negative integer, got {value!r}", member.line, member.lexpos)
            node.ref = value
        else:
            bare = (
                isinstance(value, GraphNode)
                and value.kind is NodeKind.ARRAY
                and value.type_name is None
                and value.identity is None
            )
            if not bare:
                self._error(f"{key} must be an array", member.line, member.lexpos)
            if key == "@items":
                node.items = value.items
            else:
                node.keys = value.items

    def _settle(self, node: GraphNode, members: dict[str, Any], line: int, lexpos: int) -> None:
        """Decide the node kind once the whole object has been read."""
        if node.ref is not None:
            if node.type_name is not None or node.identity is not None or members or node.items is not None or node.keys is not None:
                self._error("@ref must be the only key of its object", line, lexpos)
            node.kind = NodeKind.REFERENCE
            return
        if node.keys is not None:
            if node.items is None:
                self._error("@keys without @items", line, lexpos)
            if len(node.keys) != len(node.items):  # type: ignore[arg-type]
                self._error(f"@keys has {len(node.keys)} entries but @items has {len(node.items)}", line, lexpos)  # type: ignore[arg-type]
            if members:
                self._error("@keys/@items object cannot have other members", line, lexpos)
            node.kind = NodeKind.ENTRIES
            return
        if node.items is not None:
            if members:
                self._error("@items object cannot have other members", line, lexpos)
            node.kind = NodeKind.ARRAY
            return
        if node.type_name is not None and list(members) == ["value"] and not isinstance(members["value"], GraphNode):
            node.kind = NodeKind.PRIMITIVE
            node.value = members["value"]
            return
        node.kind = NodeKind.MEMBERS
        node.members = members

    # --- Driver ------------------------------------------------------------

    def _token(self) -> lex.LexToken | None:
        tok = self.lexer.token()
        if tok is not None:
            if tok.type in _OPENERS:
                self._depth += 1
                if self._depth > self.max_depth:
                    raise GraphTooDeepError(self.max_depth)
            elif tok.type in _CLOSERS:
                self._depth -= 1
        return tok

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="document", **kwargs)

    def parse(self, text: str) -> Graph:
        """Parse a document and return its graph.

        Raises:
            WireSyntaxError: The text is malformed or meta keys are misused.
            GraphTooDeepError: Nesting exceeds ``max_depth``.
        """
        if self.parser is None:
            self.build(debug=False, write_tables=False)
        self._nodes = {}
        self._depth = 0
        self.lexer.input(text)
        root = self.parser.parse(lexer=self.lexer.lexer, tokenfunc=self._token)
        return Graph(root, self._nodes)


def shared_parser(max_depth: int = DEFAULT_MAX_DEPTH) -> GraphParser:
    """Return this thread's built parser, limited to ``max_depth``."""
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = GraphParser()
        parser.build(debug=False, write_tables=False)
        _local.parser = parser
    parser.max_depth = max_depth
    return parser
