"""Tests for the wire lexer and the graph parser."""

from __future__ import annotations

import math

import pytest

from graph_io.errors import GraphIOError, GraphTooDeepError, WireSyntaxError
from graph_io.graph import GraphNode, NodeKind
from graph_io.parsing import GraphParser, WireLexer, shared_parser


@pytest.fixture
def lexer():
    lexer = WireLexer()
    lexer.build()
    return lexer


@pytest.fixture
def parser():
    return GraphParser()


# ---- Lexer ----


class TestLexer:
    def test_punctuation_and_scalars(self, lexer):
        tokens = lexer.tokenize('{"a": [1, -2.5e3, true, null]}')
        assert [t.type for t in tokens] == [
            "LBRACE", "STRING", "COLON", "LBRACKET", "NUMBER", "COMMA",
            "NUMBER", "COMMA", "TRUE", "COMMA", "NULL", "RBRACKET", "RBRACE",
        ]
        assert tokens[4].value == 1
        assert tokens[6].value == -2500.0

    def test_string_unescaped(self, lexer):
        (tok,) = lexer.tokenize(r'"a\"bé\n"')
        assert tok.value == 'a"bé\n'

    def test_non_finite_literals(self, lexer):
        values = [t.value for t in lexer.tokenize("NaN Infinity -Infinity")]
        assert math.isnan(values[0])
        assert values[1:] == [float("inf"), float("-inf")]

    def test_unknown_word(self, lexer):
        with pytest.raises(WireSyntaxError, match="Unexpected word 'nope'"):
            lexer.tokenize("nope")

    def test_position_reported(self, lexer):
        """Errors carry 1-based line and column."""
        with pytest.raises(WireSyntaxError) as info:
            lexer.tokenize('[1,\n  #]')
        assert info.value.line == 2
        assert info.value.column == 3

    def test_unterminated_string(self, lexer):
        with pytest.raises(WireSyntaxError):
            lexer.tokenize('"abc')

    def test_lineno_reset_between_inputs(self, lexer):
        lexer.tokenize("\n\n1")
        tokens = lexer.tokenize("2")
        assert tokens[0].lineno == 1


# ---- Node kinds ----


class TestNodeKinds:
    def test_scalar_root(self, parser):
        graph = parser.parse("42")
        assert graph.root == 42
        assert graph.nodes == {}

    def test_members(self, parser):
        root = parser.parse('{"@type": "x.Point", "x": 1, "y": 2}').root
        assert root.kind is NodeKind.MEMBERS
        assert root.type_name == "x.Point"
        assert root.members == {"x": 1, "y": 2}

    def test_bare_array(self, parser):
        root = parser.parse("[1, [2], {}]").root
        assert root.kind is NodeKind.ARRAY
        assert root.items[0] == 1
        assert root.items[1].kind is NodeKind.ARRAY
        assert root.items[2].kind is NodeKind.MEMBERS

    def test_items_object(self, parser):
        root = parser.parse('{"@type": "set", "@id": 1, "@items": [1, 2]}').root
        assert root.kind is NodeKind.ARRAY
        assert root.identity == 1
        assert root.items == [1, 2]

    def test_entries(self, parser):
        root = parser.parse('{"@keys": [1, 2], "@items": ["a", "b"]}').root
        assert root.kind is NodeKind.ENTRIES
        assert root.keys == [1, 2]
        assert root.items == ["a", "b"]

    def test_primitive(self, parser):
        root = parser.parse('{"@type": "decimal.Decimal", "value": "1.5"}').root
        assert root.kind is NodeKind.PRIMITIVE
        assert root.value == "1.5"

    def test_untyped_value_member(self, parser):
        """Without @type a lone "value" key is an ordinary member."""
        root = parser.parse('{"value": 3}').root
        assert root.kind is NodeKind.MEMBERS
        assert root.members == {"value": 3}

    def test_reference(self, parser):
        graph = parser.parse('[{"@id": 1, "n": 1}, {"@ref": 1}]')
        ref = graph.root.items[1]
        assert ref.kind is NodeKind.REFERENCE
        assert ref.ref == 1
        assert graph.nodes[1] is graph.root.items[0]
        assert graph.references() == [1]

    def test_forward_reference_allowed(self, parser):
        """A reference may precede its definition."""
        graph = parser.parse('{"a": {"@ref": 2}, "b": {"@id": 2}}')
        assert graph.root.members["a"].ref == 2
        assert 2 in graph.nodes

    def test_dangling_reference_parses(self, parser):
        """Unresolved identities are detected when materializing, not parsing."""
        graph = parser.parse('{"@ref": 9}')
        assert graph.nodes == {}

    def test_line_recorded(self, parser):
        root = parser.parse('[\n\n{"a": 1}]').root
        assert root.items[0].line == 3

    def test_to_plain(self, parser):
        text = '{"@type": "T", "@id": 1, "a": [1, {"@ref": 1}]}'
        assert parser.parse(text).root.to_plain() == {"@type": "T", "@id": 1, "a": [1, {"@ref": 1}]}

    def test_walk_order(self, parser):
        graph = parser.parse('{"a": {"b": []}, "c": {}}')
        kinds = [node.kind for node in graph.walk()]
        assert kinds == [NodeKind.MEMBERS, NodeKind.MEMBERS, NodeKind.ARRAY, NodeKind.MEMBERS]
        assert all(isinstance(node, GraphNode) for node in graph.walk())


# ---- Errors ----


class TestParseErrors:
    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "{",
            "[1,]",
            '{"a" 1}',
            '{"a": 1,}',
            "[1] 2",
            "{1: 2}",
        ],
    )
    def test_malformed(self, parser, text):
        with pytest.raises(WireSyntaxError):
            parser.parse(text)

    @pytest.mark.parametrize(
        "text, message",
        [
            ('{"@ref": 1, "x": 2}', "@ref must be the only key"),
            ('{"@ref": "1"}', "@ref must be a non-negative integer"),
            ('{"@id": -1}', "non-negative"),
            ('{"@id": 1.5}', "non-negative integer"),
            ('[{"@id": 1}, {"@id": 1}]', "Duplicate @id 1"),
            ('{"@type": 3}', "@type must be a string"),
            ('{"@keys": [1]}', "@keys without @items"),
            ('{"@keys": [1], "@items": []}', "@keys has 1 entries"),
            ('{"@items": [], "x": 1}', "@items object cannot have other members"),
            ('{"@items": 3}', "@items must be an array"),
            ('{"@items": {"@id": 1, "@items": []}}', "@items must be an array"),
            ('{"@id": 1, "@id": 2}', "more than one @id"),
        ],
    )
    def test_meta_misuse(self, parser, text, message):
        with pytest.raises(WireSyntaxError, match=message):
            parser.parse(text)

    def test_unexpected_token_shown(self, parser):
        with pytest.raises(WireSyntaxError, match="Unexpected null at line 1, column 5"):
            parser.parse("[1] null")

    def test_end_of_input(self, parser):
        with pytest.raises(WireSyntaxError, match="Unexpected end of input at line 2"):
            parser.parse("[1,\n")

    def test_position_of_object_error(self, parser):
        """Errors found once an object is complete point at its opening brace."""
        with pytest.raises(WireSyntaxError) as info:
            parser.parse('[1,\n  {"@ref": 1,\n   "x": 2}\n]')
        assert (info.value.line, info.value.column) == (2, 3)

    def test_error_is_graph_io_error(self, parser):
        with pytest.raises(GraphIOError):
            parser.parse("[")

    def test_too_deep(self):
        parser = GraphParser(max_depth=5)
        parser.parse("[" * 5 + "]" * 5)
        with pytest.raises(GraphTooDeepError):
            parser.parse("[" * 6 + "]" * 6)

    def test_parser_reusable(self, parser):
        """State from a failed parse does not leak into the next one."""
        with pytest.raises(WireSyntaxError):
            parser.parse('[{"@id": 1}, {"@id": 1}]')
        graph = parser.parse('{"@id": 1}')
        assert list(graph.nodes) == [1]


class TestSharedParser:
    def test_built_once_per_thread(self):
        first = shared_parser()
        assert shared_parser() is first
        assert first.parser is not None

    def test_depth_applied_per_call(self):
        with pytest.raises(GraphTooDeepError):
            shared_parser(3).parse("[[[[]]]]")
        assert shared_parser(10).parse("[[[[]]]]").root.kind is NodeKind.ARRAY

    def test_graphs_independent(self):
        """Each parse gets its own arena even though the parser is reused."""
        first = shared_parser().parse('{"@id": 1}')
        second = shared_parser().parse('{"@id": 2}')
        assert list(first.nodes) == [1]
        assert list(second.nodes) == [2]
