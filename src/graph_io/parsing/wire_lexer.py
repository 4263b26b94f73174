"""Lexer for the JSON wire syntax."""

import json

import ply.lex as lex

from graph_io.errors import WireSyntaxError


class WireLexer:
    """Lexer for tokenizing graph documents.

    Accepts RFC 8259 JSON plus the ``NaN``, ``Infinity`` and ``-Infinity``
    literals. Token values are already decoded: strings are unescaped, numbers
    are ``int`` or ``float``.
    """

    # Reserved literals
    reserved = {
        "true": "TRUE",
        "false": "FALSE",
        "null": "NULL",
        "NaN": "NAN",
        "Infinity": "INFINITY",
    }

    # Token list
    tokens = [
        "STRING",
        "NUMBER",
        "LBRACE",
        "RBRACE",
        "LBRACKET",
        "RBRACKET",
        "COLON",
        "COMMA",
        "NEG_INFINITY",
    ] + list(reserved.values())

    # Simple tokens
    t_LBRACE = r"\{"
    t_RBRACE = r"\}"
    t_LBRACKET = r"\["
    t_RBRACKET = r"\]"
    t_COLON = r":"
    t_COMMA = r","

    # Ignored characters (newlines are counted separately)
    t_ignore = " \t\r"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r'"(?:[^"\\\x00-\x1f]|\\["\\/bfnrt]|\\u[0-9a-fA-F]{4})*"'
        t.value = json.loads(t.value)
        return t

    def t_NEG_INFINITY(self, t: lex.LexToken) -> lex.LexToken:
        r"-Infinity"
        t.value = float("-inf")
        return t

    def t_NUMBER(self, t: lex.LexToken) -> lex.LexToken:
        r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?"
        text = t.value
        if "." in text or "e" in text or "E" in text:
            t.value = float(text)
        else:
            t.value = int(text)
        return t

    def t_WORD(self, t: lex.LexToken) -> lex.LexToken:
        r"[A-Za-z_][A-Za-z0-9_]*"
        kind = self.reserved.get(t.value)
        if kind is None:
            self._fail(t, f"Unexpected word '{t.value}'")
        t.type = kind
        t.value = {"TRUE": True, "FALSE": False, "NULL": None, "NAN": float("nan"), "INFINITY": float("inf")}[kind]
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)
        # Newlines are whitespace; only the line count changes

    def t_error(self, t: lex.LexToken) -> None:
        self._fail(t, f"Illegal character '{t.value[0]}'")

    def _fail(self, t: lex.LexToken, message: str) -> None:
        raise WireSyntaxError(message, line=t.lexer.lineno, column=self.column(t.lexpos))

    def column(self, lexpos: int) -> int:
        """Return the 1-based column of an input offset."""
        return lexpos - self.lexer.lexdata.rfind("\n", 0, lexpos)

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.lineno = 1
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token, or None at end of input."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens
