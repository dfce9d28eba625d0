"""Lexer for column definition lists."""

import ply.lex as lex

from chanql.errors import SchemaSyntaxError


class SchemaLexer:
    """Lexer for tokenizing ``name TYPE[(param)] [constraints], ...`` text."""

    # Reserved keywords (matched case-insensitively)
    reserved = {
        "primary": "PRIMARY",
        "key": "KEY",
        "not": "NOT",
        "null": "NULL",
    }

    # Token list
    tokens = [
        "IDENTIFIER",
        "NUMBER",
        "LPAREN",
        "RPAREN",
        "COMMA",
    ] + list(reserved.values())

    # Simple tokens
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_COMMA = r","

    # Ignored characters (spaces, tabs, and newlines)
    t_ignore = " \t\r\n"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_NUMBER(self, t: lex.LexToken) -> lex.LexToken:
        r"-?\d+(?:\.\d+)?"
        # Kept as text; range and integrality are checked with the type
        return t

    def t_BACKTICK_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"`[^`\n]+`"
        # Quoted names are never keywords
        t.value = t.value[1:-1]
        t.type = "IDENTIFIER"
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        return t

    def t_error(self, t: lex.LexToken) -> None:
        raise SchemaSyntaxError(f"illegal character '{t.value[0]}'", t.lexpos)

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
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
