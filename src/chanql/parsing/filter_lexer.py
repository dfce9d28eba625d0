"""Lexer for WHERE filter expressions."""

import ply.lex as lex

from chanql.errors import FilterSyntaxError


class FilterLexer:
    """Lexer for tokenizing ``name='John' AND (age=25 OR age=30)``."""

    # Reserved keywords (matched case-insensitively)
    reserved = {
        "and": "AND",
        "or": "OR",
        "true": "TRUE",
        "false": "FALSE",
        "null": "NULL",
    }

    # Token list
    tokens = [
        "IDENTIFIER",
        "STRING",
        "NUMBER",
        "EQ",
        "LPAREN",
        "RPAREN",
    ] + list(reserved.values())

    # Simple tokens
    t_EQ = r"="
    t_LPAREN = r"\("
    t_RPAREN = r"\)"

    t_ignore = " \t\r\n"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"'(?:[^']|'')*'"
        # Raw text is kept; the literal is decoded by the parser
        return t

    def t_NUMBER(self, t: lex.LexToken) -> lex.LexToken:
        r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?"
        return t

    def t_BACKTICK_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"`[^`\n]+`"
        t.value = t.value[1:-1]
        t.type = "IDENTIFIER"
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        return t

    def t_error(self, t: lex.LexToken) -> None:
        ch = t.value[0]
        if ch == "'":
            raise FilterSyntaxError(
                f"Unterminated string starting at position {t.lexpos}", t.lexpos
            )
        if ch in "<>!":
            raise FilterSyntaxError(
                f"Unsupported operator at position {t.lexpos}: only '=' comparisons are supported",
                t.lexpos,
            )
        raise FilterSyntaxError(f"Illegal character '{ch}' at position {t.lexpos}", t.lexpos)

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
