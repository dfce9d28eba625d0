"""Lexer for chanql commands."""

import ply.lex as lex

from chanql.errors import CommandSyntaxError, UnterminatedString


class CommandLexer:
    """Lexer for tokenizing commands like ``insert into users values (1, 'Al')``.

    Everything after the WHERE keyword is returned as a single CONDITION
    token; the filter parser reads it.
    """

    # Reserved keywords (matched case-insensitively)
    reserved = {
        "create": "CREATE",
        "drop": "DROP",
        "db": "DB",
        "database": "DATABASE",
        "table": "TABLE",
        "use": "USE",
        "describe": "DESCRIBE",
        "desc": "DESC",
        "show": "SHOW",
        "databases": "DATABASES",
        "dbs": "DBS",
        "tables": "TABLES",
        "insert": "INSERT",
        "into": "INTO",
        "values": "VALUES",
        "select": "SELECT",
        "distinct": "DISTINCT",
        "from": "FROM",
        "where": "WHERE",
        "delete": "DELETE",
        "update": "UPDATE",
        "set": "SET",
        "true": "TRUE",
        "false": "FALSE",
        "null": "NULL",
    }

    # Token list
    tokens = [
        "IDENTIFIER",
        "STRING",
        "NUMBER",
        "CONDITION",
        "STAR",
        "COMMA",
        "EQ",
        "LPAREN",
        "RPAREN",
    ] + list(reserved.values())

    # Lexer states: condition state for the text after WHERE
    states = (("condition", "exclusive"),)

    # Simple tokens (INITIAL state)
    t_STAR = r"\*"
    t_COMMA = r","
    t_EQ = r"="
    t_LPAREN = r"\("
    t_RPAREN = r"\)"

    # Ignored characters (spaces, tabs, and newlines)
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
        # Quoted names are never keywords
        t.value = t.value[1:-1]
        t.type = "IDENTIFIER"
        return t

    def t_POSITIONAL(self, t: lex.LexToken) -> lex.LexToken:
        r"\[\d+\]"
        # Column keys of flexible tables, e.g. [0]
        t.type = "IDENTIFIER"
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        if t.type == "WHERE":
            t.lexer.begin("condition")
        return t

    def t_error(self, t: lex.LexToken) -> None:
        if t.value[0] == "'":
            raise UnterminatedString(t.lexpos)
        raise CommandSyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    # --- Exclusive condition state tokens ---

    t_condition_ignore = ""

    def t_condition_CONDITION(self, t: lex.LexToken) -> lex.LexToken:
        r"[\s\S]+"
        t.lexer.begin("INITIAL")
        return t

    def t_condition_error(self, t: lex.LexToken) -> None:
        t.lexer.begin("INITIAL")
        raise CommandSyntaxError(f"Unreadable condition at position {t.lexpos}")

    # --- Lexer methods ---

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.begin("INITIAL")
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
