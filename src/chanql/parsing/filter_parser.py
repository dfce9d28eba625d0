"""Parser for WHERE filter expressions.

Grammar (keywords are case-insensitive)::

    condition : condition OR condition
              | condition AND condition
              | LPAREN condition RPAREN
              | IDENTIFIER EQ literal

AND binds tighter than OR; parentheses override both.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Union

import ply.yacc as yacc

from chanql.errors import FilterSyntaxError, LiteralParseError
from chanql.parsing.filter_lexer import FilterLexer
from chanql.parsing.value_parser import parse_literal
from chanql.types import SqlValue


@dataclass(frozen=True)
class Comparison:
    """An equality test ``column = literal``."""

    column: str
    value: SqlValue


@dataclass(frozen=True)
class And:
    """Both sides must match."""

    left: FilterExpr
    right: FilterExpr


@dataclass(frozen=True)
class Or:
    """Either side must match."""

    left: FilterExpr
    right: FilterExpr


FilterExpr = Union[Comparison, And, Or]


class FilterParser:
    """Parser for filter expressions."""

    tokens = FilterLexer.tokens

    # Operator precedence
    precedence = (
        ("left", "OR"),
        ("left", "AND"),
    )

    def __init__(self) -> None:
        self.lexer = FilterLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_condition_comparison(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER EQ literal"""
        p[0] = Comparison(column=p[1], value=p[3])

    def p_condition_and(self, p: yacc.YaccProduction) -> None:
        """condition : condition AND condition"""
        p[0] = And(left=p[1], right=p[3])

    def p_condition_or(self, p: yacc.YaccProduction) -> None:
        """condition : condition OR condition"""
        p[0] = Or(left=p[1], right=p[3])

    def p_condition_paren(self, p: yacc.YaccProduction) -> None:
        """condition : LPAREN condition RPAREN"""
        p[0] = p[2]

    def p_literal_text(self, p: yacc.YaccProduction) -> None:
        """literal : STRING
                   | NUMBER"""
        try:
            p[0] = parse_literal(p[1])
        except LiteralParseError as e:
            raise FilterSyntaxError(f"{e} (position {p.lexpos(1)})", p.lexpos(1)) from None

    def p_literal_true(self, p: yacc.YaccProduction) -> None:
        """literal : TRUE"""
        p[0] = True

    def p_literal_false(self, p: yacc.YaccProduction) -> None:
        """literal : FALSE"""
        p[0] = False

    def p_literal_null(self, p: yacc.YaccProduction) -> None:
        """literal : NULL"""
        p[0] = None

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p is None:
            raise FilterSyntaxError(
                "Syntax error at end of input: missing operand or closing parenthesis"
            )
        if p.type == "RPAREN":
            raise FilterSyntaxError(f"Unmatched ')' at position {p.lexpos}", p.lexpos)
        if p.type == "IDENTIFIER" and self._after_eq(p):
            raise FilterSyntaxError(
                f"Invalid value '{p.value}' at position {p.lexpos}: "
                "string literals require single quotes",
                p.lexpos,
            )
        raise FilterSyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})", p.lexpos)

    def _after_eq(self, p: yacc.YaccProduction) -> bool:
        text = self.lexer.lexer.lexdata[: p.lexpos].rstrip()
        return text.endswith("=")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="condition", **kwargs)

    def parse(self, data: str) -> FilterExpr:
        """Parse a filter expression into its tree."""
        if not data.strip():
            raise FilterSyntaxError("Empty filter expression")

        if self.parser is None:
            self.build(debug=False, write_tables=False)

        return self.parser.parse(data, lexer=self.lexer.lexer)


_local = threading.local()


def parse_filter(text: str) -> FilterExpr:
    """Parse a WHERE expression using a per-thread parser.

    Raises:
        FilterSyntaxError: Unbalanced parentheses, a missing operand, an
            unsupported operator or an invalid literal.
    """
    parser = getattr(_local, "filter_parser", None)
    if parser is None:
        parser = FilterParser()
        _local.filter_parser = parser
    return parser.parse(text)
