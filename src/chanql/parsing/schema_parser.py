"""Parser for column definition lists like ``id INT PRIMARY KEY, name VARCHAR(50)``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import ply.yacc as yacc

from chanql.errors import DuplicateColumn, SchemaSyntaxError, UnknownType
from chanql.parsing.schema_lexer import SchemaLexer
from chanql.types import ColumnDef, Schema, validate_type_spec


@dataclass
class TypeSpec:
    """A type name with its raw parameter text, before validation."""

    name: str
    param: str | None = None


@dataclass
class ColumnSpec:
    """Specification for a column before its type is validated."""

    name: str
    type_spec: TypeSpec
    constraints: list[str] = field(default_factory=list)
    position: int = 0


class SchemaParser:
    """Parser for the column definition grammar."""

    tokens = SchemaLexer.tokens

    def __init__(self) -> None:
        self.lexer = SchemaLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_schema(self, p: yacc.YaccProduction) -> None:
        """schema : column_list"""
        p[0] = p[1]

    def p_column_list_single(self, p: yacc.YaccProduction) -> None:
        """column_list : column"""
        p[0] = [p[1]]

    def p_column_list_multiple(self, p: yacc.YaccProduction) -> None:
        """column_list : column_list COMMA column"""
        p[0] = p[1] + [p[3]]

    def p_column(self, p: yacc.YaccProduction) -> None:
        """column : column_name type_spec constraint_list"""
        p[0] = ColumnSpec(name=p[1], type_spec=p[2], constraints=p[3], position=p.lexpos(1))

    def p_column_name(self, p: yacc.YaccProduction) -> None:
        """column_name : IDENTIFIER
                       | KEY"""
        p[0] = p[1]

    def p_type_spec_simple(self, p: yacc.YaccProduction) -> None:
        """type_spec : IDENTIFIER"""
        p[0] = TypeSpec(name=p[1])

    def p_type_spec_param(self, p: yacc.YaccProduction) -> None:
        """type_spec : IDENTIFIER LPAREN NUMBER RPAREN
                     | IDENTIFIER LPAREN IDENTIFIER RPAREN"""
        p[0] = TypeSpec(name=p[1], param=p[3])

    def p_type_spec_empty_param(self, p: yacc.YaccProduction) -> None:
        """type_spec : IDENTIFIER LPAREN RPAREN"""
        p[0] = TypeSpec(name=p[1], param="")

    def p_constraint_list_empty(self, p: yacc.YaccProduction) -> None:
        """constraint_list : """
        p[0] = []

    def p_constraint_list(self, p: yacc.YaccProduction) -> None:
        """constraint_list : constraint_list constraint"""
        p[0] = p[1] + [p[2]]

    def p_constraint_primary_key(self, p: yacc.YaccProduction) -> None:
        """constraint : PRIMARY KEY"""
        p[0] = "primary_key"

    def p_constraint_not_null(self, p: yacc.YaccProduction) -> None:
        """constraint : NOT NULL"""
        p[0] = "not_null"

    def p_constraint_null(self, p: yacc.YaccProduction) -> None:
        """constraint : NULL"""
        p[0] = "null"

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SchemaSyntaxError(f"unexpected '{p.value}'", p.lexpos)
        else:
            raise SchemaSyntaxError("unexpected end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="schema", **kwargs)

    def parse(self, data: str) -> Schema:
        """Parse column definitions and return the validated schema.

        Empty or all-whitespace input yields an empty (flexible) schema.
        """
        if not data.strip():
            return Schema()

        if self.parser is None:
            self.build(debug=False, write_tables=False)

        specs = self.parser.parse(data, lexer=self.lexer.lexer)
        return resolve_column_specs(specs or [])


def resolve_column_specs(specs: list[ColumnSpec]) -> Schema:
    """Validate column specs in order and build a Schema.

    Raises:
        SchemaError: The first illegal type or duplicate column name.
    """
    seen: set[str] = set()
    columns: list[ColumnDef] = []

    for spec in specs:
        key = spec.name.lower()
        if key in seen:
            raise DuplicateColumn(spec.name)
        seen.add(key)

        try:
            column_type = validate_type_spec(spec.type_spec.name, spec.type_spec.param)
        except UnknownType as e:
            raise UnknownType(e.type_name, column=spec.name) from None

        columns.append(ColumnDef(
            name=spec.name,
            column_type=column_type,
            primary_key="primary_key" in spec.constraints,
            nullable="not_null" not in spec.constraints,
        ))

    return Schema(tuple(columns))
