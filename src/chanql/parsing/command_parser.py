"""Parser for chanql commands such as ``select * from users where id = 1``.

Grammar (keywords are case-insensitive)::

    command : CREATE (DB | DATABASE) name
            | DROP (DB | DATABASE) name
            | USE name
            | CREATE TABLE name [LPAREN column_text RPAREN]
            | DROP TABLE name
            | (DESCRIBE | DESC) name
            | SHOW (DATABASES | DBS | TABLES)
            | INSERT [INTO] name [VALUES] (LPAREN literals RPAREN | literals)
            | SELECT [DISTINCT] (STAR | names) FROM name [DISTINCT] [WHERE CONDITION]
            | DELETE FROM name [WHERE CONDITION]
            | UPDATE name SET assignments [WHERE CONDITION]

The column definitions of CREATE TABLE are handed to the schema parser as
text, and the CONDITION after WHERE to the filter parser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import ply.yacc as yacc

from chanql.errors import CommandSyntaxError
from chanql.parsing.command_lexer import CommandLexer
from chanql.parsing.filter_parser import FilterExpr, parse_filter
from chanql.parsing.value_parser import parse_literal, unquoted_chars
from chanql.types import SqlValue


@dataclass
class CreateDatabaseQuery:
    """A CREATE DB query."""

    name: str


@dataclass
class DropDatabaseQuery:
    """A DROP DB query."""

    name: str


@dataclass
class UseQuery:
    """A USE query to select the current database."""

    name: str


@dataclass
class CreateTableQuery:
    """A CREATE TABLE query. ``schema_text`` is None for a flexible table."""

    name: str
    schema_text: str | None = None


@dataclass
class DropTableQuery:
    """A DROP TABLE query."""

    name: str


@dataclass
class DescribeQuery:
    """A DESCRIBE query."""

    table: str


@dataclass
class ShowDatabasesQuery:
    """A SHOW DATABASES query."""

    pass


@dataclass
class ShowTablesQuery:
    """A SHOW TABLES query."""

    pass


@dataclass
class InsertQuery:
    """An INSERT query with values in column order."""

    table: str
    values: list[SqlValue] = field(default_factory=list)


@dataclass
class SelectQuery:
    """A SELECT query. ``columns`` is ``["*"]`` for all columns."""

    table: str
    columns: list[str] = field(default_factory=lambda: ["*"])
    distinct: bool = False
    where: FilterExpr | None = None


@dataclass
class DeleteQuery:
    """A DELETE query; no WHERE clause deletes every row."""

    table: str
    where: FilterExpr | None = None


@dataclass
class UpdateQuery:
    """An UPDATE query."""

    table: str
    assignments: list[tuple[str, SqlValue]] = field(default_factory=list)
    where: FilterExpr | None = None


Query = (
    CreateDatabaseQuery | DropDatabaseQuery | UseQuery | CreateTableQuery | DropTableQuery
    | DescribeQuery | ShowDatabasesQuery | ShowTablesQuery | InsertQuery | SelectQuery
    | DeleteQuery | UpdateQuery
)


_USAGE = {
    "create": "create db <name> | create table <name> [(<column definitions>)]",
    "drop": "drop db <name> | drop table <name>",
    "use": "use <database>",
    "describe": "describe <table>",
    "desc": "describe <table>",
    "show": "show databases | show tables",
    "insert": "insert [into] <table> [values] (<value>, ...)",
    "select": "select [distinct] <columns> from <table> [distinct] [where <condition>]",
    "delete": "delete from <table> [where <condition>]",
    "update": "update <table> set <column> = <value>[, ...] [where <condition>]",
}

_LEADING_WORD_RE = re.compile(r"[A-Za-z_]*")


def split_statements(text: str) -> list[str]:
    """Split a script into statements on ``;`` outside quoted strings.

    Lines starting with ``--`` are dropped first; blank statements are
    dropped after splitting.

    Raises:
        UnterminatedString: A quoted string is never closed.
    """
    lines = [line for line in text.splitlines() if not line.strip().startswith("--")]
    script = "\n".join(lines)

    statements: list[str] = []
    start = 0
    for i, ch in unquoted_chars(script):
        if ch == ";":
            statements.append(script[start:i].strip())
            start = i + 1
    statements.append(script[start:].strip())
    return [statement for statement in statements if statement]


class CommandParser:
    """Parser for chanql commands."""

    tokens = CommandLexer.tokens

    def __init__(self) -> None:
        self.lexer = CommandLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    # --- Databases ---

    def p_command_create_database(self, p: yacc.YaccProduction) -> None:
        """command : CREATE database_word name"""
        p[0] = CreateDatabaseQuery(name=p[3])

    def p_command_drop_database(self, p: yacc.YaccProduction) -> None:
        """command : DROP database_word name"""
        p[0] = DropDatabaseQuery(name=p[3])

    def p_database_word(self, p: yacc.YaccProduction) -> None:
        """database_word : DB
                         | DATABASE"""
        pass

    def p_command_use(self, p: yacc.YaccProduction) -> None:
        """command : USE name"""
        p[0] = UseQuery(name=p[2])

    def p_command_show_databases(self, p: yacc.YaccProduction) -> None:
        """command : SHOW DATABASES
                   | SHOW DBS"""
        p[0] = ShowDatabasesQuery()

    def p_command_show_tables(self, p: yacc.YaccProduction) -> None:
        """command : SHOW TABLES"""
        p[0] = ShowTablesQuery()

    # --- Tables ---

    def p_command_create_table(self, p: yacc.YaccProduction) -> None:
        """command : CREATE TABLE name"""
        p[0] = CreateTableQuery(name=p[3])

    def p_command_create_table_columns(self, p: yacc.YaccProduction) -> None:
        """command : CREATE TABLE name LPAREN column_text RPAREN"""
        # The schema parser reads the original text between the parentheses
        data = self.lexer.lexer.lexdata
        schema_text = data[p.lexpos(4) + 1 : p.lexpos(6)].strip()
        p[0] = CreateTableQuery(name=p[3], schema_text=schema_text or None)

    def p_column_text(self, p: yacc.YaccProduction) -> None:
        """column_text : column_text column_item
                       | empty"""
        pass

    def p_column_item(self, p: yacc.YaccProduction) -> None:
        """column_item : LPAREN column_text RPAREN
                       | IDENTIFIER
                       | STRING
                       | NUMBER
                       | STAR
                       | COMMA
                       | EQ
                       | CREATE
                       | DROP
                       | DB
                       | DATABASE
                       | TABLE
                       | USE
                       | DESCRIBE
                       | DESC
                       | SHOW
                       | DATABASES
                       | DBS
                       | TABLES
                       | INSERT
                       | INTO
                       | VALUES
                       | SELECT
                       | DISTINCT
                       | FROM
                       | DELETE
                       | UPDATE
                       | SET
                       | TRUE
                       | FALSE
                       | NULL"""
        pass

    def p_command_drop_table(self, p: yacc.YaccProduction) -> None:
        """command : DROP TABLE name"""
        p[0] = DropTableQuery(name=p[3])

    def p_command_describe(self, p: yacc.YaccProduction) -> None:
        """command : DESCRIBE name
                   | DESC name"""
        p[0] = DescribeQuery(table=p[2])

    # --- Rows ---

    def p_command_insert(self, p: yacc.YaccProduction) -> None:
        """command : INSERT into_opt name values_opt value_list"""
        if not p[5]:
            raise CommandSyntaxError(
                "INSERT needs at least one value, e.g. insert into users values (1, 'Alice')"
            )
        p[0] = InsertQuery(table=p[3], values=p[5])

    def p_into_opt(self, p: yacc.YaccProduction) -> None:
        """into_opt : INTO
                    | empty"""
        pass

    def p_values_opt(self, p: yacc.YaccProduction) -> None:
        """values_opt : VALUES
                      | empty"""
        pass

    def p_value_list_parens(self, p: yacc.YaccProduction) -> None:
        """value_list : LPAREN literals RPAREN"""
        p[0] = p[2]

    def p_value_list_bare(self, p: yacc.YaccProduction) -> None:
        """value_list : literals"""
        p[0] = p[1]

    def p_literals_single(self, p: yacc.YaccProduction) -> None:
        """literals : literal_opt"""
        p[0] = p[1]

    def p_literals_multiple(self, p: yacc.YaccProduction) -> None:
        """literals : literals COMMA literal_opt"""
        p[0] = p[1] + p[3]

    def p_literal_opt(self, p: yacc.YaccProduction) -> None:
        """literal_opt : literal"""
        p[0] = [p[1]]

    def p_literal_opt_empty(self, p: yacc.YaccProduction) -> None:
        """literal_opt : empty"""
        # Stray commas leave empty pieces, which are skipped
        p[0] = []

    def p_command_select(self, p: yacc.YaccProduction) -> None:
        """command : SELECT distinct_opt select_columns FROM name distinct_opt where_opt"""
        p[0] = SelectQuery(
            table=p[5],
            columns=p[3],
            distinct=p[2] or p[6],
            where=p[7],
        )

    def p_distinct_opt(self, p: yacc.YaccProduction) -> None:
        """distinct_opt : DISTINCT
                        | empty"""
        p[0] = p[1] is not None

    def p_select_columns_star(self, p: yacc.YaccProduction) -> None:
        """select_columns : STAR"""
        p[0] = ["*"]

    def p_select_columns_names(self, p: yacc.YaccProduction) -> None:
        """select_columns : name_list"""
        p[0] = p[1]

    def p_name_list_single(self, p: yacc.YaccProduction) -> None:
        """name_list : name"""
        p[0] = [p[1]]

    def p_name_list_multiple(self, p: yacc.YaccProduction) -> None:
        """name_list : name_list COMMA name"""
        p[0] = p[1] + [p[3]]

    def p_command_delete(self, p: yacc.YaccProduction) -> None:
        """command : DELETE FROM name where_opt"""
        p[0] = DeleteQuery(table=p[3], where=p[4])

    def p_command_update(self, p: yacc.YaccProduction) -> None:
        """command : UPDATE name SET assignments where_opt"""
        seen: set[str] = set()
        for column, _ in p[4]:
            if column.lower() in seen:
                raise CommandSyntaxError(f"Column '{column}' is assigned more than once")
            seen.add(column.lower())
        p[0] = UpdateQuery(table=p[2], assignments=p[4], where=p[5])

    def p_assignments_single(self, p: yacc.YaccProduction) -> None:
        """assignments : assignment"""
        p[0] = [p[1]]

    def p_assignments_multiple(self, p: yacc.YaccProduction) -> None:
        """assignments : assignments COMMA assignment"""
        p[0] = p[1] + [p[3]]

    def p_assignment(self, p: yacc.YaccProduction) -> None:
        """assignment : name EQ literal"""
        p[0] = (p[1], p[3])

    # --- Shared pieces ---

    def p_where_opt(self, p: yacc.YaccProduction) -> None:
        """where_opt : WHERE CONDITION"""
        p[0] = parse_filter(p[2].strip())

    def p_where_opt_missing(self, p: yacc.YaccProduction) -> None:
        """where_opt : WHERE"""
        raise CommandSyntaxError("WHERE must be followed by a condition, e.g. where id = 1")

    def p_where_opt_empty(self, p: yacc.YaccProduction) -> None:
        """where_opt : empty"""
        p[0] = None

    def p_literal(self, p: yacc.YaccProduction) -> None:
        """literal : STRING
                   | NUMBER
                   | TRUE
                   | FALSE
                   | NULL
                   | IDENTIFIER"""
        # A bare word is rejected here with the literal rules' message
        p[0] = parse_literal(p[1])

    def p_name(self, p: yacc.YaccProduction) -> None:
        """name : IDENTIFIER"""
        p[0] = p[1]

    def p_empty(self, p: yacc.YaccProduction) -> None:
        """empty :"""
        pass

    def p_error(self, p: yacc.YaccProduction) -> None:
        data = self.lexer.lexer.lexdata
        keyword = _LEADING_WORD_RE.match(data).group().lower()  # type: ignore[union-attr]
        usage = _USAGE.get(keyword)
        if usage is None:
            raise CommandSyntaxError(
                f"Unknown command '{keyword or data.split()[0]}'. Supported: create, drop, use, "
                "describe, show, insert, select, update, delete"
            )
        if p is None:
            raise CommandSyntaxError(f"Incomplete command. Usage: {usage}")
        raise CommandSyntaxError(
            f"Syntax error at '{p.value}' (position {p.lexpos}). Usage: {usage}"
        )

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="command", **kwargs)

    def parse(self, text: str) -> Query:
        """Parse a single command.

        Raises:
            CommandSyntaxError: The command is not recognised or malformed.
            LiteralParseError: A value in the command is not a valid literal.
            FilterSyntaxError: The WHERE condition is malformed.
        """
        command = text.strip().rstrip(";").strip()
        if not command:
            raise CommandSyntaxError("Empty command")

        if self.parser is None:
            self.build(debug=False, write_tables=False)

        self.lexer.lexer.begin("INITIAL")
        return self.parser.parse(command, lexer=self.lexer.lexer)
