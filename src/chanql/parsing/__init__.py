"""Parsing module for column definitions, values, filters and commands."""

from chanql.parsing.command_parser import CommandParser, split_statements
from chanql.parsing.filter_parser import FilterParser, parse_filter
from chanql.parsing.schema_parser import SchemaParser
from chanql.parsing.value_parser import parse_literal, parse_values, split_values

__all__ = [
    "CommandParser",
    "FilterParser",
    "SchemaParser",
    "parse_filter",
    "parse_literal",
    "parse_values",
    "split_statements",
    "split_values",
]
