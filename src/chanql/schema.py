"""Parsing and storage formatting of table schemas."""

from __future__ import annotations

import re
import threading

from chanql.errors import DuplicateColumn, SchemaError, UnknownType
from chanql.parsing.schema_parser import SchemaParser
from chanql.types import TYPE_NAMES, ColumnDef, ColumnType, Schema

# Stored schema text is prefixed with this marker in the table's metadata
SCHEMA_PREFIX = "Schema: "

_local = threading.local()

_LEGACY_TYPE_RE = re.compile(r"([A-Za-z_]+)\s*(?:\(([^)]*)\))?")


def _schema_parser() -> SchemaParser:
    # PLY parsers keep per-parse state, so each thread gets its own
    parser = getattr(_local, "schema_parser", None)
    if parser is None:
        parser = SchemaParser()
        _local.schema_parser = parser
    return parser


def parse_schema(text: str) -> Schema:
    """Parse column definition text into a Schema.

    Args:
        text: Comma-separated definitions of the form
            ``name TYPE[(param)] [NOT NULL] [PRIMARY KEY]``.

    Returns:
        The ordered schema; empty for empty input (a flexible table).

    Raises:
        SchemaError: The first problem found, in column order.
    """
    return _schema_parser().parse(text)


def format_stored_schema(schema: Schema) -> str:
    """Format a schema as the single-line text kept in table metadata."""
    return SCHEMA_PREFIX + schema.to_text()


def parse_stored_schema(text: str | None) -> Schema:
    """Read a schema back from table metadata.

    The canonical grammar is tried first. Only if it fails is the text read
    with the permissive legacy grammar, which accepts older ``name: TYPE``
    pairs and types missing their size or precision.

    Returns:
        The schema, or an empty schema when the metadata holds none.

    Raises:
        SchemaError: The text is readable by neither grammar.
    """
    if text is None:
        return Schema()
    body = text.strip()
    marker = body.find(SCHEMA_PREFIX.strip())
    if marker != -1:
        body = body[marker + len(SCHEMA_PREFIX.strip()):].strip()
    if not body:
        return Schema()

    try:
        return parse_schema(body)
    except SchemaError as canonical_error:
        try:
            return parse_legacy_schema(body)
        except SchemaError:
            raise canonical_error from None


def parse_legacy_schema(text: str) -> Schema:
    """Parse schema text written by older versions.

    Missing or malformed sizes and precisions become unconstrained, and
    unrecognised trailing words are ignored. Unknown type names and
    duplicate column names still fail.
    """
    columns: list[ColumnDef] = []
    seen: set[str] = set()

    for piece in text.split(","):
        words = piece.replace(":", " ").split()
        if not words:
            continue
        if len(words) < 2:
            raise UnknownType("", column=words[0])

        name = words[0]
        if name.lower() in seen:
            raise DuplicateColumn(name)
        seen.add(name.lower())

        # Re-join so "VARCHAR (50)" and "VARCHAR(50)" read the same
        type_text = " ".join(words[1:])
        match = _LEGACY_TYPE_RE.match(type_text)
        data_type = TYPE_NAMES.get(match.group(1).upper()) if match else None
        if data_type is None:
            raise UnknownType(words[1], column=name)

        param = None
        if (data_type.is_string or data_type.is_numeric) and match.group(2):
            try:
                param = int(match.group(2).strip())
            except ValueError:
                param = None
            if param is not None and param < 1:
                param = None

        rest = type_text[match.end():].upper().split()
        phrase = " ".join(rest)
        columns.append(ColumnDef(
            name=name,
            column_type=ColumnType(data_type, param),
            primary_key="PRIMARY KEY" in phrase,
            nullable="NOT NULL" not in phrase,
        ))

    return Schema(tuple(columns))
