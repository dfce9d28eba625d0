"""Encoding and decoding of stored row blocks.

A row is stored as one text block::

    TIMESTAMP: 2025-08-19T12:00:00.000000Z
    DATA:
      id: 1
      name: 'Alice'

Rows of flexible tables (no schema) use positional keys ``[0]``, ``[1]``, ...
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from chanql.errors import CorruptRow, LiteralParseError
from chanql.parsing.value_parser import parse_literal, split_values
from chanql.types import Schema, SqlValue, render_value

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_HEADER_RE = re.compile(r"TIMESTAMP: (?P<timestamp>[^\n]*)\nDATA:(?:\n|$)")
_ENTRY_RE = re.compile(r"  (?:`(?P<quoted>[^`\n]+)`|(?P<name>[^\n:`][^\n:]*?)): ")
_POSITIONAL_RE = re.compile(r"\[(\d+)\]")
_ISO_TIMESTAMP_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d{1,6})?(?:Z|[+-]\d{2}:\d{2})"
)
_LEGACY_TIMESTAMP_RE = re.compile(r"^\s*TIMESTAMP:\s*(?P<timestamp>[^\n]*)(?:\n|$)")

_MISSING: Any = object()


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


@dataclass(frozen=True)
class Row:
    """A decoded row: its timestamp and its values.

    ``columns`` names the values in order; it is None for positional rows
    of flexible tables.
    """

    timestamp: datetime
    values: tuple[SqlValue, ...]
    columns: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", _as_utc(self.timestamp))
        object.__setattr__(self, "values", tuple(self.values))
        if self.columns is not None:
            object.__setattr__(self, "columns", tuple(self.columns))
            if len(self.columns) != len(self.values):
                raise ValueError("Row columns and values differ in length")

    @classmethod
    def from_mapping(cls, timestamp: datetime, mapping: Mapping[str, SqlValue]) -> Row:
        return cls(timestamp, tuple(mapping.values()), tuple(mapping.keys()))

    @property
    def is_positional(self) -> bool:
        return self.columns is None

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a value by column name (exact match first, then case-insensitive)."""
        if self.columns is None:
            return default
        for col, value in zip(self.columns, self.values):
            if col == name:
                return value
        lowered = name.lower()
        for col, value in zip(self.columns, self.values):
            if col.lower() == lowered:
                return value
        return default

    def has_column(self, name: str) -> bool:
        return self.get(name, _MISSING) is not _MISSING

    def as_dict(self) -> dict[str, SqlValue]:
        """Return the values keyed by column name (positional keys for flexible rows)."""
        return dict(zip(self.keys(), self.values))

    def keys(self) -> list[str]:
        if self.columns is None:
            return [f"[{i}]" for i in range(len(self.values))]
        return list(self.columns)

    def encode(self) -> str:
        return encode_row(self.timestamp, self.values if self.columns is None else self.as_dict())


def format_timestamp(timestamp: datetime) -> str:
    """Format a timestamp as ISO-8601 UTC with microseconds."""
    return _as_utc(timestamp).strftime(TIMESTAMP_FORMAT)


def encode_row(
    timestamp: datetime, values: Mapping[str, SqlValue] | Sequence[SqlValue]
) -> str:
    """Encode a row into its canonical stored block.

    Args:
        timestamp: When the row was written.
        values: Column name to value in schema order, or a positional list
            for a flexible table.
    """
    if isinstance(values, Mapping):
        items = list(values.items())
    else:
        items = [(f"[{i}]", value) for i, value in enumerate(values)]

    lines = [f"TIMESTAMP: {format_timestamp(timestamp)}", "DATA:"]
    for name, value in items:
        lines.append(f"  {_entry_name(name)}: {render_value(value)}")
    return "\n".join(lines)


def _entry_name(name: str) -> str:
    # Bare names end at the first colon
    if ":" in name or name.startswith("`"):
        return f"`{name}`"
    return name


def decode_row(
    content: str,
    schema: Schema | None = None,
    fallback_timestamp: datetime | None = None,
) -> Row:
    """Decode a stored block back into a Row.

    The canonical format is tried first; blocks written by older versions
    are then read with the permissive legacy format.

    Args:
        content: The stored block.
        schema: If given (and not flexible), values are returned in schema
            order and every schema column must be present.
        fallback_timestamp: Timestamp of the stored unit, used by legacy
            blocks that carry none of their own.

    Raises:
        CorruptRow: The block cannot be decoded. Scans skip such rows.
    """
    try:
        row = _decode_canonical(content)
    except CorruptRow:
        row = _decode_legacy(content, fallback_timestamp)
    if schema is None or schema.is_flexible:
        return row
    return _conform_to_schema(row, schema)


def _parse_canonical_timestamp(text: str) -> datetime:
    if not _ISO_TIMESTAMP_RE.fullmatch(text):
        raise CorruptRow(f"malformed timestamp {text!r}")
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise CorruptRow(f"malformed timestamp {text!r}") from None


def _scan_quoted(body: str, start: int) -> int:
    """Return the index just past the string literal opening at ``start``."""
    i = start + 1
    while True:
        end = body.find("'", i)
        if end == -1:
            raise CorruptRow("unterminated string in data section")
        if body.startswith("''", end):
            i = end + 2
            continue
        return end + 1


def _decode_canonical(content: str) -> Row:
    header = _HEADER_RE.match(content)
    if header is None:
        raise CorruptRow("missing TIMESTAMP/DATA header")
    timestamp = _parse_canonical_timestamp(header.group("timestamp"))

    body = content[header.end():]
    names: list[str] = []
    values: list[SqlValue] = []
    pos = 0

    while pos < len(body):
        entry = _ENTRY_RE.match(body, pos)
        if entry is None:
            if body[pos:].strip() == "":
                break
            raise CorruptRow(f"unreadable data line at offset {pos}")
        pos = entry.end()
        if body.startswith("'", pos):
            end = _scan_quoted(body, pos)
        else:
            end = body.find("\n", pos)
            if end == -1:
                end = len(body)
        raw = body[pos:end]
        if end < len(body) and body[end] != "\n":
            raise CorruptRow(f"unexpected text after value {raw!r}")
        try:
            values.append(parse_literal(raw))
        except LiteralParseError:
            raise CorruptRow(f"invalid value {raw!r}") from None
        names.append(entry.group("quoted") or entry.group("name"))
        pos = end + 1

    if len(set(names)) != len(names):
        raise CorruptRow("duplicate column in data section")
    return _build_row(timestamp, names, values)


def _build_row(timestamp: datetime, names: list[str], values: list[SqlValue]) -> Row:
    positions = [_POSITIONAL_RE.fullmatch(name) for name in names]
    if all(positions) and [int(m.group(1)) for m in positions if m] == list(range(len(names))):
        return Row(timestamp, tuple(values))
    return Row(timestamp, tuple(values), tuple(names))


# --- Legacy blocks ---


def _legacy_value(text: str) -> SqlValue:
    """Best-effort value inference for blocks without quoting rules."""
    text = text.strip()
    try:
        return parse_literal(text)
    except LiteralParseError:
        pass
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        return text[1:-1]
    return text


def _decode_legacy(content: str, fallback_timestamp: datetime | None) -> Row:
    body = content
    timestamp = fallback_timestamp
    header = _LEGACY_TIMESTAMP_RE.match(body)
    if header is not None:
        text = header.group("timestamp").strip()
        try:
            timestamp = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise CorruptRow(f"malformed timestamp {text!r}") from None
        body = body[header.end():]
    if timestamp is None:
        raise CorruptRow("no timestamp in block and none supplied")

    data_start = body.find("DATA:")
    if data_start != -1:
        names: list[str] = []
        values: list[SqlValue] = []
        for line in body[data_start + len("DATA:"):].splitlines():
            if not line.strip():
                continue
            name, sep, raw = line.partition(":")
            if not sep or not name.strip():
                raise CorruptRow(f"unreadable data line {line.strip()!r}")
            names.append(name.strip())
            values.append(_legacy_value(raw))
        if not names:
            raise CorruptRow("empty data section")
        return _build_row(timestamp, names, values)

    if not body.strip():
        raise CorruptRow("empty block")
    try:
        pieces = split_values(body.strip())
    except LiteralParseError:
        raise CorruptRow("unterminated string in value list") from None
    return Row(timestamp, tuple(_legacy_value(piece) for piece in pieces))


def _conform_to_schema(row: Row, schema: Schema) -> Row:
    """Return the row's values in schema order."""
    if row.is_positional:
        if len(row.values) != len(schema):
            raise CorruptRow(
                f"row has {len(row.values)} values but the schema has {len(schema)} columns"
            )
        return Row(row.timestamp, row.values, tuple(schema.names))

    values: list[SqlValue] = []
    for col in schema:
        value = row.get(col.name, _MISSING)
        if value is _MISSING:
            raise CorruptRow(f"missing column '{col.name}'")
        values.append(value)
    return Row(row.timestamp, tuple(values), tuple(schema.names))
