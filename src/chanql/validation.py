"""Constraint checking for rows about to be written."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Iterable, Sequence

from chanql.codec import Row
from chanql.errors import (
    ColumnCountMismatch,
    DuplicatePrimaryKey,
    InvalidIsoFormat,
    NullNotAllowed,
    StringTooLong,
    TypeMismatch,
)
from chanql.types import ColumnDef, DataType, Schema, SqlValue, value_type_name, values_equal

_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_TIME_RE = re.compile(
    r"(\d{2}):(\d{2}):(\d{2})(?:\.\d+)?(?:Z|[+-](\d{2}):(\d{2}))?"
)

ISO_HINTS = {
    DataType.DATE: "an ISO-8601 date YYYY-MM-DD, e.g. '2023-12-25'",
    DataType.TIME: "an ISO-8601 time HH:MM:SS[.fraction][Z|+HH:MM], e.g. '14:30:00'",
    DataType.DATETIME: "an ISO-8601 datetime YYYY-MM-DDTHH:MM:SS[.fraction][Z|+HH:MM], "
    "e.g. '2023-12-25T14:30:00Z'",
}

_EXPECTED_NAMES = {
    DataType.INT: "integer",
    DataType.BOOLEAN: "boolean",
    DataType.VARCHAR: "string",
    DataType.CHAR: "string",
    DataType.FLOAT: "number",
    DataType.DOUBLE: "number",
    DataType.DECIMAL: "number",
    DataType.DATE: "string (ISO date)",
    DataType.TIME: "string (ISO time)",
    DataType.DATETIME: "string (ISO datetime)",
}

_MISSING: Any = object()


def is_iso_date(text: str) -> bool:
    """Check for a calendar-valid ``YYYY-MM-DD`` date."""
    match = _DATE_RE.fullmatch(text)
    if match is None:
        return False
    year, month, day = (int(g) for g in match.groups())
    try:
        date(year, month, day)
    except ValueError:
        return False
    return True


def is_iso_time(text: str) -> bool:
    """Check for a zero-padded ``HH:MM:SS[.fraction][Z|±HH:MM]`` time."""
    match = _TIME_RE.fullmatch(text)
    if match is None:
        return False
    hour, minute, second = int(match.group(1)), int(match.group(2)), int(match.group(3))
    if hour > 23 or minute > 59 or second > 59:
        return False
    if match.group(4) is not None:
        if int(match.group(4)) > 23 or int(match.group(5)) > 59:
            return False
    return True


def is_iso_datetime(text: str) -> bool:
    """Check for a full ``date T time`` value."""
    date_part, sep, time_part = text.partition("T")
    return bool(sep) and is_iso_date(date_part) and is_iso_time(time_part)


_ISO_CHECKS = {
    DataType.DATE: is_iso_date,
    DataType.TIME: is_iso_time,
    DataType.DATETIME: is_iso_datetime,
}


def validate_value(column: ColumnDef, value: SqlValue, position: int) -> None:
    """Check one value against its column.

    Args:
        column: The column definition.
        value: The candidate value.
        position: 1-based position of the column, for error reporting.

    Raises:
        ValidationError: The value is not acceptable for the column.
    """
    data_type = column.data_type

    if value is None:
        if not column.accepts_null:
            raise NullNotAllowed(column.name, position)
        return

    if data_type == DataType.INT:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif data_type == DataType.BOOLEAN:
        ok = isinstance(value, bool)
    elif data_type.is_numeric:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    else:
        ok = isinstance(value, str)

    if not ok:
        raise TypeMismatch(column.name, position, _EXPECTED_NAMES[data_type], value_type_name(value))

    if data_type.is_string:
        max_length = column.column_type.param
        if max_length is not None and len(value) > max_length:
            raise StringTooLong(column.name, position, len(value), max_length)
    elif data_type.is_temporal:
        if not _ISO_CHECKS[data_type](value):
            raise InvalidIsoFormat(column.name, value, ISO_HINTS[data_type])


def validate_row(schema: Schema | None, values: Sequence[SqlValue]) -> None:
    """Check arity and per-column types of a row.

    Raises:
        ColumnCountMismatch: Wrong number of values.
        ValidationError: The first column whose value is not acceptable.
    """
    if schema is None or schema.is_flexible:
        return

    if len(values) != len(schema):
        example = ", ".join(col.example_value() for col in schema)
        raise ColumnCountMismatch(len(schema), len(values), schema.names, example)

    for position, (column, value) in enumerate(zip(schema, values), start=1):
        validate_value(column, value, position)


def check_primary_key(
    schema: Schema | None, values: Sequence[SqlValue], existing_rows: Iterable[Row]
) -> None:
    """Reject a row whose primary-key values equal those of an existing row.

    Raises:
        DuplicatePrimaryKey: Another row has the same key.
    """
    if schema is None:
        return
    key_columns = schema.primary_key
    if not key_columns:
        return

    names = [col.name for col in key_columns]
    candidate = [values[schema.index_of(name)] for name in names]  # type: ignore[index]

    for row in existing_rows:
        other = [row.get(name, _MISSING) for name in names]
        if any(v is _MISSING for v in other):
            continue
        if all(values_equal(a, b) for a, b in zip(candidate, other)):
            raise DuplicatePrimaryKey(names, candidate)


def validate_insert(
    schema: Schema | None, values: Sequence[SqlValue], existing_rows: Iterable[Row] = ()
) -> None:
    """Validate a candidate row for insertion.

    Tables without a schema accept anything. Otherwise the value count, each
    value's type and size, and primary-key uniqueness against
    ``existing_rows`` are checked, stopping at the first failure.

    Args:
        schema: The table schema, or None for a flexible table.
        values: Candidate values in schema order.
        existing_rows: The rows currently in the table.

    Raises:
        ValidationError: The first rule the row breaks.
    """
    validate_row(schema, values)
    check_primary_key(schema, values, existing_rows)
