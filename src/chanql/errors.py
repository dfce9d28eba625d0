"""Error types raised by chanql.

Every public operation raises exactly one of these for the first problem it
finds. The attributes carry the structured fields; the message is only a
convenience for display.
"""

from __future__ import annotations

from typing import Any, Sequence


class ChanqlError(Exception):
    """Base class for all chanql errors."""


# --- Schema errors ---


class SchemaError(ChanqlError, ValueError):
    """A column definition or type specification is not legal."""


class MissingSize(SchemaError):
    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"{type_name} requires a size, e.g. {type_name}(255)")


class SizeOutOfRange(SchemaError):
    def __init__(self, type_name: str, size: Any) -> None:
        self.type_name = type_name
        self.size = size
        super().__init__(
            f"{type_name} size must be an integer between 1 and 65535, got {size!r}"
        )


class ParamNotAllowed(SchemaError):
    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"{type_name} does not take a size or precision")


class PrecisionOutOfRange(SchemaError):
    def __init__(self, type_name: str, precision: Any) -> None:
        self.type_name = type_name
        self.precision = precision
        super().__init__(
            f"{type_name} precision must be an integer between 1 and 65, got {precision!r}"
        )


class UnknownType(SchemaError):
    def __init__(self, type_name: str, column: str | None = None) -> None:
        self.type_name = type_name
        self.column = column
        where = f" for column '{column}'" if column else ""
        super().__init__(
            f"'{type_name}' is not a valid data type{where}. Supported types: "
            "INT, VARCHAR, CHAR, BOOLEAN, FLOAT, DOUBLE, DECIMAL, DATE, TIME, DATETIME"
        )


class DuplicateColumn(SchemaError):
    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f"Duplicate column name '{column}'")


class SchemaSyntaxError(SchemaError):
    def __init__(self, detail: str, position: int | None = None) -> None:
        self.detail = detail
        self.position = position
        suffix = f" (position {position})" if position is not None else ""
        super().__init__(f"Invalid column definition: {detail}{suffix}")


# --- Validation errors ---


class ValidationError(ChanqlError, ValueError):
    """A candidate row does not satisfy its table schema."""


class ColumnCountMismatch(ValidationError):
    def __init__(
        self, expected: int, actual: int, columns: Sequence[str] = (), example: str = ""
    ) -> None:
        self.expected = expected
        self.actual = actual
        self.columns = list(columns)
        message = f"Expected {expected} values for columns, got {actual}"
        if self.columns:
            message += f". Expected columns: {', '.join(self.columns)}"
        if example:
            message += f". Example: {example}"
        super().__init__(message)


class TypeMismatch(ValidationError):
    def __init__(self, column: str, position: int, expected: str, got: str) -> None:
        self.column = column
        self.position = position
        self.expected = expected
        self.got = got
        super().__init__(
            f"Type mismatch for column '{column}' (position {position}): "
            f"expected {expected}, got {got}"
        )


class StringTooLong(ValidationError):
    def __init__(self, column: str, position: int, length: int, max_length: int) -> None:
        self.column = column
        self.position = position
        self.length = length
        self.max_length = max_length
        super().__init__(
            f"String too long for column '{column}' (position {position}): "
            f"{length} characters, maximum {max_length}"
        )


class InvalidIsoFormat(ValidationError):
    def __init__(self, column: str, value: str, expected_hint: str) -> None:
        self.column = column
        self.value = value
        self.expected_hint = expected_hint
        super().__init__(
            f"Invalid value {value!r} for column '{column}': expected {expected_hint}"
        )


class DuplicatePrimaryKey(ValidationError):
    def __init__(self, columns: Sequence[str], values: Sequence[Any]) -> None:
        self.columns = list(columns)
        self.values = list(values)
        pairs = ", ".join(f"{c}={v!r}" for c, v in zip(self.columns, self.values))
        super().__init__(f"Duplicate primary key: a row with {pairs} already exists")


class NullNotAllowed(ValidationError):
    def __init__(self, column: str, position: int) -> None:
        self.column = column
        self.position = position
        super().__init__(f"NULL not allowed for column '{column}' (position {position})")


# --- Literal errors ---


class LiteralParseError(ChanqlError, ValueError):
    """A literal value could not be parsed."""


class InvalidLiteral(LiteralParseError):
    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(
            f"Invalid value {token!r}: not a number, boolean or NULL "
            "(string literals require single quotes, e.g. 'text')"
        )


class UnterminatedString(LiteralParseError):
    def __init__(self, position: int) -> None:
        self.position = position
        super().__init__(
            f"Unterminated string starting at position {position}: missing closing quote"
        )


# --- Filters and stored rows ---


class FilterSyntaxError(ChanqlError, ValueError):
    """A WHERE expression could not be parsed."""

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        super().__init__(message)


class CorruptRow(ChanqlError, ValueError):
    """A stored row block could not be decoded; scans skip it."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Corrupt row: {reason}")


# --- Store errors ---


class StoreError(ChanqlError):
    """The row store could not carry out a request."""


class DatabaseNotFound(StoreError):
    def __init__(self, database: str) -> None:
        self.database = database
        super().__init__(f"Database '{database}' does not exist")


class DatabaseExists(StoreError):
    def __init__(self, database: str) -> None:
        self.database = database
        super().__init__(f"Database '{database}' already exists")


class DatabaseNotEmpty(StoreError):
    def __init__(self, database: str, table_count: int) -> None:
        self.database = database
        self.table_count = table_count
        super().__init__(
            f"Refusing to drop database '{database}': it still has {table_count} "
            "table(s). Drop the tables first."
        )


class TableNotFound(StoreError):
    def __init__(self, database: str, table: str) -> None:
        self.database = database
        self.table = table
        super().__init__(f"Table '{table}' does not exist in database '{database}'")


class TableExists(StoreError):
    def __init__(self, database: str, table: str) -> None:
        self.database = database
        self.table = table
        super().__init__(f"Table '{table}' already exists in database '{database}'")


class RowNotFound(StoreError):
    def __init__(self, table: str, row_id: int) -> None:
        self.table = table
        self.row_id = row_id
        super().__init__(f"Row {row_id} not found in table '{table}'")


# --- Command errors ---


class QueryError(ChanqlError, ValueError):
    """A command is malformed or cannot run in the current session."""


class NoDatabaseSelected(QueryError):
    def __init__(self) -> None:
        super().__init__("No database selected. Use 'use <database>' first.")


class UnknownColumn(QueryError):
    def __init__(self, column: str, available: Sequence[str]) -> None:
        self.column = column
        self.available = list(available)
        super().__init__(
            f"Column '{column}' does not exist. Available columns: {', '.join(self.available)}"
        )


class CommandSyntaxError(QueryError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)
