"""Column types and SQL values for chanql."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Union

from chanql.errors import (
    MissingSize,
    ParamNotAllowed,
    PrecisionOutOfRange,
    SizeOutOfRange,
    UnknownType,
)

# A SQL value is one of: None (NULL), bool, int, float, str.
SqlValue = Union[None, bool, int, float, str]

MAX_STRING_SIZE = 65535
MAX_PRECISION = 65

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_PLAIN_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_SCHEMA_KEYWORDS = frozenset({"primary", "key", "not", "null"})


class DataType(Enum):
    """Column data types supported by the schema language."""

    INT = "INT"
    BOOLEAN = "BOOLEAN"
    VARCHAR = "VARCHAR"
    CHAR = "CHAR"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    DATE = "DATE"
    TIME = "TIME"
    DATETIME = "DATETIME"

    @property
    def is_string(self) -> bool:
        """Return whether values of this type are length-limited strings."""
        return self in (DataType.VARCHAR, DataType.CHAR)

    @property
    def is_numeric(self) -> bool:
        """Return whether this is a floating or fixed-point type."""
        return self in (DataType.FLOAT, DataType.DOUBLE, DataType.DECIMAL)

    @property
    def is_temporal(self) -> bool:
        """Return whether values must be ISO-8601 date/time strings."""
        return self in (DataType.DATE, DataType.TIME, DataType.DATETIME)


# Mapping from accepted (upper-case) type names to DataType values
TYPE_NAMES: dict[str, DataType] = {dt.value: dt for dt in DataType}
TYPE_NAMES.update({
    "INTEGER": DataType.INT,
    "BOOL": DataType.BOOLEAN,
    "CHARACTER": DataType.CHAR,
    "REAL": DataType.FLOAT,
    "NUMERIC": DataType.DECIMAL,
    "TIMESTAMP": DataType.DATETIME,
})


@dataclass(frozen=True)
class ColumnType:
    """A data type together with its size or precision, if any.

    For VARCHAR/CHAR the param is the maximum length in characters; for
    FLOAT/DOUBLE/DECIMAL it is the precision. ``None`` means unconstrained.
    """

    data_type: DataType
    param: int | None = None

    def __str__(self) -> str:
        if self.param is None:
            return self.data_type.value
        return f"{self.data_type.value}({self.param})"


@dataclass(frozen=True)
class ColumnDef:
    """A single column in a table schema."""

    name: str
    column_type: ColumnType
    primary_key: bool = False
    nullable: bool = True

    @property
    def data_type(self) -> DataType:
        return self.column_type.data_type

    @property
    def accepts_null(self) -> bool:
        """Primary-key columns never accept NULL."""
        return self.nullable and not self.primary_key

    def example_value(self) -> str:
        """Return an example literal for this column's type."""
        return _EXAMPLE_VALUES[self.data_type]

    def __str__(self) -> str:
        parts = [quote_name(self.name), str(self.column_type)]
        if not self.nullable:
            parts.append("NOT NULL")
        if self.primary_key:
            parts.append("PRIMARY KEY")
        return " ".join(parts)


_EXAMPLE_VALUES = {
    DataType.INT: "42",
    DataType.BOOLEAN: "true",
    DataType.VARCHAR: "'text'",
    DataType.CHAR: "'text'",
    DataType.FLOAT: "3.14",
    DataType.DOUBLE: "3.14",
    DataType.DECIMAL: "3.14",
    DataType.DATE: "'2023-12-25'",
    DataType.TIME: "'14:30:00'",
    DataType.DATETIME: "'2023-12-25T14:30:00Z'",
}


def _param_to_int(param: str | int) -> int | None:
    if isinstance(param, bool):
        return None
    if isinstance(param, int):
        return param
    text = str(param).strip()
    try:
        return int(text)
    except ValueError:
        return None


def validate_type_spec(name: str, param: str | int | None = None) -> ColumnType:
    """Check a type name and its optional parameter and build a ColumnType.

    Args:
        name: Type name as written, matched case-insensitively.
        param: The text (or integer) between the parentheses, or None.

    Returns:
        The validated column type.

    Raises:
        UnknownType: The name is not a supported type.
        ParamNotAllowed: INT, BOOLEAN and the date/time types take no parameter.
        MissingSize: VARCHAR or CHAR without a size.
        SizeOutOfRange: A size that is not an integer in [1, 65535].
        PrecisionOutOfRange: A precision that is not an integer in [1, 65].
    """
    data_type = TYPE_NAMES.get(name.strip().upper())
    if data_type is None:
        raise UnknownType(name)
    type_name = data_type.value

    if data_type.is_string:
        if param is None or (isinstance(param, str) and not param.strip()):
            raise MissingSize(type_name)
        size = _param_to_int(param)
        if size is None or not 1 <= size <= MAX_STRING_SIZE:
            raise SizeOutOfRange(type_name, param)
        return ColumnType(data_type, size)

    if data_type.is_numeric:
        if param is None:
            return ColumnType(data_type)
        precision = _param_to_int(param)
        if precision is None or not 1 <= precision <= MAX_PRECISION:
            raise PrecisionOutOfRange(type_name, param)
        return ColumnType(data_type, precision)

    if param is not None:
        raise ParamNotAllowed(type_name)
    return ColumnType(data_type)


def value_type_name(value: SqlValue) -> str:
    """Return a human-readable type name for a SQL value."""
    if value is None:
        return "null"
    elif isinstance(value, bool):
        return "boolean"
    elif isinstance(value, int):
        return "integer"
    elif isinstance(value, float):
        return "float"
    elif isinstance(value, str):
        return "string"
    raise TypeError(f"Not a SQL value: {value!r}")


def quote_name(name: str) -> str:
    """Return a column name as it is written in schema text.

    Names that are not plain identifiers, or that read as a schema keyword,
    are wrapped in backticks.
    """
    if _PLAIN_NAME_RE.fullmatch(name) and name.lower() not in _SCHEMA_KEYWORDS:
        return name
    return f"`{name}`"


def render_value(value: SqlValue) -> str:
    """Render a value in its canonical literal form.

    Strings are single-quoted with embedded quotes doubled. Floats keep a
    fractional part or exponent so they read back as floats.
    """
    if value is None:
        return "NULL"
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, int):
        return str(value)
    elif isinstance(value, float):
        return repr(value)
    elif isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    raise TypeError(f"Not a SQL value: {value!r}")


def values_equal(left: SqlValue, right: SqlValue) -> bool:
    """Compare two SQL values for equality.

    Values of the same kind compare directly. Integers and floats compare
    numerically. Any other mix of kinds is unequal. NULL equals only NULL.
    """
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return False


def value_key(value: SqlValue) -> tuple[str, SqlValue]:
    """Return a hashable key that keeps booleans, integers and strings apart."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return ("number", value)
    return (value_type_name(value), value)


@dataclass(frozen=True)
class Schema:
    """Ordered column definitions for a table.

    An empty schema describes a flexible table: no validation is applied to
    its rows.
    """

    columns: tuple[ColumnDef, ...] = ()

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[ColumnDef]:
        return iter(self.columns)

    def __getitem__(self, index: int) -> ColumnDef:
        return self.columns[index]

    @property
    def is_flexible(self) -> bool:
        return not self.columns

    @property
    def names(self) -> list[str]:
        return [col.name for col in self.columns]

    @property
    def primary_key(self) -> list[ColumnDef]:
        """Return the primary-key columns in schema order."""
        return [col for col in self.columns if col.primary_key]

    def index_of(self, name: str) -> int | None:
        """Return the position of a column, matching names case-insensitively."""
        for i, col in enumerate(self.columns):
            if col.name == name:
                return i
        lowered = name.lower()
        for i, col in enumerate(self.columns):
            if col.name.lower() == lowered:
                return i
        return None

    def column(self, name: str) -> ColumnDef | None:
        index = self.index_of(name)
        return None if index is None else self.columns[index]

    def to_text(self) -> str:
        """Serialize to the single-line column definition grammar."""
        return ", ".join(str(col) for col in self.columns)

    def to_create_statement(self, table: str) -> str:
        """Render as a multi-line CREATE TABLE statement."""
        if not self.columns:
            return f"CREATE TABLE {table} ()"
        body = ",\n".join(f"    {col}" for col in self.columns)
        return f"CREATE TABLE {table} (\n{body}\n)"
