"""chanql - typed tables with a SQL-flavoured command language."""

from chanql.codec import Row, decode_row, encode_row
from chanql.errors import ChanqlError
from chanql.parsing import CommandParser, parse_filter, parse_values
from chanql.query_executor import QueryExecutor, QueryResult, evaluate_filter
from chanql.schema import parse_schema, parse_stored_schema
from chanql.storage import DirectoryRowStore, MemoryRowStore, RowStore, TableRef
from chanql.types import ColumnDef, ColumnType, DataType, Schema, SqlValue
from chanql.validation import validate_insert

__all__ = [
    # Types and schemas
    "DataType",
    "ColumnType",
    "ColumnDef",
    "Schema",
    "SqlValue",
    "parse_schema",
    "parse_stored_schema",
    # Rows
    "Row",
    "encode_row",
    "decode_row",
    "parse_values",
    "validate_insert",
    # Filters and commands
    "parse_filter",
    "evaluate_filter",
    "CommandParser",
    "QueryExecutor",
    "QueryResult",
    # Storage
    "RowStore",
    "MemoryRowStore",
    "DirectoryRowStore",
    "TableRef",
    # Errors
    "ChanqlError",
]

__version__ = "0.1.0"
