"""Query executor for chanql commands."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from chanql.codec import Row, decode_row, encode_row
from chanql.errors import (
    CommandSyntaxError,
    CorruptRow,
    DatabaseNotFound,
    NoDatabaseSelected,
    TableNotFound,
    UnknownColumn,
)
from chanql.logger import get_logger
from chanql.parsing.command_parser import (
    CreateDatabaseQuery,
    CreateTableQuery,
    DeleteQuery,
    DescribeQuery,
    DropDatabaseQuery,
    DropTableQuery,
    InsertQuery,
    Query,
    SelectQuery,
    ShowDatabasesQuery,
    ShowTablesQuery,
    UpdateQuery,
    UseQuery,
)
from chanql.parsing.filter_parser import And, Comparison, FilterExpr, Or
from chanql.schema import format_stored_schema, parse_schema, parse_stored_schema
from chanql.storage import RowStore, StoredRow, TableRef, sanitize_name
from chanql.types import Schema, SqlValue, value_key, values_equal
from chanql.validation import check_primary_key, validate_insert, validate_row

logger = get_logger(__name__)

_MISSING: Any = object()
_POSITIONAL_RE = re.compile(r"\[(\d+)\]")


def evaluate_filter(expr: FilterExpr, row: Row) -> bool:
    """Evaluate a filter expression against a decoded row.

    A comparison on a column the row does not have is a non-match.
    Evaluation has no side effects.
    """
    if isinstance(expr, Comparison):
        value = row.get(expr.column, _MISSING)
        if value is _MISSING:
            return False
        return values_equal(value, expr.value)
    elif isinstance(expr, And):
        return evaluate_filter(expr.left, row) and evaluate_filter(expr.right, row)
    elif isinstance(expr, Or):
        return evaluate_filter(expr.left, row) or evaluate_filter(expr.right, row)
    raise TypeError(f"Unknown filter expression: {type(expr)}")


def _column_value(row: Row, column: str) -> SqlValue:
    """Look up a selected column, accepting ``[i]`` keys for positional rows."""
    if row.is_positional:
        match = _POSITIONAL_RE.fullmatch(column)
        if match is not None:
            index = int(match.group(1))
            return row.values[index] if index < len(row.values) else None
        return None
    return row.get(column)


@dataclass
class QueryResult:
    """Result of a query execution."""

    columns: list[str]
    rows: list[dict[str, Any]]
    message: str | None = None


@dataclass
class SelectResult(QueryResult):
    """Result of a SELECT query."""

    skipped: int = 0


@dataclass
class InsertResult(QueryResult):
    """Result of an INSERT query."""

    row_id: int | None = None


@dataclass
class UseResult(QueryResult):
    """Result of a USE query - signals the REPL to switch databases."""

    database: str = ""


@dataclass
class CreateResult(QueryResult):
    """Result of a CREATE DB or CREATE TABLE query."""

    name: str = ""


@dataclass
class DropResult(QueryResult):
    """Result of a DROP DB or DROP TABLE query."""

    name: str = ""


@dataclass
class DeleteResult(QueryResult):
    """Result of a DELETE query."""

    deleted_count: int = 0


@dataclass
class UpdateResult(QueryResult):
    """Result of an UPDATE query."""

    updated_count: int = 0


class QueryExecutor:
    """Executes chanql queries against a row store."""

    def __init__(self, store: RowStore, scan_limit: int | None = None) -> None:
        """Initialize the executor.

        Args:
            store: Where databases and tables live.
            scan_limit: If set, SELECT reads only this many of the most
                recent stored rows. Writes always see the whole table.
        """
        self.store = store
        self.scan_limit = scan_limit

    def execute(self, query: Query, database: str | None = None) -> QueryResult:
        """Execute a query and return results.

        Args:
            query: The parsed command.
            database: The session's current database, if any.
        """
        if isinstance(query, SelectQuery):
            return self._execute_select(query, database)
        elif isinstance(query, InsertQuery):
            return self._execute_insert(query, database)
        elif isinstance(query, UpdateQuery):
            return self._execute_update(query, database)
        elif isinstance(query, DeleteQuery):
            return self._execute_delete(query, database)
        elif isinstance(query, CreateTableQuery):
            return self._execute_create_table(query, database)
        elif isinstance(query, DropTableQuery):
            return self._execute_drop_table(query, database)
        elif isinstance(query, DescribeQuery):
            return self._execute_describe(query, database)
        elif isinstance(query, ShowTablesQuery):
            return self._execute_show_tables(database)
        elif isinstance(query, ShowDatabasesQuery):
            return self._execute_show_databases()
        elif isinstance(query, CreateDatabaseQuery):
            return self._execute_create_database(query)
        elif isinstance(query, DropDatabaseQuery):
            return self._execute_drop_database(query)
        elif isinstance(query, UseQuery):
            return self._execute_use(query)
        else:
            raise ValueError(f"Unknown query type: {type(query)}")

    # --- Name resolution ---

    @staticmethod
    def _normalise(name: str) -> str:
        normalised, _ = sanitize_name(name)
        if not normalised:
            raise CommandSyntaxError(f"Invalid name '{name}': use letters, digits or underscores")
        return normalised

    def _database(self, database: str | None) -> str:
        if database is None:
            raise NoDatabaseSelected()
        if not self.store.database_exists(database):
            raise DatabaseNotFound(database)
        return database

    def _table_ref(self, name: str, database: str | None) -> TableRef:
        ref = TableRef(self._database(database), self._normalise(name))
        if not self.store.table_exists(ref):
            raise TableNotFound(ref.database, ref.name)
        return ref

    def _load_schema(self, ref: TableRef) -> Schema:
        return parse_stored_schema(self.store.read_schema_text(ref))

    def _scan(
        self, ref: TableRef, schema: Schema, limit: int | None = None
    ) -> tuple[list[tuple[StoredRow, Row]], int]:
        """Decode the table's rows, oldest first, skipping corrupt ones.

        Returns:
            The (stored, decoded) pairs and the number of rows skipped.
        """
        rows: list[tuple[StoredRow, Row]] = []
        skipped = 0
        for stored in self.store.fetch_rows(ref, limit=limit):
            try:
                row = decode_row(stored.content, schema, fallback_timestamp=stored.created_at)
            except CorruptRow as e:
                skipped += 1
                logger.warning(
                    "Skipping corrupt row %d in %s: %s", stored.row_id, ref, e.reason,
                    extra={"table": ref.name, "database": ref.database},
                )
                continue
            rows.append((stored, row))
        return rows, skipped

    # --- Databases ---

    def _execute_create_database(self, query: CreateDatabaseQuery) -> CreateResult:
        name, changed = sanitize_name(query.name)
        if not name:
            raise CommandSyntaxError(f"Invalid name '{query.name}': use letters, digits or underscores")
        self.store.create_database(name)
        logger.info("CREATE DB executed", extra={"database": name})
        message = f"Created database '{name}'"
        if changed:
            message += f" (name normalised from '{query.name}')"
        return CreateResult(columns=[], rows=[], message=message, name=name)

    def _execute_drop_database(self, query: DropDatabaseQuery) -> DropResult:
        name = self._normalise(query.name)
        self.store.drop_database(name)
        logger.info("DROP DB executed", extra={"database": name})
        return DropResult(columns=[], rows=[], message=f"Dropped database '{name}'", name=name)

    def _execute_use(self, query: UseQuery) -> UseResult:
        """Execute USE query - returns the database for the REPL to switch to."""
        name = self._normalise(query.name)
        if not self.store.database_exists(name):
            raise DatabaseNotFound(name)
        return UseResult(
            columns=[],
            rows=[],
            message=f"Using database '{name}'",
            database=name,
        )

    def _execute_show_databases(self) -> QueryResult:
        names = self.store.list_databases()
        return QueryResult(
            columns=["database"],
            rows=[{"database": name} for name in names],
            message=f"{len(names)} database(s)",
        )

    # --- Tables ---

    def _execute_create_table(self, query: CreateTableQuery, database: str | None) -> CreateResult:
        db = self._database(database)
        name, changed = sanitize_name(query.name)
        if not name:
            raise CommandSyntaxError(f"Invalid name '{query.name}': use letters, digits or underscores")

        schema = parse_schema(query.schema_text) if query.schema_text else Schema()
        schema_text = None if schema.is_flexible else format_stored_schema(schema)

        ref = TableRef(db, name)
        self.store.create_table(ref, schema_text)
        logger.info("CREATE TABLE executed", extra={"table": name, "database": db})

        if schema.is_flexible:
            message = f"Created flexible table '{name}' (no schema, any values accepted)"
        else:
            message = f"Created table '{name}' with {len(schema)} column(s)"
        if changed:
            message += f" (name normalised from '{query.name}')"
        return CreateResult(columns=[], rows=[], message=message, name=name)

    def _execute_drop_table(self, query: DropTableQuery, database: str | None) -> DropResult:
        ref = self._table_ref(query.name, database)
        self.store.drop_table(ref)
        logger.info("DROP TABLE executed", extra={"table": ref.name, "database": ref.database})
        return DropResult(columns=[], rows=[], message=f"Dropped table '{ref.name}'", name=ref.name)

    def _execute_show_tables(self, database: str | None) -> QueryResult:
        db = self._database(database)
        names = self.store.list_tables(db)
        return QueryResult(
            columns=["table"],
            rows=[{"table": name} for name in names],
            message=f"{len(names)} table(s) in '{db}'",
        )

    def _execute_describe(self, query: DescribeQuery, database: str | None) -> QueryResult:
        ref = self._table_ref(query.table, database)
        schema = self._load_schema(ref)
        if schema.is_flexible:
            return QueryResult(
                columns=[], rows=[],
                message=f"Table '{ref.name}' has no schema (flexible: any values accepted)",
            )

        rows = [
            {
                "column": col.name,
                "type": str(col.column_type),
                "nullable": "YES" if col.accepts_null else "NO",
                "key": "PRI" if col.primary_key else "",
            }
            for col in schema
        ]
        return QueryResult(
            columns=["column", "type", "nullable", "key"],
            rows=rows,
            message=schema.to_create_statement(ref.name),
        )

    # --- Rows ---

    def _execute_insert(self, query: InsertQuery, database: str | None) -> InsertResult:
        ref = self._table_ref(query.table, database)
        schema = self._load_schema(ref)
        if not query.values:
            raise CommandSyntaxError("INSERT needs at least one value")

        with self.store.locked(ref):
            existing: list[Row] = []
            if schema.primary_key:
                existing = [row for _, row in self._scan(ref, schema)[0]]
            validate_insert(schema, query.values, existing)

            timestamp = datetime.now(timezone.utc)
            if schema.is_flexible:
                content = encode_row(timestamp, query.values)
            else:
                content = encode_row(timestamp, dict(zip(schema.names, query.values)))
            stored = self.store.append_row(ref, content, created_at=timestamp)

        logger.info("INSERT executed", extra={"table": ref.name, "database": ref.database})
        return InsertResult(
            columns=[], rows=[],
            message=f"Inserted 1 row into '{ref.name}'",
            row_id=stored.row_id,
        )

    def _select_columns(self, query: SelectQuery, schema: Schema, rows: list[Row]) -> list[str]:
        if query.columns == ["*"]:
            if not schema.is_flexible:
                return schema.names
            width = 0
            names: list[str] = []
            for row in rows:
                if row.is_positional:
                    width = max(width, len(row.values))
                else:
                    names.extend(c for c in row.keys() if c not in names)
            return [f"[{i}]" for i in range(width)] + names

        if schema.is_flexible:
            return list(query.columns)

        columns = []
        for name in query.columns:
            column = schema.column(name)
            if column is None:
                raise UnknownColumn(name, schema.names)
            columns.append(column.name)
        return columns

    def _execute_select(self, query: SelectQuery, database: str | None) -> SelectResult:
        """Execute SELECT query."""
        ref = self._table_ref(query.table, database)
        schema = self._load_schema(ref)

        # Reject unknown columns before reading any rows
        if query.columns != ["*"] and not schema.is_flexible:
            self._select_columns(query, schema, [])

        scanned, skipped = self._scan(ref, schema, limit=self.scan_limit)
        decoded = [row for _, row in scanned]
        if query.where is not None:
            decoded = [row for row in decoded if evaluate_filter(query.where, row)]

        columns = self._select_columns(query, schema, decoded)
        result_rows: list[dict[str, Any]] = []
        seen: set[tuple[Any, ...]] = set()
        for row in decoded:
            values = [_column_value(row, c) for c in columns]
            if query.distinct:
                key = tuple(value_key(v) for v in values)
                if key in seen:
                    continue
                seen.add(key)
            result_rows.append(dict(zip(columns, values)))

        logger.info(
            "SELECT executed", extra={"table": ref.name, "database": ref.database},
        )
        message = f"{len(result_rows)} row(s)"
        if skipped:
            message += f" ({skipped} unreadable row(s) skipped)"
        return SelectResult(columns=columns, rows=result_rows, message=message, skipped=skipped)

    def _execute_delete(self, query: DeleteQuery, database: str | None) -> DeleteResult:
        """Execute DELETE query."""
        ref = self._table_ref(query.table, database)
        schema = self._load_schema(ref)

        with self.store.locked(ref):
            if query.where is None:
                targets = [stored.row_id for stored in self.store.fetch_rows(ref)]
            else:
                scanned, _ = self._scan(ref, schema)
                targets = [
                    stored.row_id for stored, row in scanned
                    if evaluate_filter(query.where, row)
                ]
            for row_id in targets:
                self.store.delete_row(ref, row_id)

        logger.info("DELETE executed", extra={"table": ref.name, "database": ref.database})
        if not targets:
            return DeleteResult(columns=[], rows=[], message="No matching rows to delete")
        return DeleteResult(
            columns=["deleted"],
            rows=[{"deleted": len(targets)}],
            message=f"Deleted {len(targets)} row(s) from '{ref.name}'",
            deleted_count=len(targets),
        )

    def _execute_update(self, query: UpdateQuery, database: str | None) -> UpdateResult:
        """Execute UPDATE query.

        Every changed row is validated before any is written, so a failing
        row leaves the table untouched.
        """
        ref = self._table_ref(query.table, database)
        schema = self._load_schema(ref)
        if schema.is_flexible:
            raise CommandSyntaxError(
                f"UPDATE needs a table with a schema; '{ref.name}' is flexible"
            )

        assignments: list[tuple[int, SqlValue]] = []
        for name, value in query.assignments:
            index = schema.index_of(name)
            if index is None:
                raise UnknownColumn(name, schema.names)
            assignments.append((index, value))
        touches_key = any(schema[i].primary_key for i, _ in assignments)

        with self.store.locked(ref):
            scanned, _ = self._scan(ref, schema)
            current = [row for _, row in scanned]
            changed: list[tuple[int, Row]] = []

            for position, (stored, row) in enumerate(scanned):
                if query.where is not None and not evaluate_filter(query.where, row):
                    continue
                values = list(row.values)
                for index, value in assignments:
                    values[index] = value
                validate_row(schema, values)
                if touches_key:
                    others = current[:position] + current[position + 1:]
                    check_primary_key(schema, values, others)
                updated = Row(row.timestamp, tuple(values), tuple(schema.names))
                current[position] = updated
                changed.append((stored.row_id, updated))

            for row_id, updated in changed:
                self.store.replace_row(ref, row_id, updated.encode())

        logger.info("UPDATE executed", extra={"table": ref.name, "database": ref.database})
        if not changed:
            return UpdateResult(columns=[], rows=[], message="No matching rows to update")
        return UpdateResult(
            columns=["updated"],
            rows=[{"updated": len(changed)}],
            message=f"Updated {len(changed)} row(s) in '{ref.name}'",
            updated_count=len(changed),
        )
