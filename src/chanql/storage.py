"""Row stores: where databases, tables, schemas and stored row blocks live."""

from __future__ import annotations

import json
import os
import re
import shutil
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from chanql.errors import (
    DatabaseExists,
    DatabaseNotEmpty,
    DatabaseNotFound,
    RowNotFound,
    TableExists,
    TableNotFound,
)
from chanql.logger import get_logger

logger = get_logger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9_]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def sanitize_name(text: str) -> tuple[str, bool]:
    """Normalise a database or table name.

    Lower-cases the text, turns spaces and any other character outside
    ``[a-z0-9_]`` into ``_``, collapses runs of ``_`` and trims them from
    both ends.

    Returns:
        The normalised name (possibly empty) and whether it differs from
        the input.
    """
    name = _INVALID_NAME_CHARS.sub("_", text.strip().lower())
    name = _UNDERSCORE_RUNS.sub("_", name).strip("_")
    return name, name != text


@dataclass(frozen=True)
class TableRef:
    """Identity of a table: the database it lives in and its name."""

    database: str
    name: str

    def __str__(self) -> str:
        return f"{self.database}.{self.name}"


@dataclass(frozen=True)
class StoredRow:
    """One stored unit: a raw row block and when it was written."""

    row_id: int
    content: str
    created_at: datetime


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RowStore(ABC):
    """Storage of databases, tables and raw row blocks.

    Rows are kept in insertion order. The store knows nothing about the
    row or schema text it holds.
    """

    def __init__(self) -> None:
        self._locks: dict[TableRef, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def locked(self, table: TableRef) -> Iterator[None]:
        """Hold the table's write lock for the duration of the block.

        Used to make read-validate-append sequences atomic per table.
        """
        with self._locks_guard:
            lock = self._locks.setdefault(table, threading.Lock())
        with lock:
            yield

    # --- Databases ---

    @abstractmethod
    def create_database(self, database: str) -> None: ...

    @abstractmethod
    def drop_database(self, database: str) -> None:
        """Remove an empty database.

        Raises:
            DatabaseNotFound: No such database.
            DatabaseNotEmpty: The database still has tables.
        """

    @abstractmethod
    def database_exists(self, database: str) -> bool: ...

    @abstractmethod
    def list_databases(self) -> list[str]: ...

    # --- Tables ---

    @abstractmethod
    def create_table(self, table: TableRef, schema_text: str | None = None) -> None: ...

    @abstractmethod
    def drop_table(self, table: TableRef) -> None: ...

    @abstractmethod
    def table_exists(self, table: TableRef) -> bool: ...

    @abstractmethod
    def list_tables(self, database: str) -> list[str]: ...

    @abstractmethod
    def read_schema_text(self, table: TableRef) -> str | None: ...

    @abstractmethod
    def write_schema_text(self, table: TableRef, text: str | None) -> None: ...

    # --- Rows ---

    @abstractmethod
    def fetch_rows(self, table: TableRef, limit: int | None = None) -> Iterator[StoredRow]:
        """Return the table's stored rows, oldest first.

        Args:
            table: The table to read.
            limit: If given, only the most recent ``limit`` rows.
        """

    @abstractmethod
    def append_row(
        self, table: TableRef, content: str, created_at: datetime | None = None
    ) -> StoredRow: ...

    @abstractmethod
    def replace_row(self, table: TableRef, row_id: int, content: str) -> None: ...

    @abstractmethod
    def delete_row(self, table: TableRef, row_id: int) -> None: ...


def _most_recent(rows: list[StoredRow], limit: int | None) -> list[StoredRow]:
    if limit is None:
        return rows
    if limit <= 0:
        return []
    return rows[-limit:]


@dataclass
class _MemoryTable:
    schema_text: str | None
    rows: list[StoredRow] = field(default_factory=list)
    next_id: int = 1


class MemoryRowStore(RowStore):
    """Row store held in process memory."""

    def __init__(self) -> None:
        super().__init__()
        self._mutex = threading.Lock()
        self._databases: dict[str, dict[str, _MemoryTable]] = {}

    def _tables_of(self, database: str) -> dict[str, _MemoryTable]:
        tables = self._databases.get(database)
        if tables is None:
            raise DatabaseNotFound(database)
        return tables

    def _table(self, table: TableRef) -> _MemoryTable:
        entry = self._tables_of(table.database).get(table.name)
        if entry is None:
            raise TableNotFound(table.database, table.name)
        return entry

    def create_database(self, database: str) -> None:
        with self._mutex:
            if database in self._databases:
                raise DatabaseExists(database)
            self._databases[database] = {}
        logger.debug("Created database %s", database)

    def drop_database(self, database: str) -> None:
        with self._mutex:
            tables = self._tables_of(database)
            if tables:
                raise DatabaseNotEmpty(database, len(tables))
            del self._databases[database]
        logger.debug("Dropped database %s", database)

    def database_exists(self, database: str) -> bool:
        with self._mutex:
            return database in self._databases

    def list_databases(self) -> list[str]:
        with self._mutex:
            return sorted(self._databases)

    def create_table(self, table: TableRef, schema_text: str | None = None) -> None:
        with self._mutex:
            tables = self._tables_of(table.database)
            if table.name in tables:
                raise TableExists(table.database, table.name)
            tables[table.name] = _MemoryTable(schema_text)
        logger.debug("Created table %s", table)

    def drop_table(self, table: TableRef) -> None:
        with self._mutex:
            tables = self._tables_of(table.database)
            if table.name not in tables:
                raise TableNotFound(table.database, table.name)
            del tables[table.name]
        logger.debug("Dropped table %s", table)

    def table_exists(self, table: TableRef) -> bool:
        with self._mutex:
            return table.name in self._databases.get(table.database, {})

    def list_tables(self, database: str) -> list[str]:
        with self._mutex:
            return sorted(self._tables_of(database))

    def read_schema_text(self, table: TableRef) -> str | None:
        with self._mutex:
            return self._table(table).schema_text

    def write_schema_text(self, table: TableRef, text: str | None) -> None:
        with self._mutex:
            self._table(table).schema_text = text
        logger.debug("Wrote schema of %s", table)

    def fetch_rows(self, table: TableRef, limit: int | None = None) -> Iterator[StoredRow]:
        with self._mutex:
            rows = list(self._table(table).rows)
        return iter(_most_recent(rows, limit))

    def append_row(
        self, table: TableRef, content: str, created_at: datetime | None = None
    ) -> StoredRow:
        with self._mutex:
            entry = self._table(table)
            row = StoredRow(entry.next_id, content, created_at or _now())
            entry.rows.append(row)
            entry.next_id += 1
        logger.debug("Appended row %d to %s", row.row_id, table)
        return row

    def replace_row(self, table: TableRef, row_id: int, content: str) -> None:
        with self._mutex:
            entry = self._table(table)
            for i, row in enumerate(entry.rows):
                if row.row_id == row_id:
                    entry.rows[i] = StoredRow(row_id, content, row.created_at)
                    break
            else:
                raise RowNotFound(str(table), row_id)
        logger.debug("Replaced row %d in %s", row_id, table)

    def delete_row(self, table: TableRef, row_id: int) -> None:
        with self._mutex:
            entry = self._table(table)
            for i, row in enumerate(entry.rows):
                if row.row_id == row_id:
                    del entry.rows[i]
                    break
            else:
                raise RowNotFound(str(table), row_id)
        logger.debug("Deleted row %d from %s", row_id, table)


class DirectoryRowStore(RowStore):
    """Row store kept in a directory tree.

    Layout::

        <root>/db_<database>/table_<name>.json    metadata (schema topic, next id)
        <root>/db_<database>/table_<name>.jsonl   one JSON object per stored row
    """

    DATABASE_PREFIX = "db_"
    TABLE_PREFIX = "table_"

    def __init__(self, root: Path | str) -> None:
        """Initialize the store.

        Args:
            root: Directory holding the databases; created if missing.
        """
        super().__init__()
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._mutex = threading.RLock()

    # --- Paths ---

    def _database_dir(self, database: str) -> Path:
        return self.root / f"{self.DATABASE_PREFIX}{database}"

    def _metadata_path(self, table: TableRef) -> Path:
        return self._database_dir(table.database) / f"{self.TABLE_PREFIX}{table.name}.json"

    def _rows_path(self, table: TableRef) -> Path:
        return self._database_dir(table.database) / f"{self.TABLE_PREFIX}{table.name}.jsonl"

    def _require_database(self, database: str) -> Path:
        path = self._database_dir(database)
        if not path.is_dir():
            raise DatabaseNotFound(database)
        return path

    def _require_table(self, table: TableRef) -> None:
        self._require_database(table.database)
        if not self._metadata_path(table).exists():
            raise TableNotFound(table.database, table.name)

    # --- Metadata ---

    def _load_metadata(self, table: TableRef) -> dict[str, Any]:
        with open(self._metadata_path(table)) as f:
            return json.load(f)

    def _save_metadata(self, table: TableRef, metadata: dict[str, Any]) -> None:
        self._write_atomic(self._metadata_path(table), json.dumps(metadata, indent=2))

    @staticmethod
    def _write_atomic(path: Path, text: str) -> None:
        tmp_path = path.with_name(path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)

    # --- Rows on disk ---

    def _read_rows(self, table: TableRef) -> list[StoredRow]:
        rows: list[StoredRow] = []
        path = self._rows_path(table)
        if not path.exists():
            return rows
        with open(path, encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                    rows.append(StoredRow(
                        row_id=int(record["id"]),
                        content=record["content"],
                        created_at=datetime.fromisoformat(record["created_at"]),
                    ))
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning(
                        "Skipping unreadable record at %s:%d: %s", path, line_no, e
                    )
        return rows

    @staticmethod
    def _encode_record(row: StoredRow) -> str:
        return json.dumps({
            "id": row.row_id,
            "created_at": row.created_at.isoformat(),
            "content": row.content,
        })

    def _write_rows(self, table: TableRef, rows: list[StoredRow]) -> None:
        text = "".join(self._encode_record(row) + "\n" for row in rows)
        self._write_atomic(self._rows_path(table), text)

    # --- Databases ---

    def create_database(self, database: str) -> None:
        with self._mutex:
            path = self._database_dir(database)
            if path.exists():
                raise DatabaseExists(database)
            path.mkdir(parents=True)
        logger.debug("Created database %s at %s", database, path)

    def drop_database(self, database: str) -> None:
        with self._mutex:
            path = self._require_database(database)
            tables = self.list_tables(database)
            if tables:
                raise DatabaseNotEmpty(database, len(tables))
            shutil.rmtree(path)
        logger.debug("Dropped database %s", database)

    def database_exists(self, database: str) -> bool:
        return self._database_dir(database).is_dir()

    def list_databases(self) -> list[str]:
        prefix = self.DATABASE_PREFIX
        return sorted(
            p.name[len(prefix):]
            for p in self.root.iterdir()
            if p.is_dir() and p.name.startswith(prefix)
        )

    # --- Tables ---

    def create_table(self, table: TableRef, schema_text: str | None = None) -> None:
        with self._mutex:
            self._require_database(table.database)
            if self._metadata_path(table).exists():
                raise TableExists(table.database, table.name)
            self._save_metadata(table, {
                "name": table.name,
                "topic": schema_text,
                "created_at": _now().isoformat(),
                "next_id": 1,
            })
            self._rows_path(table).touch()
        logger.debug("Created table %s", table)

    def drop_table(self, table: TableRef) -> None:
        with self._mutex:
            self._require_table(table)
            self._metadata_path(table).unlink()
            self._rows_path(table).unlink(missing_ok=True)
        logger.debug("Dropped table %s", table)

    def table_exists(self, table: TableRef) -> bool:
        return self._metadata_path(table).exists()

    def list_tables(self, database: str) -> list[str]:
        path = self._require_database(database)
        prefix = self.TABLE_PREFIX
        return sorted(
            p.stem[len(prefix):]
            for p in path.glob(f"{prefix}*.json")
        )

    def read_schema_text(self, table: TableRef) -> str | None:
        with self._mutex:
            self._require_table(table)
            return self._load_metadata(table).get("topic")

    def write_schema_text(self, table: TableRef, text: str | None) -> None:
        with self._mutex:
            self._require_table(table)
            metadata = self._load_metadata(table)
            metadata["topic"] = text
            self._save_metadata(table, metadata)
        logger.debug("Wrote schema of %s", table)

    # --- Rows ---

    def fetch_rows(self, table: TableRef, limit: int | None = None) -> Iterator[StoredRow]:
        with self._mutex:
            self._require_table(table)
            rows = self._read_rows(table)
        return iter(_most_recent(rows, limit))

    def append_row(
        self, table: TableRef, content: str, created_at: datetime | None = None
    ) -> StoredRow:
        with self._mutex:
            self._require_table(table)
            metadata = self._load_metadata(table)
            row = StoredRow(int(metadata.get("next_id", 1)), content, created_at or _now())
            with open(self._rows_path(table), "a", encoding="utf-8") as f:
                f.write(self._encode_record(row) + "\n")
            metadata["next_id"] = row.row_id + 1
            self._save_metadata(table, metadata)
        logger.debug("Appended row %d to %s", row.row_id, table)
        return row

    def replace_row(self, table: TableRef, row_id: int, content: str) -> None:
        with self._mutex:
            self._require_table(table)
            rows = self._read_rows(table)
            for i, row in enumerate(rows):
                if row.row_id == row_id:
                    rows[i] = StoredRow(row_id, content, row.created_at)
                    break
            else:
                raise RowNotFound(str(table), row_id)
            self._write_rows(table, rows)
        logger.debug("Replaced row %d in %s", row_id, table)

    def delete_row(self, table: TableRef, row_id: int) -> None:
        with self._mutex:
            self._require_table(table)
            rows = self._read_rows(table)
            remaining = [row for row in rows if row.row_id != row_id]
            if len(remaining) == len(rows):
                raise RowNotFound(str(table), row_id)
            self._write_rows(table, remaining)
        logger.debug("Deleted row %d from %s", row_id, table)
