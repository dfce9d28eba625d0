"""Interactive REPL and command-line entry point for chanql."""

from __future__ import annotations

import argparse
import os
import readline  # noqa: F401 - enables line editing in input()
import sys
from pathlib import Path
from typing import Any

from chanql.errors import ChanqlError, UnterminatedString
from chanql.logger import configure_logging, get_logger
from chanql.parsing.command_parser import CommandParser, DropDatabaseQuery, split_statements
from chanql.parsing.value_parser import unquoted_chars
from chanql.query_executor import DropResult, QueryExecutor, QueryResult, SelectResult, UseResult
from chanql.storage import DirectoryRowStore, MemoryRowStore, RowStore
from chanql.types import render_value

logger = get_logger(__name__)

DATA_DIR_ENV = "CHANQL_DATA_DIR"

# Rows shown per result before the remainder is summarised
MAX_DISPLAY_ROWS = 20
MAX_COLUMN_WIDTH = 40


class Session:
    """A REPL session: the row store plus the current database."""

    def __init__(
        self, store: RowStore, database: str | None = None, scan_limit: int | None = None
    ) -> None:
        self.store = store
        self.database = database
        self.parser = CommandParser()
        self.executor = QueryExecutor(store, scan_limit=scan_limit)

    def execute(self, text: str) -> QueryResult:
        """Parse and run one command, tracking database switches."""
        query = self.parser.parse(text)
        result = self.executor.execute(query, self.database)

        if isinstance(result, UseResult):
            self.database = result.database
        elif isinstance(query, DropDatabaseQuery) and isinstance(result, DropResult):
            if result.name == self.database:
                self.database = None
        return result


def format_value(value: Any, max_width: int = MAX_COLUMN_WIDTH) -> str:
    """Render a value the way it would be written in a command, shortened to fit."""
    if isinstance(value, float):
        text = f"{value:.6g}"
    else:
        text = render_value(value)
    if len(text) <= max_width:
        return text
    if isinstance(value, str):
        return text[: max_width - 4] + "...'"
    return text[: max_width - 3] + "..."


def _fit(text: str, width: int) -> str:
    if len(text) > width:
        text = text[: width - 3] + "..."
    return text.ljust(width)


def print_result(result: QueryResult, max_rows: int = MAX_DISPLAY_ROWS) -> None:
    """Print a result as an aligned table followed by its message.

    Results without columns print only their message. At most ``max_rows``
    rows are shown; the rest are counted.
    """
    if not result.columns:
        if result.message:
            print(result.message)
        return

    if not result.rows:
        print("(no results)")
        if isinstance(result, SelectResult) and result.skipped:
            print(f"({result.skipped} unreadable row(s) skipped)")
        return

    cells = [
        [format_value(row.get(col)) for col in result.columns]
        for row in result.rows[:max_rows]
    ]
    widths = [
        min(MAX_COLUMN_WIDTH, max([len(col)] + [len(line[i]) for line in cells]))
        for i, col in enumerate(result.columns)
    ]

    print(" | ".join(_fit(col, w) for col, w in zip(result.columns, widths)))
    print("-+-".join("-" * w for w in widths))
    for line in cells:
        print(" | ".join(_fit(text, w) for text, w in zip(line, widths)))

    hidden = len(result.rows) - len(cells)
    if hidden > 0:
        print(f"... {hidden} more row(s) not shown")
    if result.message:
        print(f"\n{result.message}")


def print_help() -> None:
    """Print help information."""
    print("""
chanql - typed tables with a SQL-flavoured command language

DATABASES:
  create db <name>                 Create a database
  drop db <name>                   Drop an empty database
  use <name>                       Select the current database
  show databases                   List databases

TABLES:
  create table <name> (<cols>)     Create a table, e.g.
                                     create table users (id INT PRIMARY KEY, name VARCHAR(50))
  create table <name>              Create a flexible table (no schema)
  drop table <name>                Drop a table
  describe <table>                 Show a table's columns
  show tables                      List tables in the current database

ROWS:
  insert [into] <table> [values] (<v1>, <v2>, ...)
  select <cols|*> from <table> [distinct] [where <condition>]
  update <table> set <col> = <value>[, ...] [where <condition>]
  delete from <table> [where <condition>]

  Values: 42, 3.14, 'text' (quotes doubled inside: 'it''s'), true, false, NULL
  Conditions: col = value, combined with AND / OR and parentheses
  Names: letters, digits and _, or any text in backticks, e.g. `first name`

OTHER:
  help                             Show this help
  exit, quit                       Exit the REPL

Commands with an open quote or parenthesis continue on the next line.
""")


def _needs_continuation(text: str) -> bool:
    """Return True while a quote or parenthesis is still open."""
    depth = 0
    try:
        for _, ch in unquoted_chars(text):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
    except UnterminatedString:
        return True
    return depth > 0


def run_repl(session: Session) -> int:
    """Run the interactive REPL."""
    print("chanql REPL")
    if session.database:
        print(f"Current database: {session.database}")
    else:
        print("No database selected. Use 'create db <name>' and 'use <name>'.")
    print("Type 'help' for commands, 'exit' to quit.\n")

    history_file = Path.home() / ".chanql_history"
    try:
        readline.read_history_file(history_file)
    except OSError:
        pass

    try:
        while True:
            prompt = f"{session.database or 'chanql'}> "
            try:
                line = input(prompt).strip()
            except EOFError:
                print()
                break

            if not line:
                continue

            lower = line.lower().rstrip(";")
            if lower in ("exit", "quit"):
                break
            elif lower == "help":
                print_help()
                continue

            # Keep reading while a quote or parenthesis is open
            while _needs_continuation(line):
                try:
                    continuation = input("...> ")
                except EOFError:
                    break
                line += "\n" + continuation

            try:
                result = session.execute(line)
                print_result(result)
            except ChanqlError as e:
                print(f"Error: {e}", file=sys.stderr)

            print()

    finally:
        try:
            readline.set_history_length(1000)
            readline.write_history_file(history_file)
        except OSError:
            pass

    return 0


def run_file(file_path: Path, session: Session, verbose: bool = False) -> int:
    """Execute commands from a file.

    Args:
        file_path: Path to the file containing ``;``-separated commands
        session: The session to run them in
        verbose: If True, print each command before executing

    Returns:
        0 on success, 1 on the first error
    """
    try:
        content = file_path.read_text()
    except OSError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    try:
        statements = split_statements(content)
    except ChanqlError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not statements:
        print("No commands found in file", file=sys.stderr)
        return 1

    for statement in statements:
        if verbose:
            for i, line in enumerate(statement.split("\n")):
                prefix = ">>> " if i == 0 else "... "
                print(f"{prefix}{line}")

        try:
            result = session.execute(statement)
        except ChanqlError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print_result(result)

    return 0


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_arg_parser() -> argparse.ArgumentParser:
    arg_parser = argparse.ArgumentParser(
        prog="chanql",
        description="Typed tables with a SQL-flavoured command language",
    )
    arg_parser.add_argument(
        "data_dir",
        type=Path,
        nargs="?",
        default=None,
        help=f"Directory holding the databases (default: ${DATA_DIR_ENV}, "
        "or an in-memory store if unset)",
    )
    arg_parser.add_argument(
        "-d", "--database",
        type=str,
        help="Database to select at start",
    )
    arg_parser.add_argument(
        "-c", "--command",
        type=str,
        help="Execute a single command and exit",
    )
    arg_parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Execute ;-separated commands from a file and exit",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print each command before executing (for -f/--file)",
    )
    arg_parser.add_argument(
        "--scan-limit",
        type=_positive_int,
        default=None,
        help="Read at most this many of the most recent rows per SELECT",
    )
    arg_parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Logging level (default: WARNING)",
    )
    arg_parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit log records as JSON lines",
    )
    return arg_parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_json)

    data_dir = args.data_dir
    if data_dir is None and os.environ.get(DATA_DIR_ENV):
        data_dir = Path(os.environ[DATA_DIR_ENV])

    store: RowStore
    if data_dir is not None:
        store = DirectoryRowStore(data_dir)
        logger.info("Using data directory %s", data_dir)
    else:
        store = MemoryRowStore()
        logger.info("Using in-memory store")

    session = Session(store, scan_limit=args.scan_limit)
    if args.database:
        try:
            session.execute(f"use {args.database}")
        except ChanqlError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    if args.file:
        if not args.file.exists():
            print(f"Error: File not found: {args.file}", file=sys.stderr)
            return 1
        return run_file(args.file, session, args.verbose)

    if args.command:
        try:
            result = session.execute(args.command)
        except ChanqlError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print_result(result)
        return 0

    return run_repl(session)


if __name__ == "__main__":
    sys.exit(main())
