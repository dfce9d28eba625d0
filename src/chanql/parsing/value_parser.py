"""Parser for comma-separated SQL literal lists like ``1, 'John', true, NULL``."""

from __future__ import annotations

import math
import re
from typing import Iterator

from chanql.errors import InvalidLiteral, UnterminatedString
from chanql.types import INT64_MAX, INT64_MIN, SqlValue

_INTEGER_RE = re.compile(r"[-+]?\d+")
_DECIMAL_RE = re.compile(r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?")
_QUOTED_RE = re.compile(r"'((?:[^']|'')*)'", re.DOTALL)


def unquoted_chars(text: str) -> Iterator[tuple[int, str]]:
    """Yield ``(index, char)`` for each character outside single-quoted strings.

    Inside single quotes a doubled quote ``''`` is an escaped quote, not a
    terminator. Quote characters themselves are not yielded.

    Raises:
        UnterminatedString: A quoted string is never closed.
    """
    in_string = False
    string_start = 0
    i = 0

    while i < len(text):
        ch = text[i]
        if in_string:
            if ch == "'":
                if text.startswith("''", i):
                    i += 2
                    continue
                in_string = False
        elif ch == "'":
            in_string = True
            string_start = i
        else:
            yield i, ch
        i += 1

    if in_string:
        raise UnterminatedString(string_start)


def split_values(text: str) -> list[str]:
    """Split text on top-level commas, keeping quoted strings intact.

    Backslashes are copied verbatim. The returned pieces are stripped of
    surrounding whitespace but otherwise untouched.

    Raises:
        UnterminatedString: A quoted string is never closed.
    """
    pieces: list[str] = []
    start = 0
    for i, ch in unquoted_chars(text):
        if ch == ",":
            pieces.append(text[start:i].strip())
            start = i + 1
    pieces.append(text[start:].strip())
    return pieces


def parse_literal(token: str) -> SqlValue:
    """Parse a single literal token.

    Rules, in order: a single-quoted string, ``NULL``, ``true``/``false``
    (all case-insensitive), a 64-bit integer, a finite decimal number.

    Raises:
        InvalidLiteral: The token matches none of the rules.
    """
    text = token.strip()
    if not text:
        raise InvalidLiteral(token)

    if text.startswith("'"):
        match = _QUOTED_RE.fullmatch(text)
        if match is None:
            raise InvalidLiteral(text)
        return match.group(1).replace("''", "'")

    lowered = text.lower()
    if lowered == "null":
        return None
    if lowered == "true":
        return True
    if lowered == "false":
        return False

    if _INTEGER_RE.fullmatch(text):
        value = int(text)
        if INT64_MIN <= value <= INT64_MAX:
            return value

    if _DECIMAL_RE.fullmatch(text):
        number = float(text)
        if math.isfinite(number):
            return number

    raise InvalidLiteral(text)


def parse_values(text: str) -> list[SqlValue]:
    """Parse a comma-separated list of literals.

    Empty pieces, such as the one after a trailing comma, are skipped, so
    blank input yields an empty list; whether zero values is acceptable is
    up to the caller.

    Raises:
        UnterminatedString: A quoted string is never closed.
        InvalidLiteral: A piece is not a valid literal.
    """
    return [parse_literal(piece) for piece in split_values(text) if piece]
