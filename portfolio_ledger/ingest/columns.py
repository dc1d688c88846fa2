"""Shared helpers for hand-exported broker CSV files.

Broker exports move columns around and reword headers between versions, so
columns are resolved by case-insensitive substring match instead of a fixed
schema. Row level problems are never fatal; only structural problems raise
:class:`~portfolio_ledger.exceptions.FormatError`.
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional, Sequence

_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def split_lines(text: str) -> List[str]:
    """Return the stripped, non-empty lines of ``text``."""

    lines = (line.strip() for line in text.split("\n"))
    return [line for line in lines if line]


def split_csv_line(line: str, delimiter: str = ",") -> List[str]:
    """Split one CSV line, honouring double quotes around delimiters.

    A single quote-toggle is tracked per line; escaped quotes are not
    supported. Quote characters are dropped and every field is stripped.
    """

    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    fields.append("".join(current).strip())
    return fields


def parse_float_prefix(value: str) -> Optional[float]:
    """Parse the leading number of ``value``; ``None`` when there is none."""

    match = _NUMBER_PREFIX.match(value.strip())
    if not match:
        return None
    return float(match.group(0))


def parse_number(value: Optional[str]) -> float:
    """Parse a numeric cell, dropping thousands separators. Returns 0 on failure."""

    if not value:
        return 0.0
    parsed = parse_float_prefix(str(value).replace(",", ""))
    return parsed if parsed is not None else 0.0


def parse_optional_number(value: Optional[str]) -> Optional[float]:
    """Like :func:`parse_number` but an empty cell stays absent."""

    if not value:
        return None
    return parse_number(value)


def find_header_row(
    lines: Sequence[str],
    required: Sequence[Sequence[str]],
    limit: int,
) -> Optional[int]:
    """Return the index of the first line mentioning every required column.

    ``required`` is a list of alternatives per column, e.g.
    ``[("company code", "security"), ("quantity",)]``.
    """

    for index, line in enumerate(lines[:limit]):
        lowered = line.lower()
        if all(any(fragment in lowered for fragment in options) for options in required):
            return index
    return None


def find_column_where(headers: Sequence[str], predicate: Callable[[str], bool]) -> Optional[int]:
    for index, header in enumerate(headers):
        if predicate(header.lower()):
            return index
    return None


def find_column(
    headers: Sequence[str],
    *fragments: str,
    excluding: Sequence[str] = (),
) -> Optional[int]:
    """Return the first column whose header contains any of ``fragments``."""

    return find_column_where(
        headers,
        lambda header: any(fragment in header for fragment in fragments)
        and not any(blocked in header for blocked in excluding),
    )


def cell(values: Sequence[str], index: Optional[int]) -> str:
    """Return the stripped cell at ``index`` or an empty string when absent."""

    if index is None or index >= len(values):
        return ""
    return values[index].strip()


def min_width(*indices: Optional[int]) -> int:
    """Number of cells a row needs to reach every given column."""

    present = [index for index in indices if index is not None]
    return max(present) + 1 if present else 0


__all__ = [
    "cell",
    "find_column",
    "find_column_where",
    "find_header_row",
    "min_width",
    "parse_float_prefix",
    "parse_number",
    "parse_optional_number",
    "split_csv_line",
    "split_lines",
]
