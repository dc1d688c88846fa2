"""Watchlist CSV parsing (latest prices)."""

from __future__ import annotations

import logging
from typing import Dict

from portfolio_ledger.config import get_settings
from portfolio_ledger.exceptions import FormatError

from .columns import cell, find_column, find_header_row, min_width, parse_number, split_csv_line, split_lines

logger = logging.getLogger(__name__)


def parse_watchlist_csv(csv_text: str, *, header_search_lines: int | None = None) -> Dict[str, float]:
    """Return a security -> last price mapping; non-positive prices are dropped."""

    lines = split_lines(csv_text)
    if len(lines) < 2:
        raise FormatError("Invalid Watchlist CSV format: Expected at least header and data rows")

    limit = min(3, header_search_lines or get_settings().header_search_lines)
    header_index = find_header_row(lines, (("security",), ("last",)), limit)
    if header_index is None:
        raise FormatError(
            "Invalid Watchlist CSV format: Could not find header row with Security and Last columns"
        )

    headers = split_csv_line(lines[header_index])
    security_idx = find_column(headers, "security")
    last_idx = find_column(headers, "last")
    if security_idx is None or last_idx is None:
        raise FormatError("Invalid Watchlist CSV format: Missing Security or Last columns")

    width = min_width(security_idx, last_idx)
    prices: Dict[str, float] = {}
    for line in lines[header_index + 1 :]:
        values = split_csv_line(line)
        if len(values) < width:
            continue
        security = cell(values, security_idx)
        last_price = parse_number(cell(values, last_idx))
        if security and last_price > 0:
            prices[security] = last_price

    logger.debug("Parsed %d watchlist prices", len(prices))
    return prices


__all__ = ["parse_watchlist_csv"]
