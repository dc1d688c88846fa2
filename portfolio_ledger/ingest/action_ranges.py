"""Action price range CSV parsing.

Expected header (any order, wording may vary)::

    Company Code,Quantity,Avg Price,B.E.S Price,Last,Change,% Change,
    Accumulate Slowly,Strong Add Zone,Re-evaluate if Market Weak,Pause Buys,
    Trim Small Portion,Investment_Percentage,Time,Trailing Stop (SELL if below)

Only the security, quantity and average price columns are mandatory.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from portfolio_ledger.config import get_settings
from portfolio_ledger.exceptions import FormatError
from portfolio_ledger.models import ActionPriceRange

from .columns import (
    cell,
    find_column,
    find_column_where,
    find_header_row,
    parse_float_prefix,
    parse_number,
    parse_optional_number,
    split_csv_line,
    split_lines,
)

logger = logging.getLogger(__name__)

_HEADER_COLUMNS = (("company code", "security"), ("quantity",), ("avg price", "average price"))


def _optional_text(value: str) -> Optional[str]:
    return value or None


def _parse_percentage(value: str) -> Optional[float]:
    if not value:
        return None
    return parse_float_prefix(value.replace("%", ""))


def parse_action_price_ranges_csv(
    csv_text: str, *, header_search_lines: int | None = None
) -> Dict[str, ActionPriceRange]:
    """Parse an externally authored action price range table keyed by security."""

    lines = split_lines(csv_text)
    if len(lines) < 2:
        raise FormatError("Invalid CSV format: Expected at least header and one data row")

    limit = min(3, header_search_lines or get_settings().header_search_lines)
    header_index = find_header_row(lines, _HEADER_COLUMNS, limit)
    if header_index is None:
        raise FormatError(
            "Invalid CSV format: Missing required columns (Company Code, Quantity, Avg Price)"
        )

    headers = split_csv_line(lines[header_index])
    security_idx = find_column(headers, "company code", "security")
    quantity_idx = find_column(headers, "quantity")
    avg_price_idx = find_column(headers, "avg price", "average price")
    if None in (security_idx, quantity_idx, avg_price_idx):
        raise FormatError(
            "Invalid CSV format: Missing required columns (Company Code, Quantity, Avg Price)"
        )

    break_even_idx = find_column(headers, "b.e.s", "break even")
    last_idx = find_column(headers, "last")
    change_idx = find_column(headers, "change", excluding=("%",))
    change_pct_idx = find_column_where(headers, lambda header: "change" in header and "%" in header)
    accumulate_idx = find_column(headers, "accumulate slowly")
    strong_add_idx = find_column(headers, "strong add zone")
    re_evaluate_idx = find_column(headers, "re-evaluate", "reevaluate")
    pause_idx = find_column(headers, "pause buys")
    trim_idx = find_column(headers, "trim small portion")
    investment_idx = find_column(headers, "investment_percentage", "investment percentage")
    trailing_idx = find_column(headers, "trailing stop")

    ranges: Dict[str, ActionPriceRange] = {}
    for line in lines[header_index + 1 :]:
        values = split_csv_line(line)
        if len(values) < 3:
            continue
        security = cell(values, security_idx)
        if not security:
            continue

        avg_price = parse_number(cell(values, avg_price_idx))
        break_even = cell(values, break_even_idx)
        ranges[security] = ActionPriceRange(
            security=security,
            quantity=parse_number(cell(values, quantity_idx)),
            avg_price=avg_price,
            break_even_sell_price=parse_number(break_even) if break_even else avg_price,
            last_price=parse_optional_number(cell(values, last_idx)),
            change=parse_optional_number(cell(values, change_idx)),
            change_percent=parse_optional_number(cell(values, change_pct_idx)),
            accumulate_slowly=_optional_text(cell(values, accumulate_idx)),
            strong_add_zone=_optional_text(cell(values, strong_add_idx)),
            re_evaluate_if_weak=_optional_text(cell(values, re_evaluate_idx)),
            pause_buys=_optional_text(cell(values, pause_idx)),
            trim_small_portion=_optional_text(cell(values, trim_idx)),
            investment_percentage=_parse_percentage(cell(values, investment_idx)),
            trailing_stop=parse_optional_number(cell(values, trailing_idx)),
        )

    logger.debug("Parsed action price ranges for %d securities", len(ranges))
    return ranges


__all__ = ["parse_action_price_ranges_csv"]
