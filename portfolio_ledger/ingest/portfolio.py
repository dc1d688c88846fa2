"""Broker portfolio summary CSV parsing (sales commission and proceeds)."""

from __future__ import annotations

import logging
from typing import Dict

from portfolio_ledger.config import get_settings
from portfolio_ledger.exceptions import FormatError
from portfolio_ledger.models import BrokerSalesSummary

from .columns import cell, find_column, find_header_row, min_width, parse_number, split_csv_line, split_lines

logger = logging.getLogger(__name__)

_HEADER_COLUMNS = (("security",), ("sales commission",), ("sales proceeds",))


def parse_portfolio_csv(
    csv_text: str, *, header_search_lines: int | None = None
) -> Dict[str, BrokerSalesSummary]:
    """Parse the broker portfolio export keyed by security.

    ``TOTAL`` rows are skipped, as are securities without any commission or
    proceeds.
    """

    lines = split_lines(csv_text)
    if len(lines) < 3:
        raise FormatError("Invalid Portfolio CSV format: Expected at least header and data rows")

    limit = header_search_lines or get_settings().header_search_lines
    header_index = find_header_row(lines, _HEADER_COLUMNS, limit)
    if header_index is None:
        raise FormatError("Invalid Portfolio CSV format: Could not find header row")

    headers = split_csv_line(lines[header_index])
    security_idx = find_column(headers, "security")
    commission_idx = find_column(headers, "sales commission")
    proceeds_idx = find_column(headers, "sales proceeds")
    unrealized_idx = find_column(headers, "unrealized gain")
    if None in (security_idx, commission_idx, proceeds_idx):
        raise FormatError("Invalid Portfolio CSV format: Missing required columns")

    width = min_width(security_idx, commission_idx, proceeds_idx)
    summaries: Dict[str, BrokerSalesSummary] = {}
    for line in lines[header_index + 1 :]:
        if line.upper().startswith("TOTAL"):
            continue
        values = split_csv_line(line)
        if len(values) < width:
            continue

        security = cell(values, security_idx)
        commission = parse_number(cell(values, commission_idx))
        proceeds = parse_number(cell(values, proceeds_idx))
        if security and (commission > 0 or proceeds > 0):
            summaries[security] = BrokerSalesSummary(
                security=security,
                sales_commission=commission,
                sales_proceeds=proceeds,
                unrealized_gain_loss=parse_number(cell(values, unrealized_idx)),
            )

    logger.debug("Parsed broker sales figures for %d securities", len(summaries))
    return summaries


__all__ = ["parse_portfolio_csv"]
