"""Order tracker CSV parsing."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time
from typing import List, Optional, Set, Tuple

from portfolio_ledger.config import get_settings
from portfolio_ledger.exceptions import FormatError
from portfolio_ledger.models import Order, Side

from .columns import cell, find_column, find_header_row, min_width, parse_number, split_csv_line, split_lines

logger = logging.getLogger(__name__)

FILLED_STATUS = "FILLED"
_DATETIME_PATTERN = re.compile(r"(\d{4}-\d{2}-\d{2})\s+(\d{2}:\d{2}:\d{2})")
_HEADER_COLUMNS = (("security",), ("side",), ("order qty",))


def _parse_order_datetime(raw: str) -> Tuple[Optional[date], Optional[time], Optional[datetime]]:
    match = _DATETIME_PATTERN.search(raw)
    if not match:
        return None, None, None
    try:
        order_date = date.fromisoformat(match.group(1))
        order_time = time.fromisoformat(match.group(2))
    except ValueError:
        return None, None, None
    return order_date, order_time, datetime.combine(order_date, order_time)


def parse_order_tracker_csv(csv_text: str, *, header_search_lines: int | None = None) -> List[Order]:
    """Parse an Order Tracker export into filled :class:`Order` records.

    Only ``FILLED`` rows are kept. Partial fills sharing an exchange order id
    collapse to the fill reporting zero remaining quantity; once an exchange
    order id has been accepted, later rows with the same id are ignored.
    """

    lines = split_lines(csv_text)
    if len(lines) < 3:
        raise FormatError("Invalid CSV format: Expected at least 3 lines (title, empty, header)")

    limit = header_search_lines or get_settings().header_search_lines
    header_index = find_header_row(lines, _HEADER_COLUMNS, limit)
    if header_index is None:
        raise FormatError("Invalid CSV format: Could not find header row")

    headers = split_csv_line(lines[header_index])
    security_idx = find_column(headers, "security")
    side_idx = find_column(headers, "side")
    qty_idx = find_column(headers, "order qty")
    price_idx = find_column(headers, "order price")
    value_idx = find_column(headers, "order value")
    status_idx = find_column(headers, "order status")
    remaining_idx = find_column(headers, "remaining qty")
    filled_idx = find_column(headers, "filled qty")
    datetime_idx = find_column(headers, "order date and time")
    exchange_id_idx = find_column(headers, "exchange order id")

    if None in (security_idx, side_idx, qty_idx, price_idx):
        raise FormatError("Invalid CSV format: Missing required columns")

    width = min_width(security_idx, side_idx, qty_idx, price_idx)
    orders: List[Order] = []
    accepted_exchange_ids: Set[str] = set()
    skipped = 0

    for line_number in range(header_index + 1, len(lines)):
        values = split_csv_line(lines[line_number])
        if len(values) < width:
            skipped += 1
            continue

        if cell(values, status_idx) != FILLED_STATUS:
            skipped += 1
            continue

        remaining_qty = parse_number(cell(values, remaining_idx))
        exchange_order_id = cell(values, exchange_id_idx)
        if exchange_order_id:
            if exchange_order_id in accepted_exchange_ids or remaining_qty != 0:
                skipped += 1
                continue
            accepted_exchange_ids.add(exchange_order_id)

        security = cell(values, security_idx)
        side = cell(values, side_idx).upper()
        if not security or side not in (Side.BUY.value, Side.SELL.value):
            skipped += 1
            continue

        order_qty = parse_number(cell(values, qty_idx))
        order_price = parse_number(cell(values, price_idx))
        order_value = parse_number(cell(values, value_idx))
        filled_qty = parse_number(cell(values, filled_idx))
        order_date, order_time, order_datetime = _parse_order_datetime(cell(values, datetime_idx))

        orders.append(
            Order(
                id=exchange_order_id or f"order-{line_number}",
                security=security,
                side=Side(side),
                order_qty=order_qty,
                order_price=order_price,
                order_value=order_value or order_qty * order_price,
                order_date=order_date,
                order_time=order_time,
                order_datetime=order_datetime,
                exchange_order_id=exchange_order_id,
                filled_qty=filled_qty or order_qty,
                remaining_qty=remaining_qty,
                order_status=FILLED_STATUS,
            )
        )

    logger.debug("Parsed %d filled orders (%d rows skipped)", len(orders), skipped)
    return orders


__all__ = ["parse_order_tracker_csv", "FILLED_STATUS"]
