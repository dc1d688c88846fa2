"""Lot building with FIFO sell matching and retroactive split adjustment.

Every BUY order opens one lot. SELL orders close the oldest open lots of the
same security first. Splits dated after a transaction inflate its quantity
and deflate its price by the cumulative ratio, so historical trades are
expressed in today's share terms while cost basis (quantity x price) is
unchanged.

All functions here recompute from scratch; callers never patch lots or
holdings in place after a change to orders, splits or prices.
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from portfolio_ledger.models import (
    Lot,
    Order,
    OversoldSell,
    SecurityHolding,
    SellMatch,
    Side,
    StockSplit,
)

logger = logging.getLogger(__name__)

# Float residue below this is treated as zero when matching quantities.
QUANTITY_EPSILON = 1e-9


def group_splits(stock_splits: Iterable[StockSplit]) -> Dict[str, List[StockSplit]]:
    """Group splits per security, oldest first."""

    grouped: Dict[str, List[StockSplit]] = {}
    for split in stock_splits:
        grouped.setdefault(split.security, []).append(split)
    for splits in grouped.values():
        splits.sort(key=lambda s: s.split_datetime)
    return grouped


def split_ratio_after(splits: Sequence[StockSplit], moment: Optional[datetime]) -> float:
    """Product of the ratios of every split strictly after ``moment``."""

    ratio = 1.0
    if moment is None:
        return ratio
    for split in splits:
        if moment < split.split_datetime:
            ratio *= split.ratio
    return ratio


def order_sort_key(order: Order) -> tuple[datetime, time]:
    if order.order_datetime is not None:
        primary = order.order_datetime
    elif order.order_date is not None:
        primary = datetime.combine(order.order_date, time.min)
    else:
        primary = datetime.min
    return primary, order.order_time or time.min


def sort_orders(orders: Iterable[Order]) -> List[Order]:
    """Return orders in processing sequence (stable on ties)."""

    return sorted(orders, key=order_sort_key)


class LotBuilder:
    """Single-use accumulator for one lot-building pass.

    Holds the per-security lot lists while orders are walked; discard it once
    :meth:`process` returns.
    """

    def __init__(self, stock_splits: Iterable[StockSplit] = ()) -> None:
        self._splits = group_splits(stock_splits)
        self._lots_by_security: Dict[str, List[Lot]] = {}
        self.lots: List[Lot] = []
        self.oversold: List[OversoldSell] = []

    def process(self, orders: Iterable[Order]) -> List[Lot]:
        for order in sort_orders(orders):
            if order.side == Side.BUY:
                self._open_lot(order)
            elif order.side == Side.SELL:
                self._match_sell(order)
        logger.debug(
            "Built %d lots across %d securities", len(self.lots), len(self._lots_by_security)
        )
        return self.lots

    def _ratio_for(self, order: Order) -> float:
        return split_ratio_after(self._splits.get(order.security, []), order.timestamp())

    def _open_lot(self, order: Order) -> None:
        ratio = self._ratio_for(order)
        quantity = order.order_qty * ratio
        buy_price = order.order_price / ratio
        adjusted = ratio != 1.0
        lot = Lot(
            id=f"lot-{order.id}",
            security=order.security,
            buy_order_id=order.id,
            buy_date=order.order_date,
            buy_price=buy_price,
            quantity=quantity,
            remaining_quantity=quantity,
            total_cost=quantity * buy_price,
            original_buy_price=order.order_price if adjusted else None,
            original_quantity=order.order_qty if adjusted else None,
            split_ratio=ratio if adjusted else None,
        )
        self.lots.append(lot)
        self._lots_by_security.setdefault(order.security, []).append(lot)

    def _match_sell(self, order: Order) -> None:
        ratio = self._ratio_for(order)
        sell_price = order.order_price / ratio
        remaining = order.order_qty * ratio

        for lot in self._lots_by_security.get(order.security, []):
            if remaining <= QUANTITY_EPSILON:
                break
            if lot.remaining_quantity <= 0:
                continue

            quantity = min(remaining, lot.remaining_quantity)
            price_delta = sell_price - lot.buy_price
            lot.sell_orders.append(
                SellMatch(
                    sell_order_id=order.id,
                    sell_date=order.order_date,
                    sell_price=sell_price,
                    quantity=quantity,
                    proceeds=quantity * sell_price,
                    gain_loss=quantity * price_delta,
                    gain_loss_percent=(price_delta / lot.buy_price) * 100 if lot.buy_price else 0.0,
                )
            )
            lot.remaining_quantity -= quantity
            if lot.remaining_quantity < QUANTITY_EPSILON:
                lot.remaining_quantity = 0.0
            remaining -= quantity

        if remaining > QUANTITY_EPSILON:
            logger.warning(
                "SELL order %s for %s has %s unmatched quantity",
                order.id,
                order.security,
                remaining,
            )
            self.oversold.append(
                OversoldSell(
                    sell_order_id=order.id,
                    security=order.security,
                    unmatched_quantity=remaining,
                )
            )


def build_lots(orders: Iterable[Order], stock_splits: Iterable[StockSplit] = ()) -> List[Lot]:
    """Turn orders into lots using FIFO matching and split adjustment."""

    return LotBuilder(stock_splits).process(orders)


def calculate_holdings(
    lots: Iterable[Lot],
    current_prices: Mapping[str, float] | None = None,
) -> Dict[str, SecurityHolding]:
    """Aggregate lots into per-security holdings.

    Only open quantity counts toward totals, but every lot ever created for the
    security is attached to the holding.
    A price of zero or below is treated as unknown.
    """

    prices = current_prices or {}
    holdings: Dict[str, SecurityHolding] = {}

    for lot in lots:
        holding = holdings.get(lot.security)
        if holding is None:
            price = prices.get(lot.security)
            holding = SecurityHolding(
                security=lot.security,
                current_price=price if price is not None and price > 0 else None,
            )
            holdings[lot.security] = holding
        if lot.remaining_quantity > 0:
            holding.total_quantity += lot.remaining_quantity
            holding.total_cost += lot.remaining_quantity * lot.buy_price
        holding.lots.append(lot)

    for holding in holdings.values():
        if holding.total_quantity > 0:
            holding.average_buy_price = holding.total_cost / holding.total_quantity
        if holding.current_price is not None:
            holding.market_value = holding.total_quantity * holding.current_price
            holding.unrealized_gain_loss = holding.market_value - holding.total_cost
            holding.unrealized_gain_loss_percent = (
                holding.unrealized_gain_loss / holding.total_cost * 100
                if holding.total_cost
                else 0.0
            )

    return holdings


__all__ = [
    "LotBuilder",
    "QUANTITY_EPSILON",
    "build_lots",
    "calculate_holdings",
    "group_splits",
    "order_sort_key",
    "sort_orders",
    "split_ratio_after",
]
