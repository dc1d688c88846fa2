"""Realized gain/loss and SELL order reconciliation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

from portfolio_ledger.models import BrokerSalesSummary, Lot, Order, OversoldSell, Side, StockSplit

from .lots import QUANTITY_EPSILON, group_splits, split_ratio_after

logger = logging.getLogger(__name__)


@dataclass
class SecurityRealized:
    realized_gain_loss: float = 0.0
    proceeds: float = 0.0
    cost_basis: float = 0.0
    commission: float = 0.0


@dataclass
class RealizedGainLoss:
    total_realized_gain_loss: float
    total_proceeds: float
    total_cost_basis: float
    total_commission: float
    details: Dict[str, SecurityRealized] = field(default_factory=dict)

    @property
    def by_security(self) -> Dict[str, float]:
        return {security: data.realized_gain_loss for security, data in self.details.items()}


@dataclass
class SecuritySellTally:
    sell_orders: List[Order] = field(default_factory=list)
    matched: int = 0
    unmatched: int = 0


@dataclass
class SellVerification:
    all_sell_orders: List[Order]
    matched_sells: int
    unmatched_sells: List[Order]
    total_sell_proceeds: float
    total_cost_basis: float
    expected_realized_gain_loss: float
    by_security: Dict[str, SecuritySellTally]
    shortfalls: List[OversoldSell] = field(default_factory=list)


def calculate_realized_gain_loss(
    lots: Iterable[Lot],
    broker_sales: Mapping[str, BrokerSalesSummary] | None = None,
) -> RealizedGainLoss:
    """Sum realized gain/loss from lot sell matches.

    When broker sales figures are supplied, a security's proceeds are replaced
    by the broker-reported amount and its realized result becomes
    ``proceeds - cost_basis - commission``; cost basis always comes from lots.
    """

    details: Dict[str, SecurityRealized] = {}
    for lot in lots:
        for match in lot.sell_orders:
            data = details.setdefault(lot.security, SecurityRealized())
            data.realized_gain_loss += match.gain_loss
            data.proceeds += match.proceeds
            data.cost_basis += match.quantity * lot.buy_price

    for security, summary in (broker_sales or {}).items():
        data = details.get(security)
        if data is None:
            continue
        data.proceeds = summary.sales_proceeds
        data.commission = summary.sales_commission
        data.realized_gain_loss = summary.sales_proceeds - data.cost_basis - summary.sales_commission

    return RealizedGainLoss(
        total_realized_gain_loss=sum(d.realized_gain_loss for d in details.values()),
        total_proceeds=sum(d.proceeds for d in details.values()),
        total_cost_basis=sum(d.cost_basis for d in details.values()),
        total_commission=sum(d.commission for d in details.values()),
        details=details,
    )


def verify_sell_orders(
    lots: Sequence[Lot],
    orders: Iterable[Order],
    stock_splits: Iterable[StockSplit] = (),
) -> SellVerification:
    """Cross-check every SELL order against the lot sell matches.

    ``shortfalls`` lists orders whose split-adjusted quantity was not fully
    covered by open lots, including orders that matched partially.
    """

    sell_orders = [order for order in orders if order.side == Side.SELL]
    matched_qty: Dict[str, float] = {}
    total_proceeds = 0.0
    total_cost_basis = 0.0
    for lot in lots:
        for match in lot.sell_orders:
            matched_qty[match.sell_order_id] = matched_qty.get(match.sell_order_id, 0.0) + match.quantity
            total_proceeds += match.proceeds
            total_cost_basis += match.quantity * lot.buy_price

    splits = group_splits(stock_splits)
    by_security: Dict[str, SecuritySellTally] = {}
    unmatched: List[Order] = []
    shortfalls: List[OversoldSell] = []
    for order in sell_orders:
        tally = by_security.setdefault(order.security, SecuritySellTally())
        tally.sell_orders.append(order)
        if order.id in matched_qty:
            tally.matched += 1
        else:
            tally.unmatched += 1
            unmatched.append(order)

        expected = order.order_qty * split_ratio_after(splits.get(order.security, []), order.timestamp())
        missing = expected - matched_qty.get(order.id, 0.0)
        if missing > QUANTITY_EPSILON:
            shortfalls.append(
                OversoldSell(sell_order_id=order.id, security=order.security, unmatched_quantity=missing)
            )

    if unmatched:
        logger.warning(
            "Found %d unmatched SELL orders: %s",
            len(unmatched),
            ", ".join(f"{o.security} {o.order_qty}@{o.order_price} ({o.id})" for o in unmatched),
        )

    return SellVerification(
        all_sell_orders=sell_orders,
        matched_sells=sum(tally.matched for tally in by_security.values()),
        unmatched_sells=unmatched,
        total_sell_proceeds=total_proceeds,
        total_cost_basis=total_cost_basis,
        expected_realized_gain_loss=total_proceeds - total_cost_basis,
        by_security=by_security,
        shortfalls=shortfalls,
    )


__all__ = [
    "RealizedGainLoss",
    "SecurityRealized",
    "SecuritySellTally",
    "SellVerification",
    "calculate_realized_gain_loss",
    "verify_sell_orders",
]
