"""Reporting views over holdings, lots and recommendations.

These helpers only shape already computed data into plain dicts or pandas
frames for downstream consumers (tables, AI prompts, exports). They never
recompute lots.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

import pandas as pd

from portfolio_ledger.models import (
    ActionPriceRange,
    Lot,
    PriceRange,
    SecurityHolding,
    SecurityRecommendation,
)

if TYPE_CHECKING:
    from portfolio_ledger.services.gain_loss import RealizedGainLoss

ACTION_RANGE_CSV_HEADER = (
    "Company Code,Quantity,Avg Price,B.E.S Price,Last,Change,% Change,Accumulate Slowly,"
    "Strong Add Zone,Re-evaluate if Market Weak,Pause Buys,Trim Small Portion,"
    "Investment_Percentage,Time,Trailing Stop (SELL if below)"
)
PRICE_RANGE_FORMATS = [
    "Range format: '245–250' (use en-dash or hyphen between numbers)",
    "Above threshold: '280+' (use plus sign)",
    "Below threshold: 'Below 230' (use 'Below' prefix)",
    "Single value: '250' (just the number)",
]

HOLDING_COLUMNS = [
    "security",
    "total_quantity",
    "average_buy_price",
    "total_cost",
    "current_price",
    "market_value",
    "unrealized_gain_loss",
    "unrealized_gain_loss_percent",
    "realized_gain_loss",
    "lot_count",
    "open_lot_count",
]
LOT_COLUMNS = [
    "lot_id",
    "security",
    "buy_order_id",
    "buy_date",
    "buy_price",
    "quantity",
    "remaining_quantity",
    "total_cost",
    "original_buy_price",
    "original_quantity",
    "split_ratio",
    "sell_count",
    "realized_gain_loss",
]


def range_to_dict(price_range: Optional[PriceRange]) -> Optional[dict[str, Optional[float]]]:
    """JSON friendly range; an open upper bound becomes ``None``."""

    if price_range is None:
        return None
    upper = None if math.isinf(price_range.max) else price_range.max
    return {"min": price_range.min, "max": upper}


def _sorted_holdings(holdings: Mapping[str, SecurityHolding]) -> list[SecurityHolding]:
    return sorted(holdings.values(), key=lambda h: h.security)


def _market_total(holdings: Iterable[SecurityHolding]) -> float:
    return sum(h.market_value or 0.0 for h in holdings)


def build_portfolio_summary(
    holdings: Mapping[str, SecurityHolding],
    realized: "RealizedGainLoss | None" = None,
) -> dict[str, Any]:
    """Portfolio level totals."""

    values = list(holdings.values())
    total_cost = sum(h.total_cost for h in values)
    total_unrealized = sum(h.unrealized_gain_loss or 0.0 for h in values)
    lots = [lot for h in values for lot in h.lots]
    summary: dict[str, Any] = {
        "total_securities": len(values),
        "open_positions": sum(1 for h in values if h.total_quantity > 0),
        "priced_securities": sum(1 for h in values if h.current_price is not None),
        "total_cost": total_cost,
        "total_market_value": _market_total(values),
        "total_unrealized_gain_loss": total_unrealized,
        "total_unrealized_gain_loss_percent": total_unrealized / total_cost * 100 if total_cost else 0.0,
        "lot_count": len(lots),
        "open_lot_count": sum(1 for lot in lots if lot.remaining_quantity > 0),
    }
    if realized is not None:
        summary["total_realized_gain_loss"] = realized.total_realized_gain_loss
        summary["total_commission"] = realized.total_commission
    return summary


def recommendation_to_dict(recommendation: SecurityRecommendation) -> dict[str, Any]:
    zones = recommendation.target_zones
    return {
        "action": recommendation.recommendation.value,
        "confidence": recommendation.confidence.value,
        "reason": recommendation.reason,
        "currentPrice": recommendation.current_price,
        "targetZones": {
            "accumulateSlowly": range_to_dict(zones.accumulate_slowly),
            "strongAddZone": range_to_dict(zones.strong_add_zone),
            "reEvaluateIfWeak": zones.re_evaluate_if_weak,
            "pauseBuys": range_to_dict(zones.pause_buys),
            "trimSmallPortion": zones.trim_small_portion,
            "trailingStop": zones.trailing_stop,
        },
    }


def _position(holding: SecurityHolding) -> dict[str, Any]:
    return {
        "quantity": holding.total_quantity,
        "averageBuyPrice": holding.average_buy_price,
        "totalCost": holding.total_cost,
        "currentPrice": holding.current_price,
        "marketValue": holding.market_value,
        "unrealizedGainLoss": holding.unrealized_gain_loss,
        "unrealizedGainLossPercent": holding.unrealized_gain_loss_percent,
        "realizedGainLoss": holding.realized_gain_loss,
    }


def _lot_detail(lot: Lot, current_price: Optional[float]) -> dict[str, Any]:
    unrealized = (
        lot.remaining_quantity * (current_price - lot.buy_price)
        if current_price and lot.remaining_quantity > 0
        else None
    )
    return {
        "buyDate": lot.buy_date.isoformat() if lot.buy_date else None,
        "buyPrice": lot.buy_price,
        "originalBuyPrice": lot.original_buy_price,
        "quantity": lot.quantity,
        "originalQuantity": lot.original_quantity,
        "remainingQuantity": lot.remaining_quantity,
        "totalCost": lot.total_cost,
        "splitRatio": lot.split_ratio,
        "sellOrders": [
            {
                "sellDate": match.sell_date.isoformat() if match.sell_date else None,
                "sellPrice": match.sell_price,
                "quantity": match.quantity,
                "gainLoss": match.gain_loss,
                "gainLossPercent": match.gain_loss_percent,
            }
            for match in lot.sell_orders
        ],
        "realizedGainLoss": lot.realized_gain_loss,
        "unrealizedGainLoss": unrealized,
    }


def _action_range_dict(action_range: ActionPriceRange) -> dict[str, Any]:
    return {
        "breakEvenSellPrice": action_range.break_even_sell_price,
        "accumulateSlowly": action_range.accumulate_slowly,
        "strongAddZone": action_range.strong_add_zone,
        "reEvaluateIfWeak": action_range.re_evaluate_if_weak,
        "pauseBuys": action_range.pause_buys,
        "trimSmallPortion": action_range.trim_small_portion,
        "trailingStop": action_range.trailing_stop,
        "investmentPercentage": action_range.investment_percentage,
    }


def build_ai_metadata(
    holdings: Mapping[str, SecurityHolding],
    recommendations: Mapping[str, SecurityRecommendation],
    action_ranges: Mapping[str, ActionPriceRange],
    total_portfolio_value: Optional[float] = None,
    *,
    generated_at: Optional[datetime] = None,
) -> dict[str, Any]:
    """Structured portfolio description for AI analysis (JSON serialisable)."""

    ordered = _sorted_holdings(holdings)
    securities = []
    for holding in ordered:
        recommendation = recommendations.get(holding.security)
        action_range = action_ranges.get(holding.security)
        securities.append(
            {
                "security": holding.security,
                "currentPosition": _position(holding),
                "actionPriceRanges": _action_range_dict(action_range) if action_range else None,
                "recommendation": recommendation_to_dict(recommendation) if recommendation else None,
                "lotDetails": [_lot_detail(lot, holding.current_price) for lot in holding.lots],
            }
        )

    return {
        "exportDate": (generated_at or datetime.now(timezone.utc)).isoformat(),
        "portfolioSummary": {
            "totalSecurities": len(ordered),
            "totalPortfolioValue": total_portfolio_value or _market_total(ordered),
            "totalCost": sum(h.total_cost for h in ordered),
            "totalUnrealizedGainLoss": sum(h.unrealized_gain_loss or 0.0 for h in ordered),
            "securitiesWithRecommendations": len(recommendations),
        },
        "securities": securities,
    }


def _suggested_zones(holding: SecurityHolding) -> dict[str, Any]:
    price = holding.current_price
    average = holding.average_buy_price
    in_profit = bool(price and holding.unrealized_gain_loss_percent and holding.unrealized_gain_loss_percent > 0)
    if not price:
        return {
            "strongAddZone": None,
            "accumulateSlowly": None,
            "pauseBuys": None,
            "trimSmallPortion": None,
            "trailingStop": average * 0.98,
        }
    if in_profit:
        strong_add = f"{price * 0.85:.2f}–{price * 0.90:.2f}"
    else:
        strong_add = f"{average * 0.90:.2f}–{average * 0.95:.2f}"
    return {
        "strongAddZone": strong_add,
        "accumulateSlowly": f"{price * 0.90:.2f}–{price * 0.95:.2f}",
        "pauseBuys": f"{price * 1.10:.2f}–{price * 1.15:.2f}",
        "trimSmallPortion": f"{price * 1.20:.2f}+",
        "trailingStop": price * 0.90 if in_profit else average * 0.98,
    }


def build_action_range_request(
    holdings: Mapping[str, SecurityHolding],
    total_portfolio_value: Optional[float] = None,
    *,
    generated_at: Optional[datetime] = None,
) -> dict[str, Any]:
    """Payload asking an external author to produce an action price range table."""

    ordered = _sorted_holdings(holdings)
    total_value = total_portfolio_value or _market_total(ordered)
    securities = []
    for holding in ordered:
        weight = holding.market_value or holding.total_cost
        securities.append(
            {
                "security": holding.security,
                "currentPosition": _position(holding),
                "priceHistory": [
                    {
                        "buyDate": lot.buy_date.isoformat() if lot.buy_date else None,
                        "buyPrice": lot.buy_price,
                        "quantity": lot.quantity,
                    }
                    for lot in holding.lots
                ],
                "investmentPercentage": weight / total_value * 100 if total_value > 0 else 0.0,
                "breakEvenSellPrice": holding.average_buy_price * 1.01,
                "suggestedZones": _suggested_zones(holding),
            }
        )

    return {
        "exportDate": (generated_at or datetime.now(timezone.utc)).isoformat(),
        "purpose": "Generate Action Price Ranges CSV for portfolio management",
        "csvFormat": {"headers": ACTION_RANGE_CSV_HEADER, "priceRangeFormats": PRICE_RANGE_FORMATS},
        "portfolioSummary": {
            "totalSecurities": len(ordered),
            "totalPortfolioValue": total_value,
            "totalCost": sum(h.total_cost for h in ordered),
            "totalUnrealizedGainLoss": sum(h.unrealized_gain_loss or 0.0 for h in ordered),
        },
        "securities": securities,
    }


def holdings_frame(holdings: Mapping[str, SecurityHolding]) -> pd.DataFrame:
    """One row per security."""

    rows = [
        {
            "security": h.security,
            "total_quantity": h.total_quantity,
            "average_buy_price": h.average_buy_price,
            "total_cost": h.total_cost,
            "current_price": h.current_price,
            "market_value": h.market_value,
            "unrealized_gain_loss": h.unrealized_gain_loss,
            "unrealized_gain_loss_percent": h.unrealized_gain_loss_percent,
            "realized_gain_loss": h.realized_gain_loss,
            "lot_count": len(h.lots),
            "open_lot_count": sum(1 for lot in h.lots if lot.remaining_quantity > 0),
        }
        for h in _sorted_holdings(holdings)
    ]
    return pd.DataFrame(rows, columns=HOLDING_COLUMNS)


def lots_frame(lots: Iterable[Lot]) -> pd.DataFrame:
    """One row per lot, in creation order."""

    rows = [
        {
            "lot_id": lot.id,
            "security": lot.security,
            "buy_order_id": lot.buy_order_id,
            "buy_date": lot.buy_date,
            "buy_price": lot.buy_price,
            "quantity": lot.quantity,
            "remaining_quantity": lot.remaining_quantity,
            "total_cost": lot.total_cost,
            "original_buy_price": lot.original_buy_price,
            "original_quantity": lot.original_quantity,
            "split_ratio": lot.split_ratio,
            "sell_count": len(lot.sell_orders),
            "realized_gain_loss": lot.realized_gain_loss,
        }
        for lot in lots
    ]
    return pd.DataFrame(rows, columns=LOT_COLUMNS)


__all__ = [
    "ACTION_RANGE_CSV_HEADER",
    "build_action_range_request",
    "build_ai_metadata",
    "build_portfolio_summary",
    "holdings_frame",
    "lots_frame",
    "range_to_dict",
    "recommendation_to_dict",
]
