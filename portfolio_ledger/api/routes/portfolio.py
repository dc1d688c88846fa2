"""Stateless portfolio analysis endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException, status

from portfolio_ledger.exceptions import FormatError
from portfolio_ledger.models import Order, SecurityHolding
from portfolio_ledger.reports import build_portfolio_summary, recommendation_to_dict
from portfolio_ledger.rules.recommendations import parse_price_range
from portfolio_ledger.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    PriceRangeRequest,
    PriceRangeResponse,
    PriceRangeSchema,
)
from portfolio_ledger.services.gain_loss import RealizedGainLoss, SellVerification
from portfolio_ledger.services.session import PortfolioSession

logger = logging.getLogger(__name__)

router = APIRouter()


def _order_dict(order: Order) -> dict[str, Any]:
    return {
        "id": order.id,
        "security": order.security,
        "side": order.side.value,
        "order_qty": order.order_qty,
        "order_price": order.order_price,
        "order_date": order.order_date.isoformat() if order.order_date else None,
    }


def _holding_dict(holding: SecurityHolding) -> dict[str, Any]:
    payload = asdict(holding)
    payload["realized_gain_loss"] = holding.realized_gain_loss
    return payload


def _realized_dict(realized: RealizedGainLoss) -> dict[str, Any]:
    return {
        "total_realized_gain_loss": realized.total_realized_gain_loss,
        "total_proceeds": realized.total_proceeds,
        "total_cost_basis": realized.total_cost_basis,
        "total_commission": realized.total_commission,
        "by_security": {security: asdict(data) for security, data in realized.details.items()},
    }


def _verification_dict(verification: SellVerification) -> dict[str, Any]:
    return {
        "total_sell_orders": len(verification.all_sell_orders),
        "matched_sells": verification.matched_sells,
        "unmatched_sells": [_order_dict(order) for order in verification.unmatched_sells],
        "total_sell_proceeds": verification.total_sell_proceeds,
        "total_cost_basis": verification.total_cost_basis,
        "expected_realized_gain_loss": verification.expected_realized_gain_loss,
        "by_security": {
            security: {
                "sell_orders": len(tally.sell_orders),
                "matched": tally.matched,
                "unmatched": tally.unmatched,
            }
            for security, tally in verification.by_security.items()
        },
        "shortfalls": [asdict(shortfall) for shortfall in verification.shortfalls],
    }


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_portfolio(payload: AnalyzeRequest) -> AnalyzeResponse:
    """Run the full CSV -> lots -> holdings -> recommendations pipeline."""

    session = PortfolioSession()
    session.set_stock_splits(split.to_domain() for split in payload.stock_splits)
    try:
        session.load_orders_csv(payload.orders_csv)
        if payload.watchlist_csv:
            session.load_watchlist_csv(payload.watchlist_csv)
        if payload.portfolio_csv:
            session.load_portfolio_csv(payload.portfolio_csv)
        if payload.action_ranges_csv:
            session.load_action_ranges_csv(payload.action_ranges_csv)
    except FormatError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if payload.current_prices:
        session.set_current_prices(payload.current_prices)

    realized = session.realized_gain_loss()
    logger.info(
        "Analyzed %d orders into %d lots across %d securities",
        len(session.orders),
        len(session.lots),
        len(session.holdings),
    )
    return AnalyzeResponse(
        summary=build_portfolio_summary(session.holdings, realized),
        holdings=[_holding_dict(holding) for holding in session.holdings.values()],
        realized=_realized_dict(realized),
        verification=_verification_dict(session.verification()),
        recommendations={
            security: recommendation_to_dict(recommendation)
            for security, recommendation in session.recommendations().items()
        },
        oversold=[asdict(item) for item in session.oversold],
    )


@router.post("/parse/price-range", response_model=PriceRangeResponse)
async def parse_zone(payload: PriceRangeRequest) -> PriceRangeResponse:
    parsed = parse_price_range(payload.value)
    return PriceRangeResponse(range=PriceRangeSchema.from_domain(parsed) if parsed else None)


__all__ = ["router"]
