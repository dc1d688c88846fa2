"""Lot tracking, reconciliation and session services."""

from .gain_loss import calculate_realized_gain_loss, verify_sell_orders
from .lots import LotBuilder, build_lots, calculate_holdings
from .session import PortfolioSession
from .split_store import SplitStore

__all__ = [
    "LotBuilder",
    "PortfolioSession",
    "SplitStore",
    "build_lots",
    "calculate_holdings",
    "calculate_realized_gain_loss",
    "verify_sell_orders",
]
