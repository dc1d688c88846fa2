"""Core package for the portfolio lot-accounting engine."""

from .exceptions import DataConsistencyWarning, FormatError
from .models import (
    ActionPriceRange,
    Lot,
    Order,
    SecurityHolding,
    SecurityRecommendation,
    SellMatch,
    StockSplit,
)
from .services import (
    PortfolioSession,
    build_lots,
    calculate_holdings,
    calculate_realized_gain_loss,
    verify_sell_orders,
)
from .rules import generate_all_recommendations, generate_recommendation, parse_price_range

__all__ = [
    "ActionPriceRange",
    "DataConsistencyWarning",
    "FormatError",
    "Lot",
    "Order",
    "PortfolioSession",
    "SecurityHolding",
    "SecurityRecommendation",
    "SellMatch",
    "StockSplit",
    "build_lots",
    "calculate_holdings",
    "calculate_realized_gain_loss",
    "generate_all_recommendations",
    "generate_recommendation",
    "parse_price_range",
    "verify_sell_orders",
]
