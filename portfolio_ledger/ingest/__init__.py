"""CSV parsers for broker exports and externally authored tables."""

from .action_ranges import parse_action_price_ranges_csv
from .orders import parse_order_tracker_csv
from .portfolio import parse_portfolio_csv
from .prices import parse_watchlist_csv

__all__ = [
    "parse_action_price_ranges_csv",
    "parse_order_tracker_csv",
    "parse_portfolio_csv",
    "parse_watchlist_csv",
]
