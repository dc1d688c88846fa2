"""Stateful wrapper that owns one portfolio's inputs and derived views.

Every mutation recomputes lots and holdings from the full input set; nothing
is patched incrementally. Sessions share no state, so independent sessions
may run in parallel, but a single session must not be mutated concurrently.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, TypeVar

from portfolio_ledger.exceptions import FormatError
from portfolio_ledger.ingest import (
    parse_action_price_ranges_csv,
    parse_order_tracker_csv,
    parse_portfolio_csv,
    parse_watchlist_csv,
)
from portfolio_ledger.models import (
    ActionPriceRange,
    BrokerSalesSummary,
    Lot,
    Order,
    OversoldSell,
    SecurityHolding,
    SecurityRecommendation,
    StockSplit,
)
from portfolio_ledger.reports import build_portfolio_summary
from portfolio_ledger.rules.recommendations import generate_all_recommendations

from .gain_loss import RealizedGainLoss, SellVerification, calculate_realized_gain_loss, verify_sell_orders
from .lots import LotBuilder, calculate_holdings
from .split_store import SplitStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PortfolioSession:
    def __init__(self, split_store: SplitStore | None = None) -> None:
        self.split_store = split_store
        self.orders: List[Order] = []
        self.stock_splits: List[StockSplit] = split_store.load() if split_store else []
        self.current_prices: Dict[str, float] = {}
        self.action_price_ranges: Dict[str, ActionPriceRange] = {}
        self.broker_sales: Dict[str, BrokerSalesSummary] = {}
        self.error: Optional[str] = None

        self.lots: List[Lot] = []
        self.oversold: List[OversoldSell] = []
        self.holdings: Dict[str, SecurityHolding] = {}

    # -- recomputation -------------------------------------------------

    def _rebuild_lots(self) -> None:
        builder = LotBuilder(self.stock_splits)
        self.lots = builder.process(self.orders)
        self.oversold = builder.oversold
        self._recompute_holdings()

    def _recompute_holdings(self) -> None:
        self.holdings = calculate_holdings(self.lots, self.current_prices)

    def _persist_splits(self) -> None:
        if self.split_store is not None:
            self.split_store.save(self.stock_splits)

    # -- orders and prices ---------------------------------------------

    def set_orders(self, orders: Iterable[Order]) -> None:
        self.orders = list(orders)
        self._rebuild_lots()
        self.error = None

    def set_current_price(self, security: str, price: float) -> None:
        self.current_prices[security] = price
        self._recompute_holdings()

    def set_current_prices(self, prices: Mapping[str, float]) -> None:
        self.current_prices.update(prices)
        self._recompute_holdings()

    # -- splits ----------------------------------------------------------

    def add_stock_split(self, split: StockSplit) -> None:
        self.stock_splits.append(split)
        self._rebuild_lots()
        self._persist_splits()

    def remove_stock_split(self, split_id: str) -> None:
        self.stock_splits = [split for split in self.stock_splits if split.id != split_id]
        self._rebuild_lots()
        self._persist_splits()

    def set_stock_splits(self, splits: Iterable[StockSplit]) -> None:
        self.stock_splits = list(splits)
        self._rebuild_lots()
        self._persist_splits()

    # -- externally supplied overlays ------------------------------------

    def set_action_price_ranges(self, ranges: Mapping[str, ActionPriceRange]) -> None:
        self.action_price_ranges = dict(ranges)

    def set_broker_sales(self, sales: Mapping[str, BrokerSalesSummary]) -> None:
        self.broker_sales = dict(sales)

    # -- CSV loading -------------------------------------------------------

    def _parse(self, parser: Callable[[str], T], csv_text: str) -> T:
        try:
            return parser(csv_text)
        except FormatError as exc:
            logger.warning("Rejected CSV upload: %s", exc)
            self.error = str(exc)
            raise

    def load_orders_csv(self, csv_text: str) -> List[Order]:
        orders = self._parse(parse_order_tracker_csv, csv_text)
        self.set_orders(orders)
        return orders

    def load_watchlist_csv(self, csv_text: str) -> Dict[str, float]:
        prices = self._parse(parse_watchlist_csv, csv_text)
        self.set_current_prices(prices)
        return prices

    def load_portfolio_csv(self, csv_text: str) -> Dict[str, BrokerSalesSummary]:
        sales = self._parse(parse_portfolio_csv, csv_text)
        self.set_broker_sales(sales)
        return sales

    def load_action_ranges_csv(self, csv_text: str) -> Dict[str, ActionPriceRange]:
        ranges = self._parse(parse_action_price_ranges_csv, csv_text)
        self.set_action_price_ranges(ranges)
        return ranges

    def clear(self) -> None:
        self.orders = []
        self.lots = []
        self.oversold = []
        self.holdings = {}
        self.current_prices = {}
        self.stock_splits = []
        self.action_price_ranges = {}
        self.broker_sales = {}
        self.error = None
        self._persist_splits()

    # -- derived views ---------------------------------------------------

    def recommendations(self) -> Dict[str, SecurityRecommendation]:
        return generate_all_recommendations(self.holdings, self.action_price_ranges)

    def realized_gain_loss(self) -> RealizedGainLoss:
        return calculate_realized_gain_loss(self.lots, self.broker_sales or None)

    def verification(self) -> SellVerification:
        return verify_sell_orders(self.lots, self.orders, self.stock_splits)

    def summary(self) -> dict:
        return build_portfolio_summary(self.holdings, self.realized_gain_loss())


__all__ = ["PortfolioSession"]
