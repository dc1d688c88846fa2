"""Domain models used by the portfolio lot-accounting engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import ClassVar, List, Optional, Type

from .exceptions import DataConsistencyWarning


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TradingRecommendation(str, Enum):
    BUY_NEW = "BUY_NEW"
    ADD_ACCUMULATE = "ADD_ACCUMULATE"
    HOLD = "HOLD"
    TRIM = "TRIM"
    EXIT = "EXIT"
    STRONG_STOP_TAKE_PROFIT = "STRONG_STOP_TAKE_PROFIT"


class Confidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class Order:
    """A single filled brokerage order as read from the order tracker export."""

    id: str
    security: str
    side: Side
    order_qty: float
    order_price: float
    order_value: float = 0.0
    order_date: Optional[date] = None
    order_time: Optional[time] = None
    order_datetime: Optional[datetime] = None
    exchange_order_id: str = ""
    filled_qty: float = 0.0
    remaining_qty: float = 0.0
    order_status: str = "FILLED"

    def timestamp(self) -> Optional[datetime]:
        """Return the moment the order happened, falling back to midnight of its date."""

        if self.order_datetime is not None:
            return self.order_datetime
        if self.order_date is not None:
            return datetime.combine(self.order_date, self.order_time or time.min)
        return None


@dataclass(frozen=True)
class StockSplit:
    """A ratio change for a security; ``ratio`` > 1 is a forward split."""

    id: str
    security: str
    split_date: date
    split_datetime: datetime
    ratio: float


@dataclass
class SellMatch:
    sell_order_id: str
    sell_date: Optional[date]
    sell_price: float
    quantity: float
    proceeds: float
    gain_loss: float
    gain_loss_percent: float


@dataclass
class Lot:
    """Economic remainder of one BUY order.

    ``buy_price`` and ``quantity`` are split adjusted. The ``original_*`` fields
    and ``split_ratio`` are only populated when an adjustment was applied.
    """

    id: str
    security: str
    buy_order_id: str
    buy_date: Optional[date]
    buy_price: float
    quantity: float
    remaining_quantity: float
    total_cost: float
    sell_orders: List[SellMatch] = field(default_factory=list)
    original_buy_price: Optional[float] = None
    original_quantity: Optional[float] = None
    split_ratio: Optional[float] = None

    @property
    def is_closed(self) -> bool:
        return self.remaining_quantity <= 0

    @property
    def realized_gain_loss(self) -> float:
        return sum(match.gain_loss for match in self.sell_orders)


@dataclass
class SecurityHolding:
    """Aggregate view over every lot of a security."""

    security: str
    total_quantity: float = 0.0
    average_buy_price: float = 0.0
    total_cost: float = 0.0
    current_price: Optional[float] = None
    market_value: Optional[float] = None
    unrealized_gain_loss: Optional[float] = None
    unrealized_gain_loss_percent: Optional[float] = None
    lots: List[Lot] = field(default_factory=list)

    @property
    def realized_gain_loss(self) -> float:
        return sum(lot.realized_gain_loss for lot in self.lots)


@dataclass(frozen=True)
class BrokerSalesSummary:
    """Per-security figures reported by the broker portfolio export."""

    security: str
    sales_commission: float
    sales_proceeds: float
    unrealized_gain_loss: float = 0.0


@dataclass(frozen=True)
class ActionPriceRange:
    """Externally authored trading zones for one security.

    Zone fields hold the raw strings (``"245–250"``, ``"280+"``, ``"Below 230"``);
    use :func:`portfolio_ledger.rules.recommendations.parse_price_range` to turn
    them into numbers.
    """

    security: str
    quantity: float
    avg_price: float
    break_even_sell_price: float
    last_price: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    accumulate_slowly: Optional[str] = None
    strong_add_zone: Optional[str] = None
    re_evaluate_if_weak: Optional[str] = None
    pause_buys: Optional[str] = None
    trim_small_portion: Optional[str] = None
    investment_percentage: Optional[float] = None
    trailing_stop: Optional[float] = None


@dataclass(frozen=True)
class PriceRange:
    min: float
    max: float

    def contains(self, price: float) -> bool:
        return self.min <= price <= self.max


@dataclass(frozen=True)
class TargetZones:
    accumulate_slowly: Optional[PriceRange] = None
    strong_add_zone: Optional[PriceRange] = None
    re_evaluate_if_weak: Optional[float] = None
    pause_buys: Optional[PriceRange] = None
    trim_small_portion: Optional[float] = None
    trailing_stop: Optional[float] = None


@dataclass(frozen=True)
class SecurityRecommendation:
    security: str
    recommendation: TradingRecommendation
    confidence: Confidence
    reason: str
    current_price: float
    target_zones: TargetZones


@dataclass(frozen=True)
class OversoldSell:
    """A SELL order whose split-adjusted quantity exceeded the open lots."""

    category: ClassVar[Type[Warning]] = DataConsistencyWarning

    sell_order_id: str
    security: str
    unmatched_quantity: float
