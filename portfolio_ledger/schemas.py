"""Pydantic schemas for persisted splits and the HTTP API."""

from __future__ import annotations

import math
from datetime import date, datetime, time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from portfolio_ledger.models import PriceRange, StockSplit


class StockSplitSchema(BaseModel):
    """Wire/storage shape of a stock split (camelCase keys)."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    security: str = Field(..., min_length=1, examples=["ABC.N0000"])
    split_date: date = Field(..., alias="splitDate")
    split_datetime: Optional[datetime] = Field(default=None, alias="splitDateTime")
    ratio: float = Field(..., gt=0, description="3 for a 3:1 split, 0.5 for a 1:2 reverse split")

    @model_validator(mode="after")
    def _default_datetime(self) -> "StockSplitSchema":
        if self.split_datetime is None:
            self.split_datetime = datetime.combine(self.split_date, time.min)
        elif self.split_datetime.tzinfo is not None:
            # Order timestamps are naive local times.
            self.split_datetime = self.split_datetime.replace(tzinfo=None)
        return self

    def to_domain(self) -> StockSplit:
        assert self.split_datetime is not None
        return StockSplit(
            id=self.id,
            security=self.security,
            split_date=self.split_date,
            split_datetime=self.split_datetime,
            ratio=self.ratio,
        )

    @classmethod
    def from_domain(cls, split: StockSplit) -> "StockSplitSchema":
        return cls(
            id=split.id,
            security=split.security,
            split_date=split.split_date,
            split_datetime=split.split_datetime,
            ratio=split.ratio,
        )


class PriceRangeSchema(BaseModel):
    min: float
    max: Optional[float] = Field(default=None, description="null when the zone is open ended")

    @classmethod
    def from_domain(cls, price_range: PriceRange) -> "PriceRangeSchema":
        upper = None if math.isinf(price_range.max) else price_range.max
        return cls(min=price_range.min, max=upper)


class AnalyzeRequest(BaseModel):
    orders_csv: str = Field(..., description="Order Tracker export")
    watchlist_csv: Optional[str] = Field(default=None, description="Watchlist export with Last prices")
    portfolio_csv: Optional[str] = Field(default=None, description="Broker portfolio export")
    action_ranges_csv: Optional[str] = Field(default=None, description="Action price range table")
    stock_splits: list[StockSplitSchema] = Field(default_factory=list)
    current_prices: dict[str, float] = Field(
        default_factory=dict,
        description="Manual price overrides applied after the watchlist",
    )


class AnalyzeResponse(BaseModel):
    summary: dict[str, Any]
    holdings: list[dict[str, Any]]
    realized: dict[str, Any]
    verification: dict[str, Any]
    recommendations: dict[str, dict[str, Any]]
    oversold: list[dict[str, Any]]


class PriceRangeRequest(BaseModel):
    value: str = Field(..., examples=["245–250"])


class PriceRangeResponse(BaseModel):
    range: Optional[PriceRangeSchema] = None


class HealthResponse(BaseModel):
    status: str
    service: str


__all__ = [
    "AnalyzeRequest",
    "AnalyzeResponse",
    "HealthResponse",
    "PriceRangeRequest",
    "PriceRangeResponse",
    "PriceRangeSchema",
    "StockSplitSchema",
]
