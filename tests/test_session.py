"""Portfolio session and split persistence tests."""

from __future__ import annotations

import json
from datetime import date, datetime

import pytest

from portfolio_ledger.config import DEFAULT_SPLIT_STORAGE_KEY
from portfolio_ledger.exceptions import FormatError
from portfolio_ledger.models import StockSplit, TradingRecommendation
from portfolio_ledger.services.session import PortfolioSession
from portfolio_ledger.services.split_store import SplitStore


def _split(split_id: str = "sp1", security: str = "ABC.N0000", ratio: float = 2) -> StockSplit:
    return StockSplit(
        id=split_id,
        security=security,
        split_date=date(2024, 2, 15),
        split_datetime=datetime(2024, 2, 15),
        ratio=ratio,
    )


def test_loading_orders_builds_lots_and_holdings(orders_csv):
    session = PortfolioSession()

    orders = session.load_orders_csv(orders_csv)

    assert len(orders) == 4
    assert len(session.lots) == 3
    assert set(session.holdings) == {"ABC.N0000", "XYZ.N0000"}
    assert session.holdings["ABC.N0000"].total_quantity == pytest.approx(30)
    assert session.oversold == []
    assert session.error is None


def test_prices_update_holdings_without_rebuilding_lots(orders_csv, watchlist_csv):
    session = PortfolioSession()
    session.load_orders_csv(orders_csv)
    lots_before = session.lots

    session.load_watchlist_csv(watchlist_csv)
    session.set_current_price("ABC.N0000", 25.0)

    assert session.lots is lots_before
    assert session.holdings["ABC.N0000"].market_value == pytest.approx(750.0)
    assert session.holdings["XYZ.N0000"].unrealized_gain_loss == pytest.approx(-200.0)


def test_bad_upload_sets_error_and_keeps_state(orders_csv):
    session = PortfolioSession()
    session.load_orders_csv(orders_csv)

    with pytest.raises(FormatError):
        session.load_orders_csv("not,a\ncsv")

    assert session.error is not None
    assert len(session.orders) == 4

    session.load_orders_csv(orders_csv)
    assert session.error is None


def test_splits_rebuild_lots(orders_csv):
    session = PortfolioSession()
    session.load_orders_csv(orders_csv)

    session.add_stock_split(_split())

    abc = session.holdings["ABC.N0000"]
    # both buys predate the split; the March sell is already in post-split shares
    assert abc.total_quantity == pytest.approx(180)
    assert abc.total_cost == pytest.approx(1000.0)

    session.remove_stock_split("sp1")
    assert session.holdings["ABC.N0000"].total_quantity == pytest.approx(30)


def test_derived_views(orders_csv, watchlist_csv, action_ranges_csv, portfolio_csv):
    session = PortfolioSession()
    session.load_orders_csv(orders_csv)
    session.load_watchlist_csv(watchlist_csv)
    session.load_action_ranges_csv(action_ranges_csv)
    session.load_portfolio_csv(portfolio_csv)

    recommendations = session.recommendations()
    assert recommendations["ABC.N0000"].recommendation is TradingRecommendation.TRIM
    assert recommendations["XYZ.N0000"].recommendation is TradingRecommendation.HOLD
    assert recommendations["XYZ.N0000"].reason.endswith("(Unrealized loss: -10.00%)")

    realized = session.realized_gain_loss()
    assert realized.total_realized_gain_loss == pytest.approx(1790.0 - 1240.0 - 10.0)

    assert session.verification().matched_sells == 1

    summary = session.summary()
    assert summary["total_securities"] == 2
    assert summary["total_market_value"] == pytest.approx(600.0 + 1800.0)
    assert summary["total_realized_gain_loss"] == pytest.approx(540.0)


def test_clear_resets_everything(orders_csv):
    storage: dict[str, str] = {}
    session = PortfolioSession(SplitStore(storage))
    session.load_orders_csv(orders_csv)
    session.add_stock_split(_split())

    session.clear()

    assert session.orders == []
    assert session.holdings == {}
    assert session.stock_splits == []
    assert storage == {}


def test_split_store_round_trips_camel_case_json():
    storage: dict[str, str] = {}
    store = SplitStore(storage)

    store.save([_split()])

    (raw,) = json.loads(storage[DEFAULT_SPLIT_STORAGE_KEY])
    assert raw["splitDate"] == "2024-02-15"
    assert raw["splitDateTime"].startswith("2024-02-15T00:00:00")
    assert store.load() == [_split()]


def test_split_store_accepts_entries_without_datetime():
    storage = {
        "custom": json.dumps(
            [{"id": "x", "security": "ABC", "splitDate": "2024-05-01", "ratio": 0.5}]
        )
    }

    (split,) = SplitStore(storage, key="custom").load()

    assert split.split_datetime == datetime(2024, 5, 1)
    assert split.ratio == 0.5


def test_split_store_ignores_corrupt_payload():
    storage = {DEFAULT_SPLIT_STORAGE_KEY: "{not json"}

    assert SplitStore(storage).load() == []


def test_session_restores_persisted_splits(orders_csv):
    storage: dict[str, str] = {}
    PortfolioSession(SplitStore(storage)).add_stock_split(_split())

    restored = PortfolioSession(SplitStore(storage))
    restored.load_orders_csv(orders_csv)

    assert [s.id for s in restored.stock_splits] == ["sp1"]
    assert restored.holdings["ABC.N0000"].total_quantity == pytest.approx(180)


def test_removing_last_split_drops_the_key():
    storage: dict[str, str] = {}
    session = PortfolioSession(SplitStore(storage))
    session.add_stock_split(_split())

    session.remove_stock_split("sp1")

    assert DEFAULT_SPLIT_STORAGE_KEY not in storage
