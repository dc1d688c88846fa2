"""FIFO lot building, split adjustment and holdings aggregation."""

from __future__ import annotations

import logging
from datetime import date, datetime, time

import pytest

from portfolio_ledger.models import Order, Side, StockSplit
from portfolio_ledger.services.lots import (
    LotBuilder,
    build_lots,
    calculate_holdings,
    sort_orders,
    split_ratio_after,
)


def _order(order_id: str, side: str, qty: float, price: float, when: datetime | None, security: str = "ABC") -> Order:
    return Order(
        id=order_id,
        security=security,
        side=Side(side),
        order_qty=qty,
        order_price=price,
        order_date=when.date() if when else None,
        order_time=when.time() if when else None,
        order_datetime=when,
    )


def _split(split_day: date, ratio: float, security: str = "ABC") -> StockSplit:
    return StockSplit(
        id=f"split-{split_day.isoformat()}",
        security=security,
        split_date=split_day,
        split_datetime=datetime.combine(split_day, time.min),
        ratio=ratio,
    )


def _fifo_orders() -> list[Order]:
    return [
        _order("b1", "BUY", 100, 10.0, datetime(2024, 1, 1, 10)),
        _order("b2", "BUY", 50, 12.0, datetime(2024, 2, 1, 10)),
        _order("s1", "SELL", 120, 15.0, datetime(2024, 3, 1, 10)),
    ]


def test_fifo_matching_consumes_oldest_lot_first():
    lots = build_lots(_fifo_orders())

    first, second = lots
    assert first.id == "lot-b1"
    assert first.remaining_quantity == 0
    assert first.is_closed
    assert [m.quantity for m in first.sell_orders] == [100]
    assert first.sell_orders[0].gain_loss == pytest.approx(500.0)
    assert first.sell_orders[0].gain_loss_percent == pytest.approx(50.0)

    assert second.remaining_quantity == pytest.approx(30)
    assert second.sell_orders[0].quantity == pytest.approx(20)
    assert second.sell_orders[0].gain_loss == pytest.approx(60.0)
    assert second.sell_orders[0].proceeds == pytest.approx(300.0)


def test_orders_are_processed_in_time_order():
    lots = build_lots(list(reversed(_fifo_orders())))

    assert [lot.buy_order_id for lot in lots] == ["b1", "b2"]
    assert lots[0].remaining_quantity == 0


def test_orders_without_date_sort_first():
    undated = _order("u1", "BUY", 1, 1.0, None)
    dated = _order("d1", "BUY", 1, 1.0, datetime(2024, 1, 1))

    assert [o.id for o in sort_orders([dated, undated])] == ["u1", "d1"]


def test_split_after_buy_adjusts_lot():
    orders = [
        _order("b1", "BUY", 100, 30.0, datetime(2024, 1, 2, 10)),
        _order("s1", "SELL", 150, 12.0, datetime(2024, 7, 1, 10)),
    ]

    (lot,) = build_lots(orders, [_split(date(2024, 6, 1), 3)])

    assert lot.quantity == pytest.approx(300)
    assert lot.buy_price == pytest.approx(10.0)
    assert lot.total_cost == pytest.approx(3000.0)
    assert lot.original_quantity == 100
    assert lot.original_buy_price == pytest.approx(30.0)
    assert lot.split_ratio == 3
    assert lot.remaining_quantity == pytest.approx(150)
    assert lot.realized_gain_loss == pytest.approx(300.0)


def test_sell_before_split_is_adjusted_too():
    orders = [
        _order("b1", "BUY", 100, 30.0, datetime(2024, 1, 2, 10)),
        _order("s1", "SELL", 50, 33.0, datetime(2024, 3, 1, 10)),
    ]

    (lot,) = build_lots(orders, [_split(date(2024, 6, 1), 2)])

    (match,) = lot.sell_orders
    assert match.quantity == pytest.approx(100)
    assert match.sell_price == pytest.approx(16.5)
    assert match.gain_loss == pytest.approx(150.0)
    assert lot.remaining_quantity == pytest.approx(100)


def test_unadjusted_lot_has_no_original_fields():
    (lot,) = build_lots([_order("b1", "BUY", 10, 5.0, datetime(2024, 1, 1))])

    assert lot.original_quantity is None
    assert lot.original_buy_price is None
    assert lot.split_ratio is None


def test_split_ratio_only_counts_later_splits():
    splits = [_split(date(2024, 3, 1), 2), _split(date(2024, 6, 1), 5), _split(date(2024, 6, 1), 0.5, "OTHER")]
    abc = [s for s in splits if s.security == "ABC"]

    assert split_ratio_after(abc, datetime(2024, 1, 1)) == 10
    assert split_ratio_after(abc, datetime(2024, 4, 1)) == 5
    assert split_ratio_after(abc, datetime(2024, 6, 1)) == 1
    assert split_ratio_after(abc, None) == 1


def test_oversold_sell_is_reported_not_raised():
    builder = LotBuilder()
    lots = builder.process(
        [
            _order("b1", "BUY", 10, 5.0, datetime(2024, 1, 1)),
            _order("s1", "SELL", 15, 6.0, datetime(2024, 2, 1)),
        ]
    )

    assert lots[0].remaining_quantity == 0
    (oversold,) = builder.oversold
    assert oversold.sell_order_id == "s1"
    assert oversold.unmatched_quantity == pytest.approx(5)


def test_oversold_sell_logs_a_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="portfolio_ledger.services.lots"):
        build_lots(
            [
                _order("b1", "BUY", 10, 5.0, datetime(2024, 1, 1)),
                _order("s1", "SELL", 15, 6.0, datetime(2024, 2, 1)),
            ]
        )

    (record,) = [r for r in caplog.records if r.name == "portfolio_ledger.services.lots"]
    assert record.levelno == logging.WARNING
    assert record.args[:2] == ("s1", "ABC")
    assert record.args[2] == pytest.approx(5)
    assert "unmatched quantity" in record.getMessage()


def test_float_residue_does_not_leave_dust():
    builder = LotBuilder()
    lots = builder.process(
        [
            _order("b1", "BUY", 0.1, 1.0, datetime(2024, 1, 1)),
            _order("b2", "BUY", 0.2, 1.0, datetime(2024, 1, 2)),
            _order("s1", "SELL", 0.3, 2.0, datetime(2024, 1, 3)),
        ]
    )

    assert all(lot.is_closed for lot in lots)
    assert builder.oversold == []


def test_sell_for_other_security_does_not_touch_lots():
    lots = build_lots(
        [
            _order("b1", "BUY", 10, 5.0, datetime(2024, 1, 1)),
            _order("s1", "SELL", 5, 6.0, datetime(2024, 2, 1), security="XYZ"),
        ]
    )

    assert lots[0].remaining_quantity == 10
    assert lots[0].sell_orders == []


def test_rebuilding_is_idempotent():
    splits = [_split(date(2024, 2, 15), 2)]

    first, second = build_lots(_fifo_orders(), splits), build_lots(_fifo_orders(), splits)

    assert first == second
    assert calculate_holdings(first, {"ABC": 20.0}) == calculate_holdings(second, {"ABC": 20.0})


def test_calculate_holdings_uses_open_quantity_only():
    holdings = calculate_holdings(build_lots(_fifo_orders()), {"ABC": 20.0})

    holding = holdings["ABC"]
    assert holding.total_quantity == pytest.approx(30)
    assert holding.total_cost == pytest.approx(360.0)
    assert holding.average_buy_price == pytest.approx(12.0)
    assert holding.market_value == pytest.approx(600.0)
    assert holding.unrealized_gain_loss == pytest.approx(240.0)
    assert holding.unrealized_gain_loss_percent == pytest.approx(66.6666, rel=1e-4)
    assert len(holding.lots) == 2
    assert holding.realized_gain_loss == pytest.approx(560.0)


def test_calculate_holdings_without_price_leaves_market_fields_empty():
    holding = calculate_holdings(build_lots(_fifo_orders()))["ABC"]

    assert holding.current_price is None
    assert holding.market_value is None
    assert holding.unrealized_gain_loss is None


def test_calculate_holdings_treats_non_positive_price_as_unknown():
    holdings = calculate_holdings(build_lots(_fifo_orders()), {"ABC": 0.0})

    holding = holdings["ABC"]
    assert holding.current_price is None
    assert holding.market_value is None
    assert holding.unrealized_gain_loss_percent is None


def test_fully_sold_security_keeps_its_lots():
    orders = [
        _order("b1", "BUY", 10, 5.0, datetime(2024, 1, 1)),
        _order("s1", "SELL", 10, 6.0, datetime(2024, 2, 1)),
    ]

    holding = calculate_holdings(build_lots(orders), {"ABC": 7.0})["ABC"]

    assert holding.total_quantity == 0
    assert holding.average_buy_price == 0
    assert holding.unrealized_gain_loss == 0
    assert holding.unrealized_gain_loss_percent == 0
    assert len(holding.lots) == 1


def test_second_lot_partially_closed():
    lots = build_lots(
        [
            _order("b1", "BUY", 100, 10.0, datetime(2024, 1, 1)),
            _order("b2", "BUY", 100, 20.0, datetime(2024, 1, 2)),
            _order("s1", "SELL", 150, 30.0, datetime(2024, 1, 3)),
        ]
    )

    assert [lot.realized_gain_loss for lot in lots] == pytest.approx([2000.0, 500.0])
    assert [lot.remaining_quantity for lot in lots] == pytest.approx([0.0, 50.0])


def test_split_preserves_cost_basis():
    orders = [
        _order("b1", "BUY", 100, 30.0, datetime(2024, 1, 1)),
        _order("s1", "SELL", 100, 20.0, datetime(2024, 3, 1)),
    ]

    (lot,) = build_lots(orders, [_split(date(2024, 2, 1), 2)])

    assert lot.quantity == pytest.approx(200)
    assert lot.buy_price == pytest.approx(15.0)
    assert lot.total_cost == pytest.approx(100 * 30.0)
    assert lot.realized_gain_loss == pytest.approx(500.0)
    assert lot.remaining_quantity == pytest.approx(100)
