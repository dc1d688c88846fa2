"""Analyze broker CSV exports and print the AI metadata document as JSON."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from pydantic import TypeAdapter

from portfolio_ledger.core.logging import setup_logging
from portfolio_ledger.exceptions import FormatError
from portfolio_ledger.reports import build_action_range_request, build_ai_metadata
from portfolio_ledger.schemas import StockSplitSchema
from portfolio_ledger.services.session import PortfolioSession


def _read(path: str | None) -> str | None:
    if path is None:
        return None
    csv_path = Path(path)
    if not csv_path.exists():
        raise SystemExit(f"File not found: {csv_path}")
    return csv_path.read_text(encoding="utf-8")


def _build_session(args: argparse.Namespace) -> PortfolioSession:
    session = PortfolioSession()
    splits_json = _read(args.splits)
    if splits_json:
        schemas = TypeAdapter(list[StockSplitSchema]).validate_json(splits_json)
        session.set_stock_splits(schema.to_domain() for schema in schemas)

    session.load_orders_csv(_read(args.orders) or "")
    watchlist = _read(args.watchlist)
    if watchlist:
        session.load_watchlist_csv(watchlist)
    portfolio = _read(args.portfolio)
    if portfolio:
        session.load_portfolio_csv(portfolio)
    action_ranges = _read(args.action_ranges)
    if action_ranges:
        session.load_action_ranges_csv(action_ranges)
    return session


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Build lots and recommendations from broker CSV exports")
    parser.add_argument("orders", help="Order Tracker CSV export")
    parser.add_argument("--watchlist", help="Watchlist CSV with Last prices")
    parser.add_argument("--portfolio", help="Broker portfolio CSV with sales proceeds and commission")
    parser.add_argument("--action-ranges", dest="action_ranges", help="Action price range CSV")
    parser.add_argument("--splits", help="JSON array of stock splits (camelCase keys)")
    parser.add_argument(
        "--request-ranges",
        action="store_true",
        help="Print the action range request payload instead of the analysis",
    )
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args(argv)

    # stdout carries the JSON report
    setup_logging(args.log_level, stream=sys.stderr)
    try:
        session = _build_session(args)
    except FormatError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.request_ranges:
        payload = build_action_range_request(session.holdings)
    else:
        payload = build_ai_metadata(
            session.holdings,
            session.recommendations(),
            session.action_price_ranges,
        )
    print(json.dumps(payload, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
