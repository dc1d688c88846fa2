"""Error types raised or reported by the portfolio ledger."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for portfolio ledger failures."""


class FormatError(LedgerError, ValueError):
    """Raised when an uploaded CSV export is structurally unusable."""


class DataConsistencyWarning(UserWarning):
    """Category for non-fatal data gaps such as oversold SELL orders.

    The engine never raises this; it is attached to structured report
    entries and warning logs so callers can surface the condition.
    """


__all__ = ["LedgerError", "FormatError", "DataConsistencyWarning"]
