import asyncio
import inspect
import logging
import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portfolio_ledger.core.logging import LEDGER_HANDLER_NAME  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            funcargs = pyfuncitem.funcargs
            testargs = {arg: funcargs[arg] for arg in pyfuncitem._fixtureinfo.argnames}
            loop.run_until_complete(test_function(**testargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


ORDERS_CSV = """Order Tracker - Account 1234

Security,Side,Order Qty,Order Price,Order Value,Order Status,Filled Qty,Remaining Qty,Order Date and Time,Exchange Order ID
ABC.N0000,BUY,100,10.00,"1,000.00",FILLED,100,0,2024-01-05 10:00:00,EX1
ABC.N0000,BUY,50,12.00,600.00,FILLED,50,0,2024-02-05 10:00:00,EX2
ABC.N0000,SELL,120,15.00,"1,800.00",FILLED,120,0,2024-03-05 10:00:00,EX3
XYZ.N0000,BUY,40,50.00,"2,000.00",FILLED,40,0,2024-01-10 11:30:00,EX4
XYZ.N0000,BUY,10,49.00,490.00,CANCELLED,0,10,2024-01-11 11:30:00,EX5
"""

WATCHLIST_CSV = """Security,Last,Change
ABC.N0000,20.00,0.5
XYZ.N0000,45.00,-1
"""

ACTION_RANGES_CSV = """Company Code,Quantity,Avg Price,B.E.S Price,Last,Change,% Change,Accumulate Slowly,Strong Add Zone,Re-evaluate if Market Weak,Pause Buys,Trim Small Portion,Investment_Percentage,Time,Trailing Stop (SELL if below)
ABC.N0000,30,12.00,12.20,20.00,0.5,2.5%,16–17,14–15,Below 11,19–21,25+,15%,10:00,13
XYZ.N0000,40,50.00,,45.00,-1,-2%,46–48,42–44,Below 40,55–60,65+,30%,10:00,
"""

PORTFOLIO_CSV = """Portfolio Summary

Security,Quantity,Sales Commission,Sales Proceeds,Unrealized Gain/Loss
ABC.N0000,30,10.00,"1,790.00",240.00
XYZ.N0000,40,0,0,-200.00
TOTAL,,10.00,"1,790.00",40.00
"""


@pytest.fixture
def orders_csv() -> str:
    return ORDERS_CSV


@pytest.fixture
def watchlist_csv() -> str:
    return WATCHLIST_CSV


@pytest.fixture
def action_ranges_csv() -> str:
    return ACTION_RANGES_CSV


@pytest.fixture
def portfolio_csv() -> str:
    return PORTFOLIO_CSV


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """Undo the handler and level installed by ``setup_logging`` during a test."""

    root = logging.getLogger()
    installed = [h for h in root.handlers if h.get_name() == LEDGER_HANDLER_NAME]
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler.get_name() == LEDGER_HANDLER_NAME and handler not in installed:
            root.removeHandler(handler)
            handler.close()
    for handler in installed:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
