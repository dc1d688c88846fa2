import logging
import sys
from typing import TextIO

from portfolio_ledger.config import get_settings

LEDGER_HANDLER_NAME = "portfolio_ledger"


def setup_logging(level: str | None = None, stream: TextIO | None = None) -> None:
    """Configure root logging with one formatted handler (stdout by default).

    Calling it again replaces the handler it installed earlier instead of
    stacking another one.
    """
    settings = get_settings()
    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == LEDGER_HANDLER_NAME:
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(LEDGER_HANDLER_NAME)
    handler.setFormatter(
        logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    )
    root_logger.addHandler(handler)
    root_logger.setLevel((level or settings.log_level).upper())

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger(__name__).debug("Settings: %s", settings.dict_for_logging())
