"""Persistence of user supplied stock splits in an external key-value mapping."""

from __future__ import annotations

import logging
from typing import List, MutableMapping, Sequence

from pydantic import TypeAdapter, ValidationError

from portfolio_ledger.config import get_settings
from portfolio_ledger.models import StockSplit
from portfolio_ledger.schemas import StockSplitSchema

logger = logging.getLogger(__name__)

_SPLITS_ADAPTER = TypeAdapter(list[StockSplitSchema])


class SplitStore:
    """Load and save splits as a JSON array under a fixed key.

    The storage engine is the caller's concern; anything behaving like a
    ``MutableMapping[str, str]`` works (a dict, a shelf, a redis wrapper).
    """

    def __init__(self, storage: MutableMapping[str, str], key: str | None = None) -> None:
        self.storage = storage
        self.key = key or get_settings().split_storage_key

    def load(self) -> List[StockSplit]:
        raw = self.storage.get(self.key)
        if not raw:
            return []
        try:
            schemas = _SPLITS_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            logger.warning("Ignoring unreadable stock splits under %s: %s", self.key, exc)
            return []
        return [schema.to_domain() for schema in schemas]

    def save(self, splits: Sequence[StockSplit]) -> None:
        if not splits:
            self.storage.pop(self.key, None)
            return
        payload = [StockSplitSchema.from_domain(split) for split in splits]
        self.storage[self.key] = _SPLITS_ADAPTER.dump_json(payload, by_alias=True).decode("utf-8")


__all__ = ["SplitStore"]
