"""Rule evaluation for per-security trading recommendations.

Zones are checked in priority order and the first hit wins:

1. ``EXIT`` when the price is under the trailing stop or the re-evaluate threshold
2. ``STRONG_STOP_TAKE_PROFIT`` inside the trim-small-portion zone
3. ``TRIM`` inside the pause-buys zone
4. ``BUY_NEW`` inside the strong-add zone
5. ``ADD_ACCUMULATE`` inside the accumulate-slowly zone
6. ``HOLD`` otherwise
"""

from __future__ import annotations

import math
import re
from typing import Dict, Mapping, Optional

from portfolio_ledger.ingest.columns import parse_float_prefix
from portfolio_ledger.models import (
    ActionPriceRange,
    Confidence,
    PriceRange,
    SecurityHolding,
    SecurityRecommendation,
    TargetZones,
    TradingRecommendation,
)

_BELOW = re.compile(r"below", re.IGNORECASE)
_DASH_RANGE = re.compile(r"^([\d.]+)\s*[–—-]+\s*([\d.]+)$")

# (zone attribute, recommendation, confidence, reason suffix)
ZONE_RULES = (
    (
        "trim_small_portion",
        TradingRecommendation.STRONG_STOP_TAKE_PROFIT,
        Confidence.HIGH,
        "is in trim zone ({zone}) - consider taking profits",
    ),
    (
        "pause_buys",
        TradingRecommendation.TRIM,
        Confidence.MEDIUM,
        "is in pause buys zone ({zone}) - consider trimming",
    ),
    (
        "strong_add_zone",
        TradingRecommendation.BUY_NEW,
        Confidence.HIGH,
        "is in strong add zone ({zone}) - excellent buying opportunity",
    ),
    (
        "accumulate_slowly",
        TradingRecommendation.ADD_ACCUMULATE,
        Confidence.MEDIUM,
        "is in accumulate slowly zone ({zone}) - good time to add",
    ),
)


def parse_price_range(value: Optional[str]) -> Optional[PriceRange]:
    """Parse a zone string such as ``"245–250"``, ``"280+"`` or ``"Below 230"``.

    Returns ``None`` for empty or unparseable input.
    """

    if not value or not value.strip():
        return None
    text = value.strip()

    if text.lower().startswith("below"):
        upper = parse_float_prefix(_BELOW.sub("", text).strip())
        return PriceRange(0.0, upper) if upper is not None else None

    if text.endswith("+"):
        lower = parse_float_prefix(text.replace("+", "", 1).strip())
        return PriceRange(lower, math.inf) if lower is not None else None

    match = _DASH_RANGE.match(text)
    if match:
        low = parse_float_prefix(match.group(1))
        high = parse_float_prefix(match.group(2))
        if low is not None and high is not None:
            return PriceRange(low, high)

    single = parse_float_prefix(text)
    if single is not None:
        return PriceRange(single, single)
    return None


def _hold_reason(holding: SecurityHolding, price_text: str) -> str:
    reason = f"{price_text} is in normal range - hold position"
    gain_loss = holding.unrealized_gain_loss
    percent = holding.unrealized_gain_loss_percent or 0.0
    if gain_loss is not None and gain_loss > 0:
        reason += f" (Unrealized gain: {percent:.2f}%)"
    elif gain_loss is not None and gain_loss < 0:
        reason += f" (Unrealized loss: {percent:.2f}%)"
    return reason


def generate_recommendation(
    holding: SecurityHolding,
    action_range: ActionPriceRange,
) -> Optional[SecurityRecommendation]:
    """Classify one holding against its action price range.

    Returns ``None`` when the holding has no current price.
    """

    if not holding.current_price:
        return None

    price = holding.current_price
    price_text = f"Price ({price:.2f})"
    zones = {attr: parse_price_range(getattr(action_range, attr)) for attr, *_ in ZONE_RULES}
    re_evaluate = parse_price_range(action_range.re_evaluate_if_weak)
    re_evaluate_threshold = re_evaluate.max if re_evaluate else None
    trailing_stop = action_range.trailing_stop

    recommendation = TradingRecommendation.HOLD
    confidence = Confidence.LOW
    reason = ""

    if trailing_stop and price < trailing_stop:
        recommendation, confidence = TradingRecommendation.EXIT, Confidence.HIGH
        reason = f"{price_text} is below trailing stop ({trailing_stop:.2f})"
    elif re_evaluate_threshold and price < re_evaluate_threshold:
        recommendation, confidence = TradingRecommendation.EXIT, Confidence.HIGH
        reason = f"{price_text} is below re-evaluate threshold ({re_evaluate_threshold:.2f})"
    else:
        for attr, rule_recommendation, rule_confidence, template in ZONE_RULES:
            zone = zones[attr]
            if zone is not None and zone.contains(price):
                recommendation, confidence = rule_recommendation, rule_confidence
                reason = f"{price_text} " + template.format(zone=getattr(action_range, attr))
                break
        else:
            reason = _hold_reason(holding, price_text)

    trim_zone = zones["trim_small_portion"]
    return SecurityRecommendation(
        security=holding.security,
        recommendation=recommendation,
        confidence=confidence,
        reason=reason,
        current_price=price,
        target_zones=TargetZones(
            accumulate_slowly=zones["accumulate_slowly"],
            strong_add_zone=zones["strong_add_zone"],
            re_evaluate_if_weak=re_evaluate_threshold,
            pause_buys=zones["pause_buys"],
            trim_small_portion=trim_zone.min if trim_zone and trim_zone.min else None,
            trailing_stop=trailing_stop,
        ),
    )


def generate_all_recommendations(
    holdings: Mapping[str, SecurityHolding],
    action_ranges: Mapping[str, ActionPriceRange],
) -> Dict[str, SecurityRecommendation]:
    """Recommend for every holding that has both a current price and an action range."""

    recommendations: Dict[str, SecurityRecommendation] = {}
    for security, holding in holdings.items():
        action_range = action_ranges.get(security)
        if action_range is None or not holding.current_price:
            continue
        recommendation = generate_recommendation(holding, action_range)
        if recommendation is not None:
            recommendations[security] = recommendation
    return recommendations


__all__ = [
    "ZONE_RULES",
    "generate_all_recommendations",
    "generate_recommendation",
    "parse_price_range",
]
