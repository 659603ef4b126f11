from __future__ import annotations

import math
from collections.abc import Sequence

MIN_PARLAY_LEGS = 2


def _ensure_finite(value: float, name: str) -> float:
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite")
    return value


def _validate_american(american_odds: float) -> float:
    american_odds = _ensure_finite(float(american_odds), "american_odds")
    if abs(american_odds) < 100:
        raise ValueError("american_odds must be <= -100 or >= 100")
    return american_odds


def _validate_stake(stake: float) -> float:
    stake = _ensure_finite(float(stake), "stake")
    if stake < 0.0:
        raise ValueError("stake must be non-negative")
    return stake


def american_to_decimal(american_odds: float) -> float:
    american_odds = _validate_american(american_odds)
    if american_odds > 0:
        return 1.0 + (american_odds / 100.0)
    return 1.0 + (100.0 / abs(american_odds))


def decimal_to_american(decimal_odds: float) -> int:
    decimal_odds = _ensure_finite(float(decimal_odds), "decimal_odds")
    if decimal_odds <= 1.0:
        raise ValueError("decimal_odds must be greater than 1")
    if decimal_odds >= 2.0:
        return int(round((decimal_odds - 1.0) * 100.0))
    return int(round(-100.0 / (decimal_odds - 1.0)))


def american_to_implied_prob(american_odds: float) -> float:
    american_odds = _validate_american(american_odds)
    if american_odds > 0:
        return 100.0 / (american_odds + 100.0)
    return abs(american_odds) / (abs(american_odds) + 100.0)


def single_payout(stake: float, american_odds: float) -> float:
    return _validate_stake(stake) * american_to_decimal(american_odds)


def parlay_american_price(prices: Sequence[float]) -> int:
    if len(prices) < MIN_PARLAY_LEGS:
        raise ValueError(f"a parlay needs at least {MIN_PARLAY_LEGS} legs, got {len(prices)}")
    product = 1.0
    for price in prices:
        product *= american_to_decimal(price)
    return decimal_to_american(product)


def parlay_payout(stake: float, prices: Sequence[float]) -> float:
    # The combined price is rounded to whole American odds before paying out,
    # matching how books quote the parlay.
    return single_payout(stake, parlay_american_price(prices))


def profit(payout: float, stake: float) -> float:
    return _ensure_finite(float(payout), "payout") - _ensure_finite(float(stake), "stake")
