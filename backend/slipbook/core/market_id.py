from __future__ import annotations

import re
from typing import Any

from slipbook.domain.enums import BetTypeCode
from slipbook.domain.types import ParsedMarketId

SEGMENT_COUNT = 5
TEAM_TARGETS = frozenset({"home", "away"})
ALL_TARGET = "all"
FULL_GAME_PERIOD = "game"

NUMERIC_PLAYER = re.compile(r"^\d+$")
NAMED_PLAYER = re.compile(r"^[A-Z][A-Z_]*_\d+_[A-Z]+$")

_OPPOSITE_SIDES = {
    "over": "under",
    "under": "over",
    "home": "away",
    "away": "home",
    "yes": "no",
    "no": "yes",
}


def is_player_target(target: str) -> bool:
    return bool(NUMERIC_PLAYER.match(target) or NAMED_PLAYER.match(target))


def parse_market_id(value: Any) -> ParsedMarketId | None:
    """Split ``category-target-period-betType-side`` into its fields.

    Returns ``None`` for anything that is not a string with five non-empty
    leading segments. Never raises.
    """
    if not isinstance(value, str):
        return None
    parts = value.strip().split("-")
    if len(parts) < SEGMENT_COUNT:
        return None
    category, target, period, bet_type, side = parts[:SEGMENT_COUNT]
    if not all((category, target, period, bet_type, side)):
        return None
    excluded = bet_type == BetTypeCode.YES_NO or f"-{BetTypeCode.YES_NO}-" in value
    return ParsedMarketId(
        raw=value.strip(),
        category=category,
        target=target,
        period=period,
        bet_type=bet_type,
        side=side,
        is_player=is_player_target(target),
        excluded=excluded,
    )


def base_market_id(value: str) -> str | None:
    parsed = parse_market_id(value)
    if parsed is None:
        return None
    return "-".join((parsed.category, parsed.target, parsed.period, parsed.bet_type))


def opposite_side(value: str) -> str | None:
    parsed = parse_market_id(value)
    if parsed is None:
        return None
    flipped = _OPPOSITE_SIDES.get(parsed.side)
    if flipped is None:
        return None
    return f"{base_market_id(value)}-{flipped}"


def is_over_under_market(value: str) -> bool:
    parsed = parse_market_id(value)
    return parsed is not None and parsed.bet_type == BetTypeCode.OVER_UNDER
