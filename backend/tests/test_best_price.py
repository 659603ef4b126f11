from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from slipbook.core.best_price import (
    find_main_line,
    is_better_price,
    is_valid_price,
    select_best_price,
    select_best_quote,
)
from slipbook.domain.types import Quote

NOW = datetime(2026, 10, 1, 18, 0, tzinfo=timezone.utc)


def _quote(source: str, price: int, line: str | None = None) -> Quote:
    return Quote(
        event_id="evt-1",
        source_name=source,
        market_id="points-all-game-ou-over",
        price=price,
        observed_at=NOW,
        line=Decimal(line) if line is not None else None,
    )


def test_price_validity_bounds() -> None:
    assert is_valid_price(100)
    assert is_valid_price(-100)
    assert is_valid_price(9999)
    assert not is_valid_price(99)
    assert not is_valid_price(-50)
    assert not is_valid_price(10000)
    assert not is_valid_price(None)
    assert is_valid_price(12000, ceiling=20000)


def test_plus_prices_beat_minus_prices() -> None:
    assert is_better_price(105, -105)
    assert is_better_price(150, 120)
    assert is_better_price(-105, -110)
    assert not is_better_price(-110, 100)
    assert is_better_price(-200, None)


def test_select_best_quote_picks_most_favorable() -> None:
    quotes = [_quote("bookb", 120), _quote("bookc", -110), _quote("booka", 150), _quote("bookd", 50)]

    best = select_best_quote(quotes)

    assert best is not None
    assert best.source_name == "booka"
    assert best.price == 150


def test_select_best_quote_ties_break_on_source_name() -> None:
    forward = select_best_quote([_quote("zeta", 130), _quote("alpha", 130)])
    backward = select_best_quote([_quote("alpha", 130), _quote("zeta", 130)])

    assert forward is not None and backward is not None
    assert forward.source_name == backward.source_name == "alpha"


def test_select_best_quote_ignores_out_of_range_prices() -> None:
    assert select_best_quote([_quote("booka", 15000), _quote("bookb", 40)]) is None
    assert select_best_quote([]) is None


def test_select_best_price() -> None:
    assert select_best_price([-110, None, 125, 20000]) == 125
    assert select_best_price([None]) is None


def test_find_main_line_prefers_price_near_even() -> None:
    alternates = [_quote("feed", -150, "7.5"), _quote("feed", -110, "8.5"), _quote("feed", 130, "9.5")]

    main = find_main_line(alternates)

    assert main is not None
    assert main.line == Decimal("8.5")


def test_find_main_line_tie_prefers_plus_price() -> None:
    main = find_main_line([_quote("feed", -105, "3.5"), _quote("feed", 105, "4.5")])

    assert main is not None
    assert main.price == 105


def test_best_price_examples() -> None:
    assert select_best_price([-110, 105, -9999999]) == 105
    assert select_best_price([-105, -110]) == -105
