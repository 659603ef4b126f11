from __future__ import annotations

from collections.abc import Iterable, Sequence

from slipbook.domain.types import Quote

DEFAULT_PRICE_CEILING = 9999
EVEN_MONEY = 100


def is_valid_price(price: int | None, ceiling: int = DEFAULT_PRICE_CEILING) -> bool:
    if price is None or isinstance(price, bool):
        return False
    return EVEN_MONEY <= abs(price) <= ceiling


def price_rank(price: int) -> tuple[int, int]:
    # Any plus price outranks any minus price. Within a sign, the larger
    # number pays more: +150 > +120 and -105 > -110.
    return (1, price) if price > 0 else (0, price)


def is_better_price(candidate: int, current: int | None) -> bool:
    if current is None:
        return True
    return price_rank(candidate) > price_rank(current)


def select_best_quote(quotes: Iterable[Quote], ceiling: int = DEFAULT_PRICE_CEILING) -> Quote | None:
    """Pick the most favorable valid quote.

    Prices outside ``100 <= |price| <= ceiling`` are dropped. Ties on price
    are broken by source name so the result never depends on input order.
    """
    quotes = list(quotes)
    best_price = select_best_price((quote.price for quote in quotes), ceiling)
    if best_price is None:
        return None
    return min((quote for quote in quotes if quote.price == best_price), key=lambda quote: quote.source_name)


def select_best_price(prices: Iterable[int | None], ceiling: int = DEFAULT_PRICE_CEILING) -> int | None:
    best: int | None = None
    for price in prices:
        if is_valid_price(price, ceiling) and is_better_price(price, best):
            best = price
    return best


def distance_from_even(price: int) -> int:
    return abs(abs(price) - EVEN_MONEY)


def find_main_line(alternates: Sequence[Quote], ceiling: int = DEFAULT_PRICE_CEILING) -> Quote | None:
    """Among alternate lines for one market, return the one priced nearest even money."""
    valid = [quote for quote in alternates if is_valid_price(quote.price, ceiling)]
    if not valid:
        return None
    return min(
        valid,
        key=lambda quote: (
            distance_from_even(quote.price),
            -price_rank(quote.price)[0],
            quote.line if quote.line is not None else 0,
            quote.source_name,
        ),
    )
