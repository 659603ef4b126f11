from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

from slipbook.config import get_settings
from slipbook.core.best_price import find_main_line, select_best_quote
from slipbook.core.classifier import market_display_name
from slipbook.core.market_id import parse_market_id
from slipbook.domain.feed import FeedEvent, FeedOdd, parse_feed_event
from slipbook.domain.types import Quote
from slipbook.services.quota import record_quota

logger = logging.getLogger(__name__)

CONSENSUS_SOURCE = "consensus"


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def quotes_frozen(commence_time: datetime, now: datetime, buffer_min: int) -> bool:
    return to_utc(now) >= to_utc(commence_time) + timedelta(minutes=buffer_min)


def choose_main_alternate(event_id: str, alternates: list[FeedOdd], observed_at: datetime, ceiling: int) -> FeedOdd:
    if len(alternates) == 1:
        return alternates[0]
    anchors = [
        Quote(
            event_id=event_id,
            source_name=f"{index:04d}",
            market_id=odd.odd_id,
            price=odd.book_odds,
            observed_at=observed_at,
            line=odd.line,
        )
        for index, odd in enumerate(alternates)
        if odd.book_odds is not None
    ]
    main = find_main_line(anchors, ceiling)
    return alternates[int(main.source_name)] if main is not None else alternates[0]


def build_quotes(event_id: str, odd: FeedOdd, observed_at: datetime) -> list[Quote]:
    quotes: list[Quote] = []
    for bookmaker, book in sorted(odd.by_bookmaker.items()):
        if not bookmaker.strip() or not book.available or book.odds is None:
            continue
        line = book.spread if book.spread is not None else book.over_under
        quotes.append(
            Quote(
                event_id=event_id,
                source_name=bookmaker,
                market_id=odd.odd_id,
                price=book.odds,
                observed_at=observed_at,
                line=line if line is not None else odd.line,
                link=book.deeplink,
            )
        )
    if not quotes and odd.book_odds is not None:
        quotes.append(
            Quote(
                event_id=event_id,
                source_name=CONSENSUS_SOURCE,
                market_id=odd.odd_id,
                price=odd.book_odds,
                observed_at=observed_at,
                line=odd.line,
            )
        )
    return quotes


def book_price_map(quotes: list[Quote]) -> dict[str, object]:
    return {
        quote.source_name: {
            "price": quote.price,
            "line": str(quote.line) if quote.line is not None else None,
            "link": quote.link,
        }
        for quote in quotes
    }


def _upsert_game(session: "Session", league: str, event: FeedEvent) -> Any:
    from sqlalchemy import select

    from slipbook.models import Game

    game = session.execute(select(Game).where(Game.event_id == event.event_id)).scalar_one_or_none()
    home = event.teams.home.display_name or "Home"
    away = event.teams.away.display_name or "Away"
    if game is None:
        game = Game(
            league=league,
            event_id=event.event_id,
            commence_time=to_utc(event.status.starts_at),
            home_team=home,
            away_team=away,
            status=event.status.display_short,
        )
        session.add(game)
        session.flush()
    else:
        game.league = league
        game.commence_time = to_utc(event.status.starts_at)
        game.home_team = home
        game.away_team = away
        game.status = event.status.display_short
    return game


def _store_quote(
    session: "Session",
    game_id: int,
    best: Quote,
    market_name: str | None,
    quotes: list[Quote],
    summary: dict,
) -> None:
    from sqlalchemy import select

    from slipbook.models import CurrentQuote, OpeningQuote

    opening = session.execute(
        select(OpeningQuote).where(OpeningQuote.event_id == best.event_id, OpeningQuote.market_id == best.market_id)
    ).scalar_one_or_none()
    if opening is None:
        session.add(
            OpeningQuote(
                game_id=game_id,
                event_id=best.event_id,
                market_id=best.market_id,
                market_name=market_name,
                source_name=best.source_name,
                price=best.price,
                line=best.line,
                observed_at=best.observed_at,
            )
        )
        summary["opening_inserted"] += 1

    current = session.execute(
        select(CurrentQuote).where(CurrentQuote.event_id == best.event_id, CurrentQuote.market_id == best.market_id)
    ).scalar_one_or_none()
    if current is None:
        current = CurrentQuote(game_id=game_id, event_id=best.event_id, market_id=best.market_id)
        session.add(current)
    current.market_name = market_name
    current.source_name = best.source_name
    current.price = best.price
    current.line = best.line
    current.observed_at = best.observed_at
    current.book_prices = book_price_map(quotes)
    summary["current_upserted"] += 1


def ingest_event(session: "Session", league: str, event: FeedEvent, now: datetime, summary: dict) -> None:
    settings = get_settings()
    game = _upsert_game(session, league, event)
    summary["games_upserted"] += 1

    alternates: dict[str, list[FeedOdd]] = defaultdict(list)
    for odd in event.odds:
        alternates[odd.odd_id].append(odd)

    for odd_id in sorted(alternates):
        parsed = parse_market_id(odd_id)
        if parsed is None:
            summary["markets_unparseable"] += 1
            continue
        if parsed.excluded:
            summary["markets_excluded"] += 1
            continue
        odd = choose_main_alternate(event.event_id, alternates[odd_id], now, settings.price_ceiling)
        quotes = build_quotes(event.event_id, odd, now)
        best = select_best_quote(quotes, settings.price_ceiling)
        if best is None:
            summary["markets_no_valid_price"] += 1
            continue
        _store_quote(session, game.id, best, odd.market_name or market_display_name(parsed), quotes, summary)


def ingest_events(
    session: "Session",
    league: str,
    raw_events: list[Any],
    now: datetime | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> dict:
    settings = get_settings()
    now = to_utc(now or datetime.now(timezone.utc))
    summary = {
        "events_seen": 0,
        "events_invalid": 0,
        "events_frozen": 0,
        "games_upserted": 0,
        "markets_unparseable": 0,
        "markets_excluded": 0,
        "markets_no_valid_price": 0,
        "opening_inserted": 0,
        "current_upserted": 0,
        "errors_count": 0,
        "stopped": False,
    }

    for raw in raw_events:
        if should_stop is not None and should_stop():
            summary["stopped"] = True
            break
        summary["events_seen"] += 1
        event = parse_feed_event(raw)
        if event is None:
            summary["events_invalid"] += 1
            continue
        if event.status.ended or quotes_frozen(event.status.starts_at, now, settings.quote_freeze_buffer_min):
            summary["events_frozen"] += 1
            continue
        try:
            ingest_event(session, league, event, now, summary)
            session.commit()
        except Exception:  # noqa: BLE001
            session.rollback()
            summary["errors_count"] += 1
            logger.exception("Failed to ingest event %s for %s", event.event_id, league)

    return summary


def ingest_league(
    session: "Session",
    league: str,
    now: datetime | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> dict:
    from slipbook.integrations.odds_feed import fetch_league_events

    events, quota_info = fetch_league_events(league, now=now)
    record_quota("odds_feed", quota_info["headers"], quota_info["fetched_at"])
    summary = ingest_events(session, league, events, now=now, should_stop=should_stop)
    logger.info(
        "Ingested %s: %d event(s), %d current quote(s), %d opening quote(s), %d error(s)",
        league,
        summary["events_seen"],
        summary["current_upserted"],
        summary["opening_inserted"],
        summary["errors_count"],
    )
    return summary
