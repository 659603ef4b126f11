from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from slipbook.config import get_settings
from slipbook.domain.feed import FeedOdd
from slipbook.integrations import odds_feed
from slipbook.models import Base, CurrentQuote, Game, OpeningQuote
from slipbook.services.ingest import (
    build_quotes,
    choose_main_alternate,
    ingest_events,
    ingest_league,
    quotes_frozen,
)
from slipbook.services.quota import get_quota_state, reset_quota_state

NOW = datetime(2026, 10, 1, 18, 0, tzinfo=timezone.utc)


def _odds(home_fanduel: str = "-105") -> dict:
    return {
        "points-home-game-ml-home": {
            "oddID": "points-home-game-ml-home",
            "marketName": "Moneyline",
            "bookOdds": "-115",
            "byBookmaker": {
                "draftkings": {"odds": "-120", "deeplink": "https://dk.example/bet"},
                "fanduel": {"odds": home_fanduel},
                "betmgm": {"odds": "+400", "available": False},
            },
        },
        "points-all-game-ou-over": {
            "oddID": "points-all-game-ou-over",
            "bookOdds": "-110",
            "bookOverUnder": "8.5",
        },
        "points-away-game-ml-away": {
            "oddID": "points-away-game-ml-away",
            "byBookmaker": {"draftkings": {"odds": "50"}},
        },
        "firstToScore-home-game-yn-yes": {"oddID": "firstToScore-home-game-yn-yes", "bookOdds": "+120"},
        "garbage": {"oddID": "garbage", "bookOdds": "+120"},
    }


def _event(event_id: str = "evt-1", starts_at: str = "2026-10-02T01:10:00Z", ended: bool = False, odds=None) -> dict:
    return {
        "eventID": event_id,
        "leagueID": "MLB",
        "status": {"startsAt": starts_at, "displayShort": "Scheduled", "ended": ended},
        "teams": {
            "home": {"names": {"long": "Los Angeles Dodgers", "short": "LAD"}},
            "away": {"names": {"long": "San Francisco Giants", "short": "SF"}},
        },
        "odds": _odds() if odds is None else odds,
    }


@pytest.fixture()
def session(monkeypatch):
    monkeypatch.delenv("QUOTE_FREEZE_BUFFER_MIN", raising=False)
    monkeypatch.delenv("PRICE_CEILING", raising=False)
    get_settings.cache_clear()
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


def test_quotes_freeze_after_start_buffer() -> None:
    start = datetime(2026, 10, 1, 17, 0, tzinfo=timezone.utc)

    assert not quotes_frozen(start, datetime(2026, 10, 1, 17, 9, tzinfo=timezone.utc), 10)
    assert quotes_frozen(start, datetime(2026, 10, 1, 17, 10, tzinfo=timezone.utc), 10)
    assert quotes_frozen(start.replace(tzinfo=None), datetime(2026, 10, 1, 18, 0, tzinfo=timezone.utc), 10)


def test_build_quotes_skips_unavailable_books_and_falls_back_to_consensus() -> None:
    odds = _odds()
    per_book = build_quotes("evt-1", FeedOdd.model_validate(odds["points-home-game-ml-home"]), NOW)
    consensus = build_quotes("evt-1", FeedOdd.model_validate(odds["points-all-game-ou-over"]), NOW)

    assert [quote.source_name for quote in per_book] == ["draftkings", "fanduel"]
    assert per_book[0].link == "https://dk.example/bet"
    assert [(quote.source_name, quote.price, quote.line) for quote in consensus] == [
        ("consensus", -110, Decimal("8.5"))
    ]


def test_choose_main_alternate_prefers_near_even_line() -> None:
    alternates = [
        FeedOdd.model_validate({"oddID": "points-all-game-ou-over", "bookOdds": -150, "bookOverUnder": 7.5}),
        FeedOdd.model_validate({"oddID": "points-all-game-ou-over", "bookOdds": -110, "bookOverUnder": 8.5}),
        FeedOdd.model_validate({"oddID": "points-all-game-ou-over", "bookOdds": 135, "bookOverUnder": 9.5}),
    ]

    main = choose_main_alternate("evt-1", alternates, NOW, 9999)

    assert main.line == Decimal("8.5")


def test_ingest_stores_best_quote_and_keeps_opening(session) -> None:
    first = ingest_events(session, "MLB", [_event()], now=NOW)

    assert first["games_upserted"] == 1
    assert first["current_upserted"] == 2
    assert first["opening_inserted"] == 2
    assert first["markets_excluded"] == 1
    assert first["markets_unparseable"] == 1
    assert first["markets_no_valid_price"] == 1
    assert first["errors_count"] == 0

    game = session.execute(select(Game)).scalar_one()
    assert (game.league, game.home_team, game.away_team) == ("MLB", "Los Angeles Dodgers", "San Francisco Giants")

    moneyline = session.execute(
        select(CurrentQuote).where(CurrentQuote.market_id == "points-home-game-ml-home")
    ).scalar_one()
    assert (moneyline.source_name, moneyline.price) == ("fanduel", -105)
    assert moneyline.market_name == "Moneyline"
    assert set(moneyline.book_prices) == {"draftkings", "fanduel"}

    total = session.execute(select(CurrentQuote).where(CurrentQuote.market_id == "points-all-game-ou-over")).scalar_one()
    assert total.source_name == "consensus"
    assert total.market_name == "Points Over"

    second = ingest_events(session, "MLB", [_event(odds=_odds(home_fanduel="+100"))], now=NOW)

    assert second["opening_inserted"] == 0
    session.expire_all()
    moneyline = session.execute(
        select(CurrentQuote).where(CurrentQuote.market_id == "points-home-game-ml-home")
    ).scalar_one()
    opening = session.execute(
        select(OpeningQuote).where(OpeningQuote.market_id == "points-home-game-ml-home")
    ).scalar_one()
    assert moneyline.price == 100
    assert opening.price == -105


def test_ingest_skips_ended_frozen_and_invalid_events(session) -> None:
    summary = ingest_events(
        session,
        "MLB",
        [
            _event("evt-ended", ended=True),
            _event("evt-frozen", starts_at="2026-10-01T17:40:00Z"),
            {"eventID": "evt-broken"},
            _event("evt-live-soon", starts_at="2026-10-01T17:55:00Z"),
        ],
        now=NOW,
    )

    assert summary["events_seen"] == 4
    assert summary["events_frozen"] == 2
    assert summary["events_invalid"] == 1
    assert summary["games_upserted"] == 1
    assert session.execute(select(Game.event_id)).scalars().all() == ["evt-live-soon"]


def test_ingest_honours_stop_check(session) -> None:
    summary = ingest_events(session, "MLB", [_event()], now=NOW, should_stop=lambda: True)

    assert summary["stopped"] is True
    assert summary["events_seen"] == 0
    assert session.execute(select(Game)).first() is None


def test_ingest_league_records_quota(session, monkeypatch) -> None:
    reset_quota_state()
    monkeypatch.setattr(
        odds_feed,
        "fetch_league_events",
        lambda league, now=None: ([_event()], {"headers": {"x-ratelimit-remaining": "42"}, "fetched_at": NOW}),
    )

    summary = ingest_league(session, "MLB", now=NOW)

    assert summary["current_upserted"] == 2
    quota = get_quota_state()
    assert quota["odds_feed"]["headers"] == {"x-ratelimit-remaining": "42"}
    assert quota["odds_feed"]["fetched_at"] == NOW.isoformat()
    reset_quota_state()
