from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from slipbook.api import pipeline as pipeline_api
from slipbook.api.quotes import current_quotes, quote_hierarchy
from slipbook.api.settlement import SlipBatchIn, settle_slips, settlement_sync
from slipbook.api.wagers import LegSelectionIn, WagerSubmissionIn, group_status, place_wager
from slipbook.config import get_settings
from slipbook.models import Base, CurrentQuote, Game
from slipbook.services.quota import record_quota, reset_quota_state

GAME_TIME = datetime(2026, 10, 2, 1, 10, tzinfo=timezone.utc)


@pytest.fixture()
def session(monkeypatch):
    for key in ("STAKE_MIN", "STAKE_MAX", "PARLAY_MIN_LEGS", "PARLAY_MAX_LEGS", "SETTLEMENT_FEED_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    get_settings.cache_clear()


def _leg(market_id: str, event_id: str = "evt-1", price: int = -110) -> LegSelectionIn:
    return LegSelectionIn(
        market_id=market_id,
        event_id=event_id,
        sport="MLB",
        home_team="Los Angeles Dodgers",
        away_team="San Francisco Giants",
        game_time=GAME_TIME,
        price=price,
    )


def _seed_quotes(session: Session) -> None:
    game = Game(
        league="MLB",
        event_id="evt-1",
        commence_time=GAME_TIME,
        home_team="Los Angeles Dodgers",
        away_team="San Francisco Giants",
    )
    session.add(game)
    session.flush()
    for market_id, price in (
        ("points-home-game-ml-home", -120),
        ("points-home-game-sp-home", 135),
        ("batting_hits-TYLER_FREEMAN_1_MLB-game-ou-over", -140),
    ):
        session.add(
            CurrentQuote(
                game_id=game.id,
                event_id="evt-1",
                market_id=market_id,
                source_name="draftkings",
                price=price,
                line=Decimal("1.5") if "-sp-" in market_id else None,
                observed_at=GAME_TIME,
                book_prices={},
            )
        )
    session.commit()


def test_place_parlay_then_read_group(session) -> None:
    payload = WagerSubmissionIn(
        user_id="user-1",
        stake=10,
        selections=[_leg("points-home-game-ml-home"), _leg("points-all-game-ou-over", event_id="evt-2")],
    )

    placed = place_wager(payload, db=session)

    assert placed["kind"] == "group"
    assert placed["potential_payout"] == 36.4
    status = group_status(placed["parlay_id"], db=session)
    assert status["outcome"] == "pending"
    assert status["total_legs"] == 2


def test_place_wager_validation_error_is_400(session) -> None:
    payload = WagerSubmissionIn(user_id="user-1", stake=0, selections=[_leg("points-home-game-ml-home")])

    with pytest.raises(HTTPException) as exc_info:
        place_wager(payload, db=session)

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == "Stake must be between $1 and $10,000"


def test_group_status_not_found(session) -> None:
    with pytest.raises(HTTPException) as exc_info:
        group_status("missing", db=session)

    assert exc_info.value.status_code == 404


def test_settle_slips_endpoint(session) -> None:
    payload = SlipBatchIn(
        user_id="user-1",
        slips=[{"id": "slip-1", "status": "completed", "outcome": "loss", "atRisk": 500, "toWin": 450, "bets": [{"id": "leg-1"}]}],
    )

    summary = settle_slips(payload, db=session)

    assert summary["inserted"] == 1
    with pytest.raises(HTTPException):
        settle_slips(SlipBatchIn(user_id="  ", slips=[]), db=session)


def test_settlement_sync_requires_key(session) -> None:
    with pytest.raises(HTTPException) as exc_info:
        settlement_sync(db=session)

    assert exc_info.value.status_code == 400


def test_current_quotes_and_hierarchy(session) -> None:
    _seed_quotes(session)

    current = current_quotes(event_id="evt-1", db=session)
    hierarchy = quote_hierarchy(event_id="evt-1", sport=None, db=session)

    assert [quote["market_id"] for quote in current["quotes"]] == [
        "batting_hits-TYLER_FREEMAN_1_MLB-game-ou-over",
        "points-home-game-ml-home",
        "points-home-game-sp-home",
    ]
    tree = hierarchy["hierarchy"]
    assert tree["core-lines"]["Run Line"]["all"][0]["price"] == 135
    assert tree["core-lines"]["Moneyline"]["all"][0]["price"] == -120
    assert tree["player-props"]["Hitters"]["Offense"][0]["market_id"].startswith("batting_hits")
    assert tree["team-props"] == {"all": {"all": []}}

    with pytest.raises(HTTPException) as exc_info:
        current_quotes(event_id="nope", db=session)
    assert exc_info.value.status_code == 404


def test_pipeline_health_reports_quota(session, monkeypatch) -> None:
    reset_quota_state()
    record_quota("odds_feed", {"x-ratelimit-remaining": "10"}, GAME_TIME)
    monkeypatch.setattr(pipeline_api, "scheduler_is_running", lambda: False)
    monkeypatch.setattr(pipeline_api, "scheduler_next_run_times", lambda: {})

    health = pipeline_api.pipeline_health(db=session)

    assert health["scheduler_running"] is False
    assert isinstance(health["leagues"], list)
    assert health["last_run_statuses"] == {"ingest": None, "settle": None, "cycle": None}
    assert health["quota"]["odds_feed"]["headers"] == {"x-ratelimit-remaining": "10"}
    reset_quota_state()


def test_pipeline_run_dispatches_single_step(session, monkeypatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(
        pipeline_api,
        "run_and_log",
        lambda db, settings, run_type: calls.append(run_type) or {"errors_count": 0},
    )
    monkeypatch.setattr(pipeline_api, "run_cycle", lambda db, settings: calls.append("cycle") or {"errors_count": 0})

    pipeline_api.pipeline_run(run_type="ingest", db=session)
    pipeline_api.pipeline_run(run_type="cycle", db=session)

    assert calls == ["ingest", "cycle"]
