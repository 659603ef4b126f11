from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone

import pytest
import requests
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from slipbook.config import get_settings
from slipbook.integrations.odds_feed import FeedRateLimitedError
from slipbook.models import Base, BettorAccount, PipelineRun, Wager
from slipbook.services import pipeline


def _ingest_summary(**overrides) -> dict:
    summary = {
        "events_seen": 2,
        "games_upserted": 2,
        "current_upserted": 10,
        "opening_inserted": 4,
        "events_frozen": 0,
        "errors_count": 0,
        "stopped": False,
    }
    summary.update(overrides)
    return summary


@pytest.fixture()
def settings(monkeypatch):
    monkeypatch.setenv("INGEST_LEAGUES", "mlb,NBA,MLB,nhl")
    monkeypatch.setenv("INGEST_LEAGUE_DELAY_SEC", "1.5")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture()
def session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


def test_resolve_leagues_dedupes_in_order(settings) -> None:
    assert pipeline.resolve_leagues(settings) == ["MLB", "NBA", "NHL"]


def test_run_ingest_isolates_league_failures(settings, session, monkeypatch) -> None:
    def fake_ingest(_session, league, should_stop=None):
        if league == "NBA":
            raise FeedRateLimitedError("odds feed", "60")
        if league == "NHL":
            raise requests.Timeout("read timed out")
        return _ingest_summary()

    sleeps: list[float] = []
    monkeypatch.setattr(pipeline, "ingest_league", fake_ingest)

    summary = pipeline.run_ingest(session, settings, sleep=sleeps.append)

    assert sleeps == [1.5, 1.5]
    assert list(summary["per_league"]) == ["MLB"]
    assert set(summary["errors"]) == {"NBA", "NHL"}
    assert summary["errors_count"] == 2
    assert summary["current_upserted"] == 10


def test_run_ingest_stops_when_asked(settings, session, monkeypatch) -> None:
    monkeypatch.setattr(pipeline, "ingest_league", lambda *_args, **_kwargs: _ingest_summary())

    summary = pipeline.run_ingest(session, settings, sleep=lambda _delay: None, should_stop=lambda: True)

    assert summary["stopped"] is True
    assert summary["per_league"] == {}


def test_run_settlement_covers_verified_accounts(settings, session, monkeypatch) -> None:
    session.add_all(
        [
            BettorAccount(user_id="user-1", bettor_id="BTTR_1", book_name="DraftKings", verified=True),
            BettorAccount(user_id="user-2", bettor_id="BTTR_2", verified=False),
        ]
    )
    session.commit()
    fetched: list[str] = []

    def fake_fetch(bettor_id: str) -> list[dict]:
        fetched.append(bettor_id)
        return [
            {
                "id": "slip-9",
                "status": "completed",
                "outcome": "win",
                "atRisk": 2000,
                "toWin": 1800,
                "dateClosed": "2026-10-02T04:00:00Z",
                "bets": [{"id": "leg-9", "oddsAmerican": -111, "proposition": "moneyline"}],
            }
        ]

    monkeypatch.setattr(pipeline, "fetch_bet_slips", fake_fetch)

    summary = pipeline.run_settlement(session, settings)

    assert fetched == ["BTTR_1"]
    assert summary["accounts"] == 1
    assert summary["inserted"] == 1
    wager = session.execute(select(Wager)).scalar_one()
    assert (wager.user_id, wager.status) == ("user-1", "won")
    account = session.execute(select(BettorAccount).where(BettorAccount.bettor_id == "BTTR_1")).scalar_one()
    assert account.last_synced_at is not None


def test_run_cycle_logs_each_step(settings, session, monkeypatch) -> None:
    monkeypatch.setattr(pipeline, "ingest_league", lambda *_args, **_kwargs: _ingest_summary())

    summary = pipeline.run_cycle(session, replace(settings, ingest_league_delay_sec=0))

    assert summary["errors_count"] == 0
    runs = session.execute(select(PipelineRun).order_by(PipelineRun.id)).scalars().all()
    assert [(run.run_type, run.status) for run in runs] == [("ingest", "ok"), ("settle", "ok"), ("cycle", "ok")]
    assert runs[0].leagues == "MLB,NBA,NHL"
    assert json.loads(runs[0].stats_json)["events_seen"] == 6

    statuses = pipeline.latest_run_statuses(session)
    assert statuses["cycle"]["status"] == "ok"
    assert len(pipeline.list_pipeline_runs(session, limit=2)) == 2


def test_run_and_log_marks_partial_runs(settings, session, monkeypatch) -> None:
    monkeypatch.setattr(pipeline, "ingest_league", lambda *_args, **_kwargs: _ingest_summary(errors_count=1))

    pipeline.run_and_log(session, replace(settings, ingest_league_delay_sec=0), run_type="ingest")

    run = session.execute(select(PipelineRun)).scalar_one()
    assert run.status == "partial"


def test_run_and_log_records_failure_then_raises(settings, session, monkeypatch) -> None:
    def boom(*_args, **_kwargs):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(pipeline, "run_settlement", boom)

    with pytest.raises(RuntimeError):
        pipeline.run_and_log(session, settings, run_type="settle")

    run = session.execute(select(PipelineRun)).scalar_one()
    assert (run.run_type, run.status, run.error) == ("settle", "error", "database exploded")


def test_run_and_log_rejects_unknown_run_type(settings, session) -> None:
    with pytest.raises(ValueError):
        pipeline.run_and_log(session, settings, run_type="picks")


def test_latest_run_statuses_empty(session) -> None:
    assert pipeline.latest_run_statuses(session) == {"ingest": None, "settle": None, "cycle": None}


def test_list_pipeline_runs_newest_first(session) -> None:
    session.add_all(
        [
            PipelineRun(created_at=datetime(2026, 10, 1, tzinfo=timezone.utc), run_type="ingest", status="ok"),
            PipelineRun(created_at=datetime(2026, 10, 2, tzinfo=timezone.utc), run_type="settle", status="error"),
        ]
    )
    session.commit()

    runs = pipeline.list_pipeline_runs(session)

    assert [run["run_type"] for run in runs] == ["settle", "ingest"]


def test_list_pipeline_runs_filters_by_type(session) -> None:
    session.add_all([PipelineRun(run_type="ingest", status="ok"), PipelineRun(run_type="settle", status="ok")])
    session.commit()

    runs = pipeline.list_pipeline_runs(session, run_type="settle")

    assert [run["run_type"] for run in runs] == ["settle"]
