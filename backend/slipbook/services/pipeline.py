from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

import requests
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from slipbook.config import Settings
from slipbook.integrations.odds_feed import FeedRateLimitedError
from slipbook.integrations.settlement_feed import fetch_bet_slips
from slipbook.models import BettorAccount, PipelineRun
from slipbook.services.ingest import ingest_league
from slipbook.services.reconciler import reconcile_slips

logger = logging.getLogger(__name__)

RUN_TYPES = ("ingest", "settle")
StopCheck = Callable[[], bool]


def _never_stop() -> bool:
    return False


def resolve_leagues(settings: Settings) -> list[str]:
    return list(dict.fromkeys(league.upper() for league in settings.ingest_leagues))


def _log_run(
    session: Session,
    *,
    run_type: str,
    status: str,
    leagues: list[str],
    stats: dict,
    error: str | None = None,
) -> None:
    session.add(
        PipelineRun(
            run_type=run_type,
            status=status,
            leagues=",".join(leagues),
            stats_json=json.dumps(stats, sort_keys=True, default=str),
            error=error,
        )
    )
    session.commit()


def _guarded(session: Session, key: str, errors: dict[str, str], call: Callable[[], dict]) -> dict | None:
    try:
        return call()
    except FeedRateLimitedError as exc:
        session.rollback()
        logger.warning("Aborting %s: %s", key, exc)
        errors[key] = str(exc)
    except requests.RequestException as exc:
        session.rollback()
        logger.warning("Aborting %s after feed error: %s", key, exc)
        errors[key] = str(exc)
    except Exception as exc:  # noqa: BLE001
        session.rollback()
        logger.exception("Aborting %s after unexpected error", key)
        errors[key] = str(exc)
    return None


def run_ingest(
    session: Session,
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep,
    should_stop: StopCheck = _never_stop,
) -> dict:
    """Ingest each configured league in turn, pausing between leagues.

    A rate limit, timeout or other failure abandons only the league it
    happened in. The stop check is consulted before every league.
    """
    leagues = resolve_leagues(settings)
    per_league: dict[str, dict] = {}
    errors: dict[str, str] = {}
    stopped = False

    for index, league in enumerate(leagues):
        if should_stop():
            stopped = True
            break
        if index > 0 and settings.ingest_league_delay_sec > 0:
            sleep(settings.ingest_league_delay_sec)
        result = _guarded(session, league, errors, lambda: ingest_league(session, league, should_stop=should_stop))
        if result is not None:
            per_league[league] = result
            stopped = stopped or bool(result.get("stopped"))

    totals = {
        key: sum(item.get(key, 0) for item in per_league.values())
        for key in ("events_seen", "games_upserted", "current_upserted", "opening_inserted", "events_frozen")
    }
    return {
        **totals,
        "leagues": leagues,
        "per_league": per_league,
        "stopped": stopped,
        "errors": errors,
        "errors_count": len(errors) + sum(item.get("errors_count", 0) for item in per_league.values()),
    }


def run_settlement(session: Session, settings: Settings, should_stop: StopCheck = _never_stop) -> dict:
    accounts = (
        session.execute(select(BettorAccount).where(BettorAccount.verified.is_(True)).order_by(BettorAccount.id.asc()))
        .scalars()
        .all()
    )
    per_account: dict[str, dict] = {}
    errors: dict[str, str] = {}
    stopped = False

    for account in accounts:
        if should_stop():
            stopped = True
            break

        def _sync(account: BettorAccount = account) -> dict:
            result = reconcile_slips(session, account.user_id, fetch_bet_slips(account.bettor_id))
            account.last_synced_at = datetime.now(timezone.utc)
            session.commit()
            return result

        result = _guarded(session, account.bettor_id, errors, _sync)
        if result is not None:
            per_account[account.bettor_id] = result

    totals = {
        key: sum(item.get(key, 0) for item in per_account.values())
        for key in ("slips", "legs_processed", "inserted", "updated", "unchanged", "skipped_invalid")
    }
    return {
        **totals,
        "accounts": len(accounts),
        "per_account": per_account,
        "stopped": stopped,
        "errors": errors,
        "errors_count": len(errors) + sum(item.get("errors_count", 0) for item in per_account.values()),
    }


def _run(session: Session, settings: Settings, run_type: str, should_stop: StopCheck) -> dict:
    if run_type == "ingest":
        return run_ingest(session, settings, should_stop=should_stop)
    if run_type == "settle":
        return run_settlement(session, settings, should_stop=should_stop)
    raise ValueError(f"Unsupported run_type '{run_type}'")


def run_and_log(
    session: Session,
    settings: Settings,
    run_type: str,
    should_stop: StopCheck = _never_stop,
) -> dict:
    leagues = resolve_leagues(settings)
    try:
        result = _run(session, settings, run_type, should_stop)
        _log_run(
            session,
            run_type=run_type,
            status="ok" if not result.get("errors_count") else "partial",
            leagues=leagues,
            stats=result,
        )
        return result
    except Exception as exc:  # noqa: BLE001
        message = str(exc)
        session.rollback()
        _log_run(
            session,
            run_type=run_type,
            status="error",
            leagues=leagues,
            stats={"error": message},
            error=message,
        )
        raise


def run_cycle(session: Session, settings: Settings, should_stop: StopCheck = _never_stop) -> dict:
    leagues = resolve_leagues(settings)
    cycle_stats: dict[str, dict] = {}
    cycle_errors: dict[str, str] = {}

    for step in RUN_TYPES:
        try:
            cycle_stats[step] = run_and_log(session, settings, step, should_stop=should_stop)
        except Exception as exc:  # noqa: BLE001
            cycle_errors[step] = str(exc)
            cycle_stats[step] = {"error": str(exc)}

    cycle_summary = {
        "leagues": leagues,
        "steps": cycle_stats,
        "errors": cycle_errors,
        "errors_count": len(cycle_errors),
    }
    _log_run(
        session,
        run_type="cycle",
        status="ok" if not cycle_errors else "error",
        leagues=leagues,
        stats=cycle_summary,
        error=json.dumps(cycle_errors, sort_keys=True) if cycle_errors else None,
    )
    return cycle_summary


def list_pipeline_runs(session: Session, limit: int = 50, run_type: str | None = None) -> list[dict[str, object]]:
    query = select(PipelineRun)
    if run_type is not None:
        query = query.where(PipelineRun.run_type == run_type)
    rows = session.execute(query.order_by(desc(PipelineRun.created_at), desc(PipelineRun.id)).limit(limit)).scalars().all()
    return [
        {
            "id": row.id,
            "created_at": row.created_at,
            "run_type": row.run_type,
            "status": row.status,
            "leagues": row.leagues,
            "stats_json": row.stats_json,
            "error": row.error,
        }
        for row in rows
    ]


def latest_run_statuses(session: Session) -> dict[str, dict[str, object] | None]:
    output: dict[str, dict[str, object] | None] = {}
    for run_type in (*RUN_TYPES, "cycle"):
        row = (
            session.execute(
                select(PipelineRun)
                .where(PipelineRun.run_type == run_type)
                .order_by(desc(PipelineRun.created_at), desc(PipelineRun.id))
                .limit(1)
            )
            .scalars()
            .first()
        )
        output[run_type] = (
            {"status": row.status, "created_at": row.created_at, "error": row.error} if row is not None else None
        )
    return output
