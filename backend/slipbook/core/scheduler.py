from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import text

from slipbook.config import Settings
from slipbook.db import SessionLocal, engine
from slipbook.services.pipeline import run_and_log

logger = logging.getLogger(__name__)

_scheduler: BackgroundScheduler | None = None
_run_lock = threading.Semaphore(1)
_stop_event = threading.Event()

SETTLE_START_DELAY_SEC = 60


def _can_reach_db() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:  # noqa: BLE001
        return False


def _run_job(run_type: str, settings: Settings) -> None:
    if not _run_lock.acquire(blocking=False):
        logger.info("Skipping %s job because another run is in progress", run_type)
        return

    try:
        with SessionLocal() as session:
            run_and_log(session, settings, run_type=run_type, should_stop=_stop_event.is_set)
    except Exception:  # noqa: BLE001
        logger.exception("Scheduler %s job failed", run_type)
    finally:
        _run_lock.release()


def _job_plan(settings: Settings) -> list[tuple[str, int, int]]:
    # (run type, interval seconds, initial delay seconds)
    return [
        ("ingest", settings.sched_ingest_interval_sec, 0),
        ("settle", settings.sched_settle_interval_sec, SETTLE_START_DELAY_SEC),
    ]


def start_scheduler(settings: Settings) -> bool:
    global _scheduler

    if not settings.enable_scheduler:
        logger.info("Scheduler disabled by ENABLE_SCHEDULER=false")
        return False

    if settings.sched_require_db and (not settings.database_url or not _can_reach_db()):
        logger.warning("Scheduler not started: DB unavailable and SCHED_REQUIRE_DB=true")
        return False

    if _scheduler is not None and _scheduler.running:
        return True

    _stop_event.clear()
    scheduler = BackgroundScheduler(timezone=timezone.utc)
    first_run = datetime.now(timezone.utc)
    for run_type, interval_sec, delay_sec in _job_plan(settings):
        scheduler.add_job(
            _run_job,
            "interval",
            args=[run_type, settings],
            id=f"{run_type}_job",
            seconds=interval_sec,
            jitter=settings.sched_jitter_sec,
            max_instances=1,
            coalesce=True,
            next_run_time=first_run + timedelta(seconds=delay_sec),
            replace_existing=True,
        )
    scheduler.start()
    _scheduler = scheduler
    logger.info("Scheduler started: %s", ", ".join(job.id for job in scheduler.get_jobs()))
    return True


def stop_scheduler() -> None:
    global _scheduler
    # In-flight cycles see the flag between leagues, events and accounts.
    _stop_event.set()
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None


def scheduler_is_running() -> bool:
    return _scheduler is not None and _scheduler.running


def scheduler_next_run_times() -> dict[str, datetime | None]:
    if _scheduler is None:
        return {}
    return {job.id: job.next_run_time for job in _scheduler.get_jobs()}
