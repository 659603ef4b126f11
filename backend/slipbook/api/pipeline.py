from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from slipbook.config import get_settings
from slipbook.core.scheduler import scheduler_is_running, scheduler_next_run_times
from slipbook.db import get_db
from slipbook.services.pipeline import (
    latest_run_statuses,
    list_pipeline_runs,
    resolve_leagues,
    run_and_log,
    run_cycle,
)
from slipbook.services.quota import get_quota_state

router = APIRouter(tags=["pipeline"])

RUN_TYPE_PATTERN = "^(cycle|ingest|settle)$"


@router.post("/pipeline/run")
def pipeline_run(
    run_type: str = Query("cycle", pattern=RUN_TYPE_PATTERN),
    db: Session = Depends(get_db),
) -> dict[str, object]:
    settings = get_settings()
    if run_type == "cycle":
        return run_cycle(db, settings)
    return run_and_log(db, settings, run_type=run_type)


@router.get("/pipeline/runs")
def pipeline_runs(
    limit: int = Query(50, ge=1, le=500),
    run_type: str | None = Query(None, pattern=RUN_TYPE_PATTERN),
    db: Session = Depends(get_db),
) -> list[dict[str, object]]:
    return list_pipeline_runs(db, limit=limit, run_type=run_type)


@router.get("/pipeline/health")
def pipeline_health(db: Session = Depends(get_db)) -> dict[str, object]:
    settings = get_settings()
    return {
        "scheduler_running": scheduler_is_running(),
        "next_run_times": scheduler_next_run_times(),
        "leagues": resolve_leagues(settings),
        "last_run_statuses": latest_run_statuses(db),
        "quota": get_quota_state(),
    }
