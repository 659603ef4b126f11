from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from slipbook.config import get_settings
from slipbook.db import get_db
from slipbook.services.pipeline import run_and_log
from slipbook.services.reconciler import reconcile_slips

router = APIRouter(tags=["settlement"])


class SlipBatchIn(BaseModel):
    user_id: str
    slips: list[dict[str, Any]]


@router.post("/settlement/slips")
def settle_slips(payload: SlipBatchIn, db: Session = Depends(get_db)) -> dict[str, object]:
    if not payload.user_id.strip():
        raise HTTPException(status_code=400, detail="user_id is required")
    return reconcile_slips(db, payload.user_id, payload.slips)


@router.post("/settlement/sync")
def settlement_sync(db: Session = Depends(get_db)) -> dict[str, object]:
    settings = get_settings()
    if not settings.settlement_feed_api_key:
        raise HTTPException(status_code=400, detail="SETTLEMENT_FEED_API_KEY is required for settlement sync")
    return run_and_log(db, settings, run_type="settle")
