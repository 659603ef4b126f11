from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from slipbook.db import get_db
from slipbook.domain.types import LegSelection
from slipbook.services.submission import get_group_status, submit_wager

router = APIRouter(tags=["wagers"])


class LegSelectionIn(BaseModel):
    market_id: str = Field(min_length=1)
    event_id: str = Field(min_length=1)
    sport: str
    home_team: str
    away_team: str
    game_time: datetime
    price: int
    line: Decimal | None = None
    selection: str | None = None
    sportsbook: str = "slipbook"

    def to_domain(self) -> LegSelection:
        return LegSelection(**self.model_dump())


class WagerSubmissionIn(BaseModel):
    user_id: str
    stake: float
    selections: list[LegSelectionIn]


@router.post("/wagers")
def place_wager(payload: WagerSubmissionIn, db: Session = Depends(get_db)) -> dict[str, object]:
    try:
        result = submit_wager(
            db,
            user_id=payload.user_id,
            selections=[selection.to_domain() for selection in payload.selections],
            stake=payload.stake,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "kind": result.kind.value,
        "external_ids": result.external_ids,
        "parlay_id": result.parlay_id,
        "price": result.price,
        "stake": float(result.stake),
        "potential_payout": float(result.potential_payout),
        "message": result.message,
    }


@router.get("/wagers/groups/{parlay_id}")
def group_status(parlay_id: str, db: Session = Depends(get_db)) -> dict[str, object]:
    status = get_group_status(db, parlay_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Parlay '{parlay_id}' not found")
    return status
