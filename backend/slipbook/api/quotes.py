from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from slipbook.core.classifier import organize_by_hierarchy
from slipbook.db import get_db
from slipbook.models import CurrentQuote, Game

router = APIRouter(tags=["quotes"])


def _serialize(quote: CurrentQuote) -> dict[str, object]:
    return {
        "event_id": quote.event_id,
        "market_id": quote.market_id,
        "market_name": quote.market_name,
        "source_name": quote.source_name,
        "price": quote.price,
        "line": float(quote.line) if quote.line is not None else None,
        "observed_at": quote.observed_at.isoformat(),
        "book_prices": quote.book_prices,
    }


def _game_or_404(db: Session, event_id: str) -> Game:
    game = db.execute(select(Game).where(Game.event_id == event_id)).scalar_one_or_none()
    if game is None:
        raise HTTPException(status_code=404, detail=f"Event '{event_id}' not found")
    return game


def _current_quotes(db: Session, event_id: str) -> list[CurrentQuote]:
    return list(
        db.execute(select(CurrentQuote).where(CurrentQuote.event_id == event_id).order_by(CurrentQuote.market_id.asc()))
        .scalars()
        .all()
    )


@router.get("/quotes/current")
def current_quotes(event_id: str = Query(...), db: Session = Depends(get_db)) -> dict[str, object]:
    game = _game_or_404(db, event_id)
    return {
        "event_id": game.event_id,
        "league": game.league,
        "home_team": game.home_team,
        "away_team": game.away_team,
        "commence_time": game.commence_time.isoformat(),
        "quotes": [_serialize(quote) for quote in _current_quotes(db, event_id)],
    }


@router.get("/quotes/hierarchy")
def quote_hierarchy(
    event_id: str = Query(...),
    sport: str | None = Query(None),
    db: Session = Depends(get_db),
) -> dict[str, object]:
    game = _game_or_404(db, event_id)
    organized = organize_by_hierarchy(
        _current_quotes(db, event_id),
        sport or game.league,
        market_id_of=lambda quote: quote.market_id,
    )
    return {
        "event_id": game.event_id,
        "sport": sport or game.league,
        "hierarchy": {
            main: {
                sub: {sub_sub: [_serialize(quote) for quote in quotes] for sub_sub, quotes in subs.items()}
                for sub, subs in groups.items()
            }
            for main, groups in organized.items()
        },
    }
