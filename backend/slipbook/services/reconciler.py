"""Settle wagers from upstream bet-slip data.

Every slip delivered by the settlement feed is turned into one planned row per
leg. A planned row is written only when :func:`should_write` says the stored
state is stale, so replaying the same slip is a no-op. Legs are written and
committed one at a time; a failure on one leg is logged and the rest of the
batch carries on.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slipbook.core.outcomes import TERMINAL, derive_group_outcome, leg_status_from_feed, outcome_for_status, settled_profit
from slipbook.domain.enums import SlipKind, WagerStatus
from slipbook.domain.feed import FeedLeg, FeedSlip, parse_feed_slip
from slipbook.models import Wager
from slipbook.services.wager_mapper import (
    WagerDraft,
    league_for_sport,
    map_feed_position,
    map_feed_proposition,
    to_cents,
)

logger = logging.getLogger(__name__)

# Parlay ids derived from the upstream slip id stay stable across replays.
PARLAY_NAMESPACE = uuid.UUID("6f1c9a4e-0d2b-4c55-9a57-3f3c8e1b2d40")
ZERO = Decimal("0.00")
UNKNOWN = "Unknown"


@dataclass(frozen=True, slots=True)
class SettlementState:
    status: str
    profit: Decimal | None
    settled_at: datetime | None


@dataclass(slots=True)
class PlannedLeg:
    external_id: str
    state: SettlementState
    draft: WagerDraft


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_state(status: str, profit: Decimal | None, settled_at: datetime | None) -> SettlementState:
    return SettlementState(
        status=WagerStatus(status).value,
        profit=to_cents(profit) if profit is not None else None,
        settled_at=_as_utc(settled_at),
    )


def state_of(wager: Wager) -> SettlementState:
    return normalize_state(wager.status, wager.profit, wager.settled_at)


def should_write(old: SettlementState | None, new: SettlementState) -> bool:
    if old is None:
        return True
    # A settled row never goes back to pending.
    if WagerStatus(old.status) in TERMINAL and new.status == WagerStatus.PENDING.value:
        return False
    # Leaving pending always writes, even if the comparison below would not.
    if old.status == WagerStatus.PENDING.value and new.status != WagerStatus.PENDING.value:
        return True
    return old != new


def parlay_id_for_slip(slip_id: str) -> str:
    return str(uuid.uuid5(PARLAY_NAMESPACE, slip_id))


def leg_external_ids(slip: FeedSlip) -> list[str]:
    """Stable row ids for the legs of a slip.

    A single uses its leg id (or the slip id). Group legs use
    ``{slip}-{leg}``; legs without an id, or repeating an earlier leg's id,
    use their position as ``{slip}-#{index}`` instead.
    """
    if slip.kind is SlipKind.SINGLE:
        leg_id = slip.legs[0].id if slip.legs else None
        return [leg_id or slip.id]
    external_ids: list[str] = []
    for index, leg in enumerate(slip.legs):
        candidate = f"{slip.id}-{leg.id}" if leg.id else f"{slip.id}-#{index}"
        if candidate in external_ids:
            candidate = f"{slip.id}-#{index}"
        while candidate in external_ids:
            candidate = f"{candidate}#"
        external_ids.append(candidate)
    return external_ids


def _dollars(cents: Decimal | None) -> Decimal:
    if cents is None:
        return ZERO
    return to_cents(cents / 100)


def _single_status(slip: FeedSlip, leg: FeedLeg | None) -> WagerStatus:
    if slip.status:
        return leg_status_from_feed(slip.status, slip.outcome)
    if leg is not None:
        return leg_status_from_feed(leg.status, leg.outcome)
    return WagerStatus.PENDING


def _draft_for_leg(
    slip: FeedSlip,
    leg: FeedLeg | None,
    user_id: str,
    *,
    stake: Decimal,
    payout: Decimal,
    parlay_id: str | None,
    observed_at: datetime,
) -> WagerDraft:
    event = leg.event if leg is not None else None
    sport = (event.sport if event is not None else None) or UNKNOWN
    league = (event.league if event is not None else None) or league_for_sport(sport)
    home_team = event.contestant_home.full_name if event is not None and event.contestant_home else None
    away_team = event.contestant_away.full_name if event is not None and event.contestant_away else None
    return WagerDraft(
        user_id=user_id,
        sport=sport,
        league=league,
        bet_type=map_feed_proposition(leg.proposition if leg is not None else None).value,
        bet_description=(leg.book_description if leg is not None else None) or "N/A",
        odds=(leg.odds_american if leg is not None else None) or 0,
        stake=stake,
        potential_payout=payout,
        placed_at=_as_utc(slip.time_placed) or observed_at,
        game_date=_as_utc(event.start_time) if event is not None else None,
        home_team=home_team,
        away_team=away_team,
        side=map_feed_position(leg.position if leg is not None else None, home_team, away_team),
        line_value=leg.line if leg is not None else None,
        sportsbook=(slip.book.name if slip.book is not None else None) or UNKNOWN,
        parlay_id=parlay_id,
        is_parlay=parlay_id is not None,
    )


def _keep_settled(status: WagerStatus, existing: SettlementState | None) -> WagerStatus:
    if status is WagerStatus.PENDING and existing is not None and WagerStatus(existing.status) in TERMINAL:
        return WagerStatus(existing.status)
    return status


def _settled_at(slip: FeedSlip, status: WagerStatus, existing: SettlementState | None, now: datetime) -> datetime | None:
    if status not in TERMINAL:
        return None
    return _as_utc(slip.date_closed) or (existing.settled_at if existing is not None else None) or now


def plan_slip(
    slip: FeedSlip,
    user_id: str,
    existing: dict[str, SettlementState] | None = None,
    now: datetime | None = None,
) -> list[PlannedLeg]:
    """Work out the target state of every wager row a slip maps to."""
    existing = existing or {}
    now = now or datetime.now(timezone.utc)
    stake = _dollars(slip.at_risk)
    to_win = _dollars(slip.to_win)
    payout = stake + to_win

    if slip.kind is SlipKind.SINGLE:
        leg = slip.legs[0] if slip.legs else None
        external_id = leg_external_ids(slip)[0]
        status = _keep_settled(_single_status(slip, leg), existing.get(external_id))
        state = normalize_state(
            status.value,
            settled_profit(outcome_for_status(status), stake, to_win),
            _settled_at(slip, status, existing.get(external_id), now),
        )
        draft = _draft_for_leg(slip, leg, user_id, stake=stake, payout=payout, parlay_id=None, observed_at=now)
        return [PlannedLeg(external_id=external_id, state=state, draft=draft)]

    parlay_id = parlay_id_for_slip(slip.id)
    external_ids = leg_external_ids(slip)
    statuses = [
        _keep_settled(leg_status_from_feed(leg.status, leg.outcome), existing.get(external_id))
        for external_id, leg in zip(external_ids, slip.legs, strict=True)
    ]
    outcome = derive_group_outcome(statuses)
    group_profit = settled_profit(outcome, stake, to_win)

    planned: list[PlannedLeg] = []
    legs = zip(external_ids, slip.legs, statuses, strict=True)
    for index, (external_id, leg, status) in enumerate(legs):
        # Money lives on the first leg only; each leg keeps its own status.
        first = index == 0
        state = normalize_state(
            status.value,
            group_profit if first else ZERO,
            _settled_at(slip, status, existing.get(external_id), now),
        )
        draft = _draft_for_leg(
            slip,
            leg,
            user_id,
            stake=stake if first else ZERO,
            payout=payout if first else ZERO,
            parlay_id=parlay_id,
            observed_at=now,
        )
        planned.append(PlannedLeg(external_id=external_id, state=state, draft=draft))
    return planned


def _apply(session: Session, planned: PlannedLeg, row: Wager | None) -> str:
    if row is None:
        draft = planned.draft
        draft.status = planned.state.status
        draft.profit = planned.state.profit
        session.add(Wager(external_id=planned.external_id, settled_at=planned.state.settled_at, **draft.as_row()))
        session.commit()
        return "inserted"

    if not should_write(state_of(row), planned.state):
        return "unchanged"

    row.status = planned.state.status
    row.profit = planned.state.profit
    row.settled_at = planned.state.settled_at
    session.commit()
    return "updated"


def reconcile_slip(session: Session, user_id: str, slip: FeedSlip, summary: dict[str, Any]) -> None:
    external_ids = leg_external_ids(slip)
    rows = {
        row.external_id: row
        for row in session.execute(select(Wager).where(Wager.external_id.in_(external_ids))).scalars()
    }
    existing = {external_id: state_of(row) for external_id, row in rows.items()}

    for planned in plan_slip(slip, user_id, existing):
        summary["legs_processed"] += 1
        try:
            result = _apply(session, planned, rows.get(planned.external_id))
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Failed to settle wager %s", planned.external_id)
            summary["errors"][planned.external_id] = str(exc)
            continue
        summary[result] += 1


def reconcile_slips(session: Session, user_id: str, raw_slips: Iterable[Any]) -> dict[str, Any]:
    summary: dict[str, Any] = {
        "slips": 0,
        "skipped_invalid": 0,
        "legs_processed": 0,
        "inserted": 0,
        "updated": 0,
        "unchanged": 0,
        "errors": {},
    }
    for raw in raw_slips:
        slip = raw if isinstance(raw, FeedSlip) else parse_feed_slip(raw)
        if slip is None or not slip.legs:
            summary["skipped_invalid"] += 1
            continue
        summary["slips"] += 1
        try:
            reconcile_slip(session, user_id, slip, summary)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Failed to reconcile slip %s", slip.id)
            summary["errors"][slip.id] = str(exc)

    summary["errors_count"] = len(summary["errors"])
    logger.info(
        "Reconciled %d slip(s) for user %s: %d inserted, %d updated, %d unchanged, %d error(s)",
        summary["slips"],
        user_id,
        summary["inserted"],
        summary["updated"],
        summary["unchanged"],
        summary["errors_count"],
    )
    return summary
