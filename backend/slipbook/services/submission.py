from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slipbook.config import Settings, get_settings
from slipbook.core.best_price import is_valid_price
from slipbook.core.market_id import base_market_id, opposite_side, parse_market_id
from slipbook.core.odds import parlay_american_price, single_payout
from slipbook.core.outcomes import derive_group_outcome, status_for_outcome
from slipbook.domain.enums import SlipKind, WagerStatus
from slipbook.domain.types import LegSelection
from slipbook.models import Wager
from slipbook.services.wager_mapper import map_selection_to_wager, to_cents

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class WagerValidationError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    kind: SlipKind
    external_ids: list[str]
    parlay_id: str | None
    price: int
    stake: Decimal
    potential_payout: Decimal
    message: str


def _money(value: float) -> str:
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def validate_stake(stake: float, settings: Settings) -> float:
    stake = float(stake)
    if not settings.stake_min <= stake <= settings.stake_max:
        raise WagerValidationError(
            f"Stake must be between ${_money(settings.stake_min)} and ${_money(settings.stake_max)}"
        )
    return stake


def validate_selections(selections: Sequence[LegSelection], settings: Settings) -> None:
    if not selections:
        raise WagerValidationError("No bets to submit")
    if len(selections) > 1 and not settings.parlay_min_legs <= len(selections) <= settings.parlay_max_legs:
        raise WagerValidationError(
            f"Parlay must have between {settings.parlay_min_legs} and {settings.parlay_max_legs} legs"
        )
    seen: set[tuple[str, str]] = set()
    for selection in selections:
        parsed = parse_market_id(selection.market_id)
        if parsed is None:
            raise WagerValidationError(f"Unrecognized market: {selection.market_id}")
        if parsed.excluded:
            raise WagerValidationError(f"Yes/no markets cannot be wagered: {selection.market_id}")
        if not is_valid_price(selection.price, settings.price_ceiling):
            raise WagerValidationError(f"Invalid odds {selection.price} for {selection.market_id}")
        if (selection.event_id, selection.market_id) in seen:
            raise WagerValidationError(f"Duplicate selection: {selection.market_id}")
        if (selection.event_id, opposite_side(selection.market_id)) in seen:
            raise WagerValidationError(
                f"Parlay cannot include both sides of {base_market_id(selection.market_id)}"
            )
        seen.add((selection.event_id, selection.market_id))


def _persist(session: Session, rows: list[Wager]) -> None:
    try:
        session.add_all(rows)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to persist %d wager row(s)", len(rows))
        raise


def submit_wager(
    session: Session,
    user_id: str,
    selections: Sequence[LegSelection],
    stake: float,
    settings: Settings | None = None,
) -> SubmissionResult:
    settings = settings or get_settings()
    if not user_id or not user_id.strip():
        raise WagerValidationError("User must be logged in to place bets")
    validate_selections(selections, settings)
    stake = validate_stake(stake, settings)

    if len(selections) == 1:
        selection = selections[0]
        payout = single_payout(stake, selection.price)
        external_id = uuid.uuid4().hex
        draft = map_selection_to_wager(selection, user_id, stake, payout)
        _persist(session, [Wager(external_id=external_id, **draft.as_row())])
        logger.info("Placed single wager %s for user %s", external_id, user_id)
        return SubmissionResult(
            kind=SlipKind.SINGLE,
            external_ids=[external_id],
            parlay_id=None,
            price=int(selection.price),
            stake=to_cents(stake),
            potential_payout=to_cents(payout),
            message=f"Single bet placed successfully for ${stake:.2f}",
        )

    parlay_id = str(uuid.uuid4())
    price = parlay_american_price([selection.price for selection in selections])
    payout = single_payout(stake, price)
    rows: list[Wager] = []
    for index, selection in enumerate(selections):
        # Only the first leg carries money; the rest record per-leg results.
        leg_stake, leg_payout = (stake, payout) if index == 0 else (0, 0)
        draft = map_selection_to_wager(
            selection,
            user_id,
            leg_stake,
            leg_payout,
            parlay_id=parlay_id,
            is_parlay=True,
        )
        if index > 0:
            draft.profit = ZERO
        rows.append(Wager(external_id=f"{parlay_id}-{index}", **draft.as_row()))
    _persist(session, rows)
    logger.info("Placed %d-leg parlay %s for user %s", len(rows), parlay_id, user_id)
    return SubmissionResult(
        kind=SlipKind.GROUP,
        external_ids=[row.external_id for row in rows],
        parlay_id=parlay_id,
        price=price,
        stake=to_cents(stake),
        potential_payout=to_cents(payout),
        message=f"{len(rows)}-leg parlay placed successfully for ${stake:.2f}",
    )


def get_group_status(session: Session, parlay_id: str) -> dict[str, object] | None:
    legs = (
        session.execute(
            select(Wager).where(Wager.parlay_id == parlay_id, Wager.is_parlay.is_(True)).order_by(Wager.id.asc())
        )
        .scalars()
        .all()
    )
    if not legs:
        return None

    counts = {status.value: 0 for status in WagerStatus}
    for leg in legs:
        counts[leg.status] = counts.get(leg.status, 0) + 1
    money_leg = next((leg for leg in legs if leg.stake > 0), legs[0])
    outcome = derive_group_outcome(leg.status for leg in legs)
    return {
        "parlay_id": parlay_id,
        "outcome": outcome.value,
        "status": status_for_outcome(outcome).value,
        "total_legs": len(legs),
        "won_legs": counts[WagerStatus.WON.value],
        "lost_legs": counts[WagerStatus.LOST.value],
        "pending_legs": counts[WagerStatus.PENDING.value],
        "void_legs": counts[WagerStatus.VOID.value] + counts[WagerStatus.CANCELLED.value],
        "stake": money_leg.stake,
        "potential_payout": money_leg.potential_payout,
        "profit": money_leg.profit,
    }
