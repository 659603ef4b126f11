from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from slipbook.domain.enums import GroupOutcome, WagerStatus

VOID_LIKE = frozenset({WagerStatus.VOID, WagerStatus.CANCELLED})
TERMINAL = frozenset({WagerStatus.WON, WagerStatus.LOST, WagerStatus.VOID, WagerStatus.CANCELLED})

_RESULT_WORDS = {
    "win": WagerStatus.WON,
    "won": WagerStatus.WON,
    "cashout": WagerStatus.WON,
    "loss": WagerStatus.LOST,
    "lost": WagerStatus.LOST,
    "lose": WagerStatus.LOST,
    "push": WagerStatus.VOID,
    "void": WagerStatus.VOID,
    "cancelled": WagerStatus.CANCELLED,
    "canceled": WagerStatus.CANCELLED,
}

_GROUP_STATUS = {
    GroupOutcome.WIN: WagerStatus.WON,
    GroupOutcome.LOSS: WagerStatus.LOST,
    GroupOutcome.PUSH: WagerStatus.VOID,
    GroupOutcome.PENDING: WagerStatus.PENDING,
}


def leg_status_from_feed(status: str | None, outcome: str | None) -> WagerStatus:
    """Translate a feed status/outcome pair into a stored wager status.

    A ``completed`` status only settles the leg when the outcome is known;
    a completed leg with a missing or unrecognised outcome stays pending.
    """
    status_text = (status or "").strip().lower()
    outcome_text = (outcome or "").strip().lower()
    if status_text in {"cancelled", "canceled"}:
        return WagerStatus.CANCELLED
    if status_text == "completed":
        return _RESULT_WORDS.get(outcome_text, WagerStatus.PENDING)
    return _RESULT_WORDS.get(status_text, WagerStatus.PENDING)


def derive_group_outcome(statuses: Iterable[str]) -> GroupOutcome:
    # loss > pending > push > win
    legs = [WagerStatus(status) for status in statuses]
    if not legs:
        return GroupOutcome.PENDING
    if any(leg is WagerStatus.LOST for leg in legs):
        return GroupOutcome.LOSS
    if any(leg is WagerStatus.PENDING for leg in legs):
        return GroupOutcome.PENDING
    if any(leg in VOID_LIKE for leg in legs):
        return GroupOutcome.PUSH
    return GroupOutcome.WIN


def status_for_outcome(outcome: GroupOutcome) -> WagerStatus:
    return _GROUP_STATUS[outcome]


def outcome_for_status(status: WagerStatus) -> GroupOutcome:
    if status is WagerStatus.WON:
        return GroupOutcome.WIN
    if status is WagerStatus.LOST:
        return GroupOutcome.LOSS
    if status in VOID_LIKE:
        return GroupOutcome.PUSH
    return GroupOutcome.PENDING


def settled_profit(outcome: GroupOutcome, stake: Decimal, to_win: Decimal) -> Decimal | None:
    if outcome is GroupOutcome.WIN:
        return to_win
    if outcome is GroupOutcome.LOSS:
        return -stake
    if outcome is GroupOutcome.PUSH:
        return Decimal("0.00")
    return None
