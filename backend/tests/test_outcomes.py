from decimal import Decimal

import pytest

from slipbook.core.outcomes import (
    derive_group_outcome,
    leg_status_from_feed,
    outcome_for_status,
    settled_profit,
    status_for_outcome,
)
from slipbook.domain.enums import GroupOutcome, WagerStatus


@pytest.mark.parametrize(
    ("status", "outcome", "expected"),
    [
        ("completed", "win", WagerStatus.WON),
        ("completed", "loss", WagerStatus.LOST),
        ("completed", "push", WagerStatus.VOID),
        ("completed", "cashout", WagerStatus.WON),
        ("completed", None, WagerStatus.PENDING),
        ("completed", "mystery", WagerStatus.PENDING),
        ("cancelled", "win", WagerStatus.CANCELLED),
        ("Canceled", None, WagerStatus.CANCELLED),
        ("pending", None, WagerStatus.PENDING),
        ("won", None, WagerStatus.WON),
        ("LOST", None, WagerStatus.LOST),
        (None, None, WagerStatus.PENDING),
    ],
)
def test_leg_status_from_feed(status, outcome, expected) -> None:
    assert leg_status_from_feed(status, outcome) is expected


@pytest.mark.parametrize(
    ("statuses", "expected"),
    [
        ([], GroupOutcome.PENDING),
        (["won", "won"], GroupOutcome.WIN),
        (["won", "lost", "pending"], GroupOutcome.LOSS),
        (["won", "pending", "void"], GroupOutcome.PENDING),
        (["won", "void"], GroupOutcome.PUSH),
        (["won", "cancelled"], GroupOutcome.PUSH),
        (["void", "void"], GroupOutcome.PUSH),
    ],
)
def test_group_outcome_priority(statuses, expected) -> None:
    assert derive_group_outcome(statuses) is expected


def test_unknown_status_raises() -> None:
    with pytest.raises(ValueError):
        derive_group_outcome(["maybe"])


def test_status_outcome_mapping() -> None:
    assert status_for_outcome(GroupOutcome.PUSH) is WagerStatus.VOID
    assert status_for_outcome(GroupOutcome.PENDING) is WagerStatus.PENDING
    assert outcome_for_status(WagerStatus.CANCELLED) is GroupOutcome.PUSH
    assert outcome_for_status(WagerStatus.WON) is GroupOutcome.WIN


def test_settled_profit() -> None:
    stake = Decimal("10.00")
    to_win = Decimal("26.40")

    assert settled_profit(GroupOutcome.WIN, stake, to_win) == Decimal("26.40")
    assert settled_profit(GroupOutcome.LOSS, stake, to_win) == Decimal("-10.00")
    assert settled_profit(GroupOutcome.PUSH, stake, to_win) == Decimal("0.00")
    assert settled_profit(GroupOutcome.PENDING, stake, to_win) is None
