"""Typed shapes for upstream feed payloads.

Raw JSON from the odds feed and the settlement feed is validated here, once,
into a small set of pydantic models. Anything that does not validate is
skipped at this boundary and never reaches pricing or settlement logic.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from slipbook.domain.enums import SlipKind

logger = logging.getLogger(__name__)


def coerce_american(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace("+", "")
        if not value:
            return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed):
        return None
    return int(round(parsed))


def coerce_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


class _FeedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FeedBookPrice(_FeedModel):
    odds: int | None = None
    spread: Decimal | None = None
    over_under: Decimal | None = Field(default=None, alias="overUnder")
    deeplink: str | None = None
    available: bool = True

    _odds = field_validator("odds", mode="before")(coerce_american)
    _lines = field_validator("spread", "over_under", mode="before")(coerce_decimal)


class FeedOdd(_FeedModel):
    odd_id: str = Field(alias="oddID", min_length=1)
    market_name: str | None = Field(default=None, alias="marketName")
    bet_type_id: str | None = Field(default=None, alias="betTypeID")
    side_id: str | None = Field(default=None, alias="sideID")
    book_odds: int | None = Field(default=None, alias="bookOdds")
    book_spread: Decimal | None = Field(default=None, alias="bookSpread")
    fair_spread: Decimal | None = Field(default=None, alias="fairSpread")
    book_over_under: Decimal | None = Field(default=None, alias="bookOverUnder")
    fair_over_under: Decimal | None = Field(default=None, alias="fairOverUnder")
    by_bookmaker: dict[str, FeedBookPrice] = Field(default_factory=dict, alias="byBookmaker")

    _odds = field_validator("book_odds", mode="before")(coerce_american)
    _lines = field_validator(
        "book_spread", "fair_spread", "book_over_under", "fair_over_under", mode="before"
    )(coerce_decimal)

    @property
    def line(self) -> Decimal | None:
        for candidate in (self.book_spread, self.fair_spread, self.book_over_under, self.fair_over_under):
            if candidate is not None:
                return candidate
        return None


class FeedTeam(_FeedModel):
    names: dict[str, str | None] = Field(default_factory=dict)
    score: float | None = None

    @property
    def display_name(self) -> str | None:
        return self.names.get("long") or self.names.get("medium") or self.names.get("short")


class FeedTeams(_FeedModel):
    home: FeedTeam
    away: FeedTeam


class FeedEventStatus(_FeedModel):
    starts_at: datetime = Field(alias="startsAt")
    display_short: str | None = Field(default=None, alias="displayShort")
    started: bool = False
    ended: bool = False


class FeedEvent(_FeedModel):
    event_id: str = Field(alias="eventID", min_length=1)
    league_id: str | None = Field(default=None, alias="leagueID")
    status: FeedEventStatus
    teams: FeedTeams
    odds: list[FeedOdd] = Field(default_factory=list)

    @field_validator("odds", mode="before")
    @classmethod
    def _odds_as_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            return list(value.values())
        return value


class FeedContestant(_FeedModel):
    full_name: str | None = Field(default=None, alias="fullName")


class FeedSlipEvent(_FeedModel):
    sport: str | None = None
    league: str | None = None
    start_time: datetime | None = Field(default=None, alias="startTime")
    contestant_home: FeedContestant | None = Field(default=None, alias="contestantHome")
    contestant_away: FeedContestant | None = Field(default=None, alias="contestantAway")


class FeedLeg(_FeedModel):
    id: str | None = None
    status: str | None = None
    outcome: str | None = None
    at_risk: Decimal | None = Field(default=None, alias="atRisk")
    to_win: Decimal | None = Field(default=None, alias="toWin")
    odds_american: int | None = Field(default=None, alias="oddsAmerican")
    proposition: str | None = None
    position: str | None = None
    line: Decimal | None = None
    book_description: str | None = Field(default=None, alias="bookDescription")
    event: FeedSlipEvent | None = None

    _odds = field_validator("odds_american", mode="before")(coerce_american)
    _amounts = field_validator("at_risk", "to_win", "line", mode="before")(coerce_decimal)


class FeedBook(_FeedModel):
    name: str | None = None


class FeedSlip(_FeedModel):
    id: str = Field(min_length=1)
    type: str | None = None
    status: str | None = None
    outcome: str | None = None
    at_risk: Decimal | None = Field(default=None, alias="atRisk")
    to_win: Decimal | None = Field(default=None, alias="toWin")
    time_placed: datetime | None = Field(default=None, alias="timePlaced")
    date_closed: datetime | None = Field(default=None, alias="dateClosed")
    book: FeedBook | None = None
    legs: list[FeedLeg] = Field(min_length=1, alias="bets")

    _amounts = field_validator("at_risk", "to_win", mode="before")(coerce_decimal)

    @property
    def kind(self) -> SlipKind:
        # A "parlay"-tagged slip with a single leg is settled as a single wager.
        return SlipKind.GROUP if len(self.legs) > 1 else SlipKind.SINGLE


def parse_feed_event(raw: Any) -> FeedEvent | None:
    try:
        return FeedEvent.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Skipping malformed feed event: %s", exc.errors(include_url=False))
        return None


def parse_feed_slip(raw: Any) -> FeedSlip | None:
    try:
        return FeedSlip.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Skipping malformed bet slip: %s", exc.errors(include_url=False))
        return None
