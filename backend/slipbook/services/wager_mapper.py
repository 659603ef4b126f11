from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from slipbook.core.classifier import humanize_category
from slipbook.core.market_id import (
    ALL_TARGET,
    NAMED_PLAYER,
    NUMERIC_PLAYER,
    TEAM_TARGETS,
    is_over_under_market,
    parse_market_id,
)
from slipbook.domain.enums import BetTypeCode, WagerBetType, WagerStatus
from slipbook.domain.types import LegSelection

CENTS = Decimal("0.01")
GENERIC_LEAGUE = "OTHER"
GENERIC_PROP = "Prop"

LEAGUE_BY_SPORT = {
    "baseball_mlb": "MLB",
    "americanfootball_nfl": "NFL",
    "americanfootball_ncaaf": "NCAAF",
    "basketball_nba": "NBA",
    "basketball_wnba": "WNBA",
    "basketball_ncaab": "NCAAB",
    "icehockey_nhl": "NHL",
    "soccer_usa_mls": "MLS",
    "soccer_uefa_champs_league": "UEFA_CHAMPIONS_LEAGUE",
}
KNOWN_LEAGUES = frozenset(LEAGUE_BY_SPORT.values())

# Checked in order against the lowercased statistic token; first hit wins.
PROP_TYPES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("batting_hits",), "Hits"),
    (("batting_homeruns", "batting_homerun"), "Home Runs"),
    (("batting_rbi",), "RBIs"),
    (("batting_runs",), "Runs"),
    (("batting_totalbases",), "Total Bases"),
    (("batting_stolenbases",), "Stolen Bases"),
    (("batting_strikeouts",), "Strikeouts"),
    (("pitching_strikeouts",), "Strikeouts"),
    (("pitching_hits",), "Hits Allowed"),
    (("passing_yards",), "Passing Yards"),
    (("rushing_yards",), "Rushing Yards"),
    (("receiving_yards",), "Receiving Yards"),
    (("passing_touchdowns",), "Passing TDs"),
    (("rushing_touchdowns",), "Rushing TDs"),
    (("receiving_touchdowns",), "Receiving TDs"),
    (("rebounds",), "Rebounds"),
    (("assists",), "Assists"),
    (("points",), "Points"),
    (("goals",), "Goals"),
    (("saves",), "Saves"),
)

_SIDE_WORDS = ("over", "under", "home", "away")


@dataclass(slots=True)
class WagerDraft:
    user_id: str
    sport: str
    league: str
    bet_type: str
    bet_description: str
    odds: int
    stake: Decimal
    potential_payout: Decimal
    placed_at: datetime
    status: str = WagerStatus.PENDING.value
    profit: Decimal | None = None
    game_date: datetime | None = None
    game_id: str | None = None
    home_team: str | None = None
    away_team: str | None = None
    side: str | None = None
    line_value: Decimal | None = None
    player_name: str | None = None
    prop_type: str | None = None
    market_id: str | None = None
    sportsbook: str | None = None
    parlay_id: str | None = None
    is_parlay: bool = False

    def as_row(self) -> dict[str, object]:
        return asdict(self)


def to_cents(amount: float | Decimal) -> Decimal:
    return Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)


def league_for_sport(sport: str | None) -> str:
    if not sport:
        return GENERIC_LEAGUE
    key = sport.strip()
    if key.upper() in KNOWN_LEAGUES:
        return key.upper()
    return LEAGUE_BY_SPORT.get(key.lower(), GENERIC_LEAGUE)


def infer_bet_type(market_id: str) -> WagerBetType:
    parsed = parse_market_id(market_id)
    if parsed is None or parsed.is_player:
        return WagerBetType.PLAYER_PROP
    if parsed.bet_type == BetTypeCode.MONEYLINE:
        return WagerBetType.MONEYLINE
    if parsed.bet_type == BetTypeCode.SPREAD:
        return WagerBetType.SPREAD
    game_targets = TEAM_TARGETS | {ALL_TARGET}
    if is_over_under_market(market_id) and parsed.category == "points" and parsed.target in game_targets:
        return WagerBetType.TOTAL
    if parsed.target in game_targets:
        return WagerBetType.GAME_PROP
    return WagerBetType.PLAYER_PROP


def infer_side(market_id: str, selection: str | None = None) -> str | None:
    parsed = parse_market_id(market_id)
    if parsed is not None and parsed.side in _SIDE_WORDS:
        return parsed.side
    text = (selection or "").lower()
    for word in _SIDE_WORDS:
        if word in text:
            return word
    return None


def extract_player_name(market_id: str) -> str | None:
    parsed = parse_market_id(market_id)
    if parsed is None:
        return None
    if NAMED_PLAYER.match(parsed.target):
        # TYLER_FREEMAN_1_MLB -> Tyler Freeman
        name_parts = parsed.target.split("_")[:-2]
        return " ".join(part.capitalize() for part in name_parts if part)
    if NUMERIC_PLAYER.match(parsed.target):
        return f"Player {parsed.target}"
    return None


def extract_prop_type(market_id: str) -> str:
    parsed = parse_market_id(market_id)
    lowered = (parsed.category if parsed is not None else market_id).lower()
    for needles, label in PROP_TYPES:
        if any(needle in lowered for needle in needles):
            return label
    return GENERIC_PROP


def format_line(line: Decimal | None, signed: bool = False) -> str:
    if line is None:
        return ""
    text = format(line.normalize(), "f")
    if signed and line > 0:
        return f"+{text}"
    return text


def _team_for_side(selection: LegSelection, side: str | None) -> str:
    if selection.selection:
        return selection.selection
    if side == "home":
        return selection.home_team
    if side == "away":
        return selection.away_team
    return f"{selection.away_team} @ {selection.home_team}"


def describe_wager(selection: LegSelection, bet_type: WagerBetType, side: str | None) -> str:
    side_word = side.capitalize() if side in {"over", "under"} else None
    if bet_type is WagerBetType.MONEYLINE:
        return f"{_team_for_side(selection, side)} Moneyline"
    if bet_type is WagerBetType.SPREAD:
        return " ".join(filter(None, [_team_for_side(selection, side), format_line(selection.line, signed=True), "Spread"]))
    if bet_type is WagerBetType.TOTAL:
        matchup = f"{selection.away_team} @ {selection.home_team}"
        return " ".join(filter(None, [matchup, side_word, format_line(selection.line), "Total"]))
    if bet_type is WagerBetType.PLAYER_PROP:
        player = extract_player_name(selection.market_id) or "Player"
        return " ".join(filter(None, [player, side_word, format_line(selection.line), extract_prop_type(selection.market_id)]))
    parsed = parse_market_id(selection.market_id)
    label = humanize_category(parsed.category) if parsed is not None else selection.market_id
    return " ".join(filter(None, [label, side_word, format_line(selection.line)]))


def map_selection_to_wager(
    selection: LegSelection,
    user_id: str,
    stake: float | Decimal,
    potential_payout: float | Decimal,
    parlay_id: str | None = None,
    is_parlay: bool = False,
    placed_at: datetime | None = None,
) -> WagerDraft:
    bet_type = infer_bet_type(selection.market_id)
    side = infer_side(selection.market_id, selection.selection)
    is_prop = bet_type is WagerBetType.PLAYER_PROP
    return WagerDraft(
        user_id=user_id,
        sport=selection.sport,
        league=league_for_sport(selection.sport),
        bet_type=bet_type.value,
        bet_description=describe_wager(selection, bet_type, side),
        odds=int(selection.price),
        stake=to_cents(stake),
        potential_payout=to_cents(potential_payout),
        placed_at=placed_at or datetime.now(timezone.utc),
        game_date=selection.game_time,
        game_id=selection.event_id,
        home_team=selection.home_team,
        away_team=selection.away_team,
        side=side,
        line_value=selection.line,
        player_name=extract_player_name(selection.market_id) if is_prop else None,
        prop_type=extract_prop_type(selection.market_id) if is_prop else None,
        market_id=selection.market_id,
        sportsbook=selection.sportsbook,
        parlay_id=parlay_id,
        is_parlay=is_parlay,
    )


def map_feed_proposition(proposition: str | None) -> WagerBetType:
    text = (proposition or "").lower()
    if any(word in text for word in ("spread", "run line", "puck line")):
        return WagerBetType.SPREAD
    if "total" in text or "over/under" in text:
        return WagerBetType.TOTAL
    if "moneyline" in text or "money line" in text:
        return WagerBetType.MONEYLINE
    return WagerBetType.PLAYER_PROP


def map_feed_position(
    position: str | None,
    home_team: str | None = None,
    away_team: str | None = None,
) -> str | None:
    text = (position or "").strip().lower()
    if not text:
        return None
    for word in _SIDE_WORDS:
        if word in text:
            return word
    # Books often report the team name as the position.
    for side, team in (("home", home_team), ("away", away_team)):
        team_text = (team or "").strip().lower()
        if team_text and (text in team_text or team_text in text):
            return side
    return None
