from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import TypeVar

from slipbook.core.market_id import ALL_TARGET, FULL_GAME_PERIOD, TEAM_TARGETS, parse_market_id
from slipbook.domain.enums import BetTypeCode, MainCategory
from slipbook.domain.types import MarketClassification, ParsedMarketId

T = TypeVar("T")
V = TypeVar("V")

FALLBACK_BUCKET = "all"
TEAM_TOTALS = "Team Totals"
GAME_TOTALS = "Game Totals"

# League codes and feed sport keys both resolve to one family name.
_SPORT_FAMILIES = {
    "mlb": "baseball",
    "baseball_mlb": "baseball",
    "nfl": "football",
    "ncaaf": "football",
    "americanfootball_nfl": "football",
    "americanfootball_ncaaf": "football",
    "nba": "basketball",
    "wnba": "basketball",
    "ncaab": "basketball",
    "basketball_nba": "basketball",
    "basketball_wnba": "basketball",
    "basketball_ncaab": "basketball",
    "nhl": "hockey",
    "icehockey_nhl": "hockey",
    "mls": "soccer",
    "uefa_champions_league": "soccer",
    "soccer_usa_mls": "soccer",
    "soccer_uefa_champs_league": "soccer",
}

_SPREAD_NAMES = {"baseball": "Run Line", "hockey": "Puck Line"}

_Rule = tuple[Callable[[str], bool], str]
_MarketRule = tuple[Callable[[ParsedMarketId], bool], str]


def _prefix(*prefixes: str) -> Callable[[str], bool]:
    return lambda category: category.startswith(prefixes)


def _one_of(*names: str) -> Callable[[str], bool]:
    members = frozenset(names)
    return lambda category: category in members


def _stat(predicate: Callable[[str], bool]) -> Callable[[ParsedMarketId], bool]:
    return lambda parsed: predicate(parsed.category)


def _partial_period(parsed: ParsedMarketId) -> bool:
    return parsed.period != FULL_GAME_PERIOD


def _even_odd(parsed: ParsedMarketId) -> bool:
    return parsed.bet_type == BetTypeCode.EVEN_ODD


_PLAYER_SUB_RULES: dict[str, list[_Rule]] = {
    "baseball": [
        (_prefix("batting_"), "Hitters"),
        (_one_of("points", "fantasyScore", "firstToScore", "lastToScore"), "Hitters"),
        (_prefix("pitching_"), "Pitchers"),
    ],
    "football": [
        (_prefix("passing_"), "Quarterback"),
        (_one_of("defense_interceptions"), "Quarterback"),
        (_prefix("rushing_"), "Running Back"),
        (_prefix("receiving_"), "Wide Receiver/Tight End"),
        (_prefix("kicking_", "fieldGoals_", "extraPoints_", "defense_"), "Kicker/Defense"),
    ],
    "basketball": [
        (_one_of("points"), "Scoring"),
        (_prefix("fieldGoals_", "threePointers_", "freeThrows_"), "Scoring"),
        (_prefix("rebounds"), "Rebounding"),
        (_one_of("assists", "turnovers", "steals", "blocks"), "Playmaking"),
        (lambda category: "+" in category, "Combo Props"),
        (_one_of("doubleDouble", "tripleDouble", "fantasyScore"), "Combo Props"),
    ],
    "hockey": [
        (_one_of("goals", "assists", "points", "shots_onGoal", "hits", "blockedShots"), "Skaters"),
        (_one_of("saves", "goalsAgainst", "savePercentage", "shutout"), "Goalies"),
    ],
    "soccer": [
        (_one_of("goals", "shots", "shots_onTarget", "assists"), "Forwards"),
        (_one_of("passesCompleted", "passCompletionPercentage", "tackles"), "Midfielders"),
        (_one_of("clearances", "blocks", "interceptions"), "Defenders"),
        (_one_of("saves", "goalsConceded", "cleanSheet"), "Goalkeepers"),
    ],
}

_PLAYER_SUB_SUB_RULES: dict[tuple[str, str], list[_Rule]] = {
    ("baseball", "Hitters"): [
        (
            _one_of(
                "batting_hits",
                "batting_homeRuns",
                "batting_RBI",
                "batting_totalBases",
                "batting_singles",
                "batting_doubles",
                "batting_triples",
            ),
            "Offense",
        ),
        (_one_of("batting_strikeouts", "batting_basesOnBalls"), "Discipline"),
        (_one_of("batting_stolenBases"), "Speed"),
    ],
    ("football", "Quarterback"): [
        (_prefix("passing_"), "Passing"),
        (_prefix("rushing_"), "Rushing"),
    ],
    ("football", "Running Back"): [
        (_prefix("rushing_"), "Rushing"),
        (_prefix("receiving_"), "Receiving"),
    ],
    ("basketball", "Scoring"): [
        (_one_of("points"), "Points"),
        (_prefix("fieldGoals_"), "Field Goals"),
        (_prefix("threePointers_"), "Three Pointers"),
        (_prefix("freeThrows_"), "Free Throws"),
    ],
    ("basketball", "Rebounding"): [
        (_one_of("rebounds"), "Total"),
        (_one_of("rebounds_offensive"), "Offensive"),
        (_one_of("rebounds_defensive"), "Defensive"),
    ],
    ("basketball", "Playmaking"): [
        (_one_of("assists"), "Assists"),
        (_one_of("steals", "blocks"), "Defense"),
        (_one_of("turnovers"), "Turnovers"),
    ],
}

# Families without a table put every team prop under Team Totals and every
# game prop under Game Totals.
_TEAM_SUB_RULES: dict[str, list[_MarketRule]] = {
    "basketball": [
        (_stat(_one_of("points", "firstToScore", "lastToScore")), "Offense"),
        (_stat(_prefix("threePointers")), "Offense"),
        (_stat(_prefix("rebounds")), "Defense"),
        (_stat(_one_of("steals", "blocks")), "Defense"),
        (_stat(_one_of("assists", "turnovers")), "Playmaking"),
    ],
}

_GAME_SUB_RULES: dict[str, list[_MarketRule]] = {
    "basketball": [
        (_partial_period, "Quarter Props"),
        (_even_odd, "Game Specials"),
        (_stat(_one_of("overtime", "highestScoringQuarter", "lowestScoringQuarter")), "Game Specials"),
    ],
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_WORD_START = re.compile(r"\b\w")


def sport_family(sport_key: str | None) -> str | None:
    if not sport_key:
        return None
    return _SPORT_FAMILIES.get(sport_key.strip().lower())


def _first_match(
    rules: Iterable[tuple[Callable[[V], bool], str]],
    value: V,
    fallback: str = FALLBACK_BUCKET,
) -> str:
    for predicate, bucket in rules:
        if predicate(value):
            return bucket
    return fallback


def is_core_line(parsed: ParsedMarketId) -> bool:
    if parsed.period != FULL_GAME_PERIOD:
        return False
    if parsed.target in TEAM_TARGETS:
        return parsed.bet_type in {BetTypeCode.MONEYLINE, BetTypeCode.SPREAD}
    return parsed.target == ALL_TARGET and parsed.bet_type == BetTypeCode.OVER_UNDER


def classify_main_category(parsed: ParsedMarketId) -> MainCategory:
    if is_core_line(parsed):
        return MainCategory.CORE_LINES
    if parsed.is_player:
        return MainCategory.PLAYER_PROPS
    if parsed.target in TEAM_TARGETS:
        return MainCategory.TEAM_PROPS
    return MainCategory.GAME_PROPS


def _core_line_bucket(parsed: ParsedMarketId, family: str | None) -> str:
    if parsed.bet_type == BetTypeCode.MONEYLINE:
        return "Moneyline"
    if parsed.bet_type == BetTypeCode.SPREAD:
        return _SPREAD_NAMES.get(family or "", "Spread")
    return "Total"


def humanize_category(category: str) -> str:
    words = _CAMEL_BOUNDARY.sub(" ", category.replace("_", " "))
    words = " ".join(words.split())
    return _WORD_START.sub(lambda match: match.group(0).upper(), words)


def market_display_name(parsed: ParsedMarketId) -> str:
    name = humanize_category(parsed.category)
    if parsed.bet_type in {BetTypeCode.OVER_UNDER, BetTypeCode.YES_NO}:
        name = f"{name} {parsed.side[:1].upper()}{parsed.side[1:]}"
    return name


def classify_market(parsed: ParsedMarketId | None, sport_key: str | None) -> MarketClassification | None:
    """Place a parsed market into the main / sub / sub-sub display hierarchy.

    Yes/no markets and unparseable identifiers have no place in the hierarchy
    and return ``None``. Every other identifier lands in some bucket, falling
    back to ``"all"`` when a sport has no table for its statistic.
    """
    if parsed is None or parsed.excluded:
        return None

    family = sport_family(sport_key)
    main = classify_main_category(parsed)
    sub = FALLBACK_BUCKET
    sub_sub = FALLBACK_BUCKET

    if main is MainCategory.CORE_LINES:
        sub = _core_line_bucket(parsed, family)
    elif main is MainCategory.TEAM_PROPS:
        sub = _first_match(_TEAM_SUB_RULES.get(family or "", []), parsed, TEAM_TOTALS)
    elif main is MainCategory.GAME_PROPS:
        sub = _first_match(_GAME_SUB_RULES.get(family or "", []), parsed, GAME_TOTALS)
    elif family is not None:
        sub = _first_match(_PLAYER_SUB_RULES.get(family, []), parsed.category)
        sub_sub = _first_match(_PLAYER_SUB_SUB_RULES.get((family, sub), []), parsed.category)

    return MarketClassification(
        main_category=main,
        sub_category=sub,
        sub_sub_category=sub_sub,
        display_name=market_display_name(parsed),
    )


def classify_market_id(market_id: str, sport_key: str | None) -> MarketClassification | None:
    return classify_market(parse_market_id(market_id), sport_key)


def organize_by_hierarchy(
    items: Iterable[T],
    sport_key: str | None,
    market_id_of: Callable[[T], str],
) -> dict[str, dict[str, dict[str, list[T]]]]:
    organized: dict[str, dict[str, dict[str, list[T]]]] = {main.value: {} for main in MainCategory}
    for item in items:
        classification = classify_market_id(market_id_of(item), sport_key)
        if classification is None:
            continue
        bucket = organized[classification.main_category.value]
        bucket.setdefault(classification.sub_category, {}).setdefault(
            classification.sub_sub_category, []
        ).append(item)
    for main, subs in organized.items():
        if not subs:
            organized[main] = {FALLBACK_BUCKET: {FALLBACK_BUCKET: []}}
    return organized
