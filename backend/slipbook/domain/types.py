from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from slipbook.domain.enums import MainCategory


@dataclass(frozen=True, slots=True)
class ParsedMarketId:
    raw: str
    category: str
    target: str
    period: str
    bet_type: str
    side: str
    is_player: bool
    excluded: bool


@dataclass(frozen=True, slots=True)
class MarketClassification:
    main_category: MainCategory
    sub_category: str
    sub_sub_category: str
    display_name: str


@dataclass(frozen=True, slots=True)
class Quote:
    event_id: str
    source_name: str
    market_id: str
    price: int
    observed_at: datetime
    line: Decimal | None = None
    link: str | None = None

    def __post_init__(self) -> None:
        if not self.event_id.strip():
            raise ValueError("event_id must not be empty")
        if not self.source_name.strip():
            raise ValueError("source_name must not be empty")


@dataclass(frozen=True, slots=True)
class LegSelection:
    market_id: str
    event_id: str
    sport: str
    home_team: str
    away_team: str
    game_time: datetime
    price: int
    line: Decimal | None = None
    selection: str | None = None
    sportsbook: str = "slipbook"

    def __post_init__(self) -> None:
        if not self.market_id.strip():
            raise ValueError("market_id must not be empty")
        if not self.event_id.strip():
            raise ValueError("event_id must not be empty")
