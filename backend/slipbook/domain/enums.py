from enum import StrEnum


class BetTypeCode(StrEnum):
    MONEYLINE = "ml"
    SPREAD = "sp"
    OVER_UNDER = "ou"
    YES_NO = "yn"
    EVEN_ODD = "eo"


class MainCategory(StrEnum):
    CORE_LINES = "core-lines"
    PLAYER_PROPS = "player-props"
    TEAM_PROPS = "team-props"
    GAME_PROPS = "game-props"


class WagerBetType(StrEnum):
    MONEYLINE = "moneyline"
    SPREAD = "spread"
    TOTAL = "total"
    PLAYER_PROP = "player_prop"
    GAME_PROP = "game_prop"


class WagerStatus(StrEnum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    VOID = "void"
    CANCELLED = "cancelled"


class GroupOutcome(StrEnum):
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"
    PENDING = "pending"


class SlipKind(StrEnum):
    SINGLE = "single"
    GROUP = "group"
