from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from slipbook.domain.enums import WagerStatus


class Base(DeclarativeBase):
    pass


class Game(Base):
    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    league: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    event_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    commence_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    home_team: Mapped[str] = mapped_column(Text, nullable=False)
    away_team: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    opening_quotes: Mapped[list[OpeningQuote]] = relationship(back_populates="game")
    current_quotes: Mapped[list[CurrentQuote]] = relationship(back_populates="game")


class OpeningQuote(Base):
    __tablename__ = "opening_quotes"
    __table_args__ = (UniqueConstraint("event_id", "market_id", name="uq_opening_quote"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False, index=True)
    event_id: Mapped[str] = mapped_column(Text, nullable=False)
    market_id: Mapped[str] = mapped_column(Text, nullable=False)
    market_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    line: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    game: Mapped[Game] = relationship(back_populates="opening_quotes")


class CurrentQuote(Base):
    __tablename__ = "current_quotes"
    __table_args__ = (UniqueConstraint("event_id", "market_id", name="uq_current_quote"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False, index=True)
    event_id: Mapped[str] = mapped_column(Text, nullable=False)
    market_id: Mapped[str] = mapped_column(Text, nullable=False)
    market_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    line: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Per-book prices and links for display only; selection never reads them.
    book_prices: Mapped[dict[str, object]] = mapped_column(JSON, nullable=False, default=dict)

    game: Mapped[Game] = relationship(back_populates="current_quotes")


class Wager(Base):
    __tablename__ = "wagers"
    __table_args__ = (
        Index("ix_wagers_user_status", "user_id", "status"),
        Index("ix_wagers_parlay_id", "parlay_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    external_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    sport: Mapped[str] = mapped_column(String(64), nullable=False)
    league: Mapped[str] = mapped_column(String(32), nullable=False)
    bet_type: Mapped[str] = mapped_column(String(16), nullable=False)
    bet_description: Mapped[str] = mapped_column(Text, nullable=False)
    odds: Mapped[int] = mapped_column(Integer, nullable=False)
    stake: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    potential_payout: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=WagerStatus.PENDING.value)
    profit: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    placed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    game_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    game_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    home_team: Mapped[str | None] = mapped_column(Text, nullable=True)
    away_team: Mapped[str | None] = mapped_column(Text, nullable=True)
    side: Mapped[str | None] = mapped_column(String(16), nullable=True)
    line_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)
    player_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    prop_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    market_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    sportsbook: Mapped[str | None] = mapped_column(Text, nullable=True)
    parlay_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_parlay: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class BettorAccount(Base):
    __tablename__ = "bettor_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    bettor_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    book_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PipelineRun(Base):
    __tablename__ = "pipeline_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    run_type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    leagues: Mapped[str] = mapped_column(Text, nullable=False, default="")
    stats_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
