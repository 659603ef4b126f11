"""initial quote and wager schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-01 00:00:00

"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("league", sa.String(length=32), nullable=False),
        sa.Column("event_id", sa.Text(), nullable=False, unique=True),
        sa.Column("commence_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("home_team", sa.Text(), nullable=False),
        sa.Column("away_team", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_games_league", "games", ["league"])

    for table_name, constraint in (
        ("opening_quotes", "uq_opening_quote"),
        ("current_quotes", "uq_current_quote"),
    ):
        columns = [
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
            sa.Column("event_id", sa.Text(), nullable=False),
            sa.Column("market_id", sa.Text(), nullable=False),
            sa.Column("market_name", sa.Text(), nullable=True),
            sa.Column("source_name", sa.Text(), nullable=False),
            sa.Column("price", sa.Integer(), nullable=False),
            sa.Column("line", sa.Numeric(10, 3), nullable=True),
            sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        ]
        if table_name == "current_quotes":
            columns.append(sa.Column("book_prices", sa.JSON(), nullable=False))
        op.create_table(
            table_name,
            *columns,
            sa.UniqueConstraint("event_id", "market_id", name=constraint),
        )
        op.create_index(f"ix_{table_name}_game_id", table_name, ["game_id"])

    op.create_table(
        "wagers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=False, unique=True),
        sa.Column("sport", sa.String(length=64), nullable=False),
        sa.Column("league", sa.String(length=32), nullable=False),
        sa.Column("bet_type", sa.String(length=16), nullable=False),
        sa.Column("bet_description", sa.Text(), nullable=False),
        sa.Column("odds", sa.Integer(), nullable=False),
        sa.Column("stake", sa.Numeric(12, 2), nullable=False),
        sa.Column("potential_payout", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("profit", sa.Numeric(12, 2), nullable=True),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("game_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("game_id", sa.Text(), nullable=True),
        sa.Column("home_team", sa.Text(), nullable=True),
        sa.Column("away_team", sa.Text(), nullable=True),
        sa.Column("side", sa.String(length=16), nullable=True),
        sa.Column("line_value", sa.Numeric(10, 3), nullable=True),
        sa.Column("player_name", sa.Text(), nullable=True),
        sa.Column("prop_type", sa.Text(), nullable=True),
        sa.Column("market_id", sa.Text(), nullable=True),
        sa.Column("sportsbook", sa.Text(), nullable=True),
        sa.Column("parlay_id", sa.String(length=64), nullable=True),
        sa.Column("is_parlay", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_wagers_user_status", "wagers", ["user_id", "status"])
    op.create_index("ix_wagers_parlay_id", "wagers", ["parlay_id"])

    op.create_table(
        "bettor_accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("bettor_id", sa.String(length=128), nullable=False, unique=True),
        sa.Column("book_name", sa.Text(), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_bettor_accounts_user_id", "bettor_accounts", ["user_id"])

    op.create_table(
        "pipeline_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("run_type", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("leagues", sa.Text(), nullable=False, server_default=""),
        sa.Column("stats_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("pipeline_runs")
    op.drop_index("ix_bettor_accounts_user_id", table_name="bettor_accounts")
    op.drop_table("bettor_accounts")
    op.drop_index("ix_wagers_parlay_id", table_name="wagers")
    op.drop_index("ix_wagers_user_status", table_name="wagers")
    op.drop_table("wagers")
    op.drop_index("ix_current_quotes_game_id", table_name="current_quotes")
    op.drop_table("current_quotes")
    op.drop_index("ix_opening_quotes_game_id", table_name="opening_quotes")
    op.drop_table("opening_quotes")
    op.drop_index("ix_games_league", table_name="games")
    op.drop_table("games")
