"""create campaign tables

Revision ID: 0001_campaign_tables
Revises:
Create Date: 2026-10-19

Campaigns, per-slot outcome sets with their rotation sequences, outcomes,
and draw history (results with one pick per slot).

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_campaign_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "campaigns",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("game_type", sa.String(length=20), nullable=False),
        sa.Column("total_winners", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Integer(), nullable=True),
        sa.Column("current_winners", sa.Integer(), nullable=False),
        sa.Column("current_spent", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_campaigns"),
    )
    op.create_index("ix_campaigns_game_type", "campaigns", ["game_type"])

    op.create_table(
        "outcome_sets",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("campaign_id", ID_TYPE, nullable=False),
        sa.Column("slot", sa.Integer(), nullable=False),
        sa.Column("rotation_sequence", sa.JSON(), nullable=False),
        sa.Column("current_sequence_index", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["campaign_id"],
            ["campaigns.id"],
            name="fk_outcome_sets_campaign_id_campaigns",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_outcome_sets"),
        sa.UniqueConstraint("campaign_id", "slot", name="uq_outcome_sets_campaign_id"),
    )
    op.create_index("ix_outcome_sets_campaign_id", "outcome_sets", ["campaign_id"])

    op.create_table(
        "outcomes",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("campaign_id", ID_TYPE, nullable=False),
        sa.Column("outcome_set_id", ID_TYPE, nullable=False),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(length=32), nullable=True),
        sa.Column("max_wins", sa.Integer(), nullable=True),
        sa.Column("current_wins", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["campaign_id"],
            ["campaigns.id"],
            name="fk_outcomes_campaign_id_campaigns",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["outcome_set_id"],
            ["outcome_sets.id"],
            name="fk_outcomes_outcome_set_id_outcome_sets",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_outcomes"),
        sa.UniqueConstraint("outcome_set_id", "order", name="uq_outcomes_outcome_set_id"),
    )
    op.create_index("ix_outcomes_campaign_id", "outcomes", ["campaign_id"])
    op.create_index("ix_outcomes_outcome_set_id", "outcomes", ["outcome_set_id"])

    op.create_table(
        "draw_results",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("campaign_id", ID_TYPE, nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["campaign_id"],
            ["campaigns.id"],
            name="fk_draw_results_campaign_id_campaigns",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_draw_results"),
    )
    op.create_index("ix_draw_results_campaign_id", "draw_results", ["campaign_id"])
    op.create_index(
        "ix_draw_results_campaign_timestamp", "draw_results", ["campaign_id", "timestamp"]
    )

    op.create_table(
        "draw_picks",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("draw_result_id", ID_TYPE, nullable=False),
        sa.Column("slot", sa.Integer(), nullable=False),
        sa.Column("outcome_id", ID_TYPE, nullable=True),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=True),
        sa.Column("sequence_position", sa.Integer(), nullable=True),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(
            ["draw_result_id"],
            ["draw_results.id"],
            name="fk_draw_picks_draw_result_id_draw_results",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["outcome_id"],
            ["outcomes.id"],
            name="fk_draw_picks_outcome_id_outcomes",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_draw_picks"),
    )
    op.create_index("ix_draw_picks_draw_result_id", "draw_picks", ["draw_result_id"])
    op.create_index("ix_draw_picks_outcome_id", "draw_picks", ["outcome_id"])


def downgrade() -> None:
    op.drop_index("ix_draw_picks_outcome_id", table_name="draw_picks")
    op.drop_index("ix_draw_picks_draw_result_id", table_name="draw_picks")
    op.drop_table("draw_picks")
    op.drop_index("ix_draw_results_campaign_timestamp", table_name="draw_results")
    op.drop_index("ix_draw_results_campaign_id", table_name="draw_results")
    op.drop_table("draw_results")
    op.drop_index("ix_outcomes_outcome_set_id", table_name="outcomes")
    op.drop_index("ix_outcomes_campaign_id", table_name="outcomes")
    op.drop_table("outcomes")
    op.drop_index("ix_outcome_sets_campaign_id", table_name="outcome_sets")
    op.drop_table("outcome_sets")
    op.drop_index("ix_campaigns_game_type", table_name="campaigns")
    op.drop_table("campaigns")
