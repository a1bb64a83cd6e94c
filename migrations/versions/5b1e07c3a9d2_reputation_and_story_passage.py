"""reputation and story passage

Revision ID: 5b1e07c3a9d2
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b1e07c3a9d2"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create reputation and story passage tables."""
    op.create_table(
        "reputation_record",
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("community_id", sa.String(length=128), nullable=False),
        sa.Column("reputation", sa.Float(), nullable=False),
        sa.Column("total_votes_cast", sa.Integer(), nullable=False),
        sa.Column("average_vote_score", sa.Float(), nullable=False),
        sa.Column("votes_received", sa.Integer(), nullable=False),
        sa.Column("participation_days", sa.Integer(), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quality_rating", sa.Float(), nullable=False),
        sa.CheckConstraint("reputation >= 0", name="ck_reputation_non_negative"),
        sa.CheckConstraint("participation_days >= 1", name="ck_reputation_participation"),
        sa.CheckConstraint(
            "quality_rating >= 0 AND quality_rating <= 10",
            name="ck_reputation_quality_range",
        ),
        sa.PrimaryKeyConstraint("user_id", "community_id"),
    )
    op.create_table(
        "story_passage",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            nullable=False,
        ),
        sa.Column("story_id", sa.String(length=128), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("author_id", sa.String(length=128), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("appended_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("story_id", "position", name="uq_story_passage_position"),
    )
    op.create_index(
        op.f("ix_story_passage_story_id"), "story_passage", ["story_id"], unique=False
    )


def downgrade() -> None:
    """Drop reputation and story passage tables."""
    op.drop_index(op.f("ix_story_passage_story_id"), table_name="story_passage")
    op.drop_table("story_passage")
    op.drop_table("reputation_record")
