# src/storyweave/models/reputation.py
"""Per-community reputation records used to derive vote weights."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from storyweave.db.session import Base
from storyweave.db.time import utcnow

DEFAULT_REPUTATION = 100.0
DEFAULT_PARTICIPATION_DAYS = 1
NEUTRAL_QUALITY_RATING = 5.0


class ReputationRecord(Base):
    """Reputation state for one user inside one community.

    Records are created lazily and never deleted; reputation may decay toward
    zero but the row persists.
    """

    __tablename__ = "reputation_record"
    __table_args__ = (
        CheckConstraint("reputation >= 0", name="ck_reputation_non_negative"),
        CheckConstraint("participation_days >= 1", name="ck_reputation_participation"),
        CheckConstraint(
            "quality_rating >= 0 AND quality_rating <= 10",
            name="ck_reputation_quality_range",
        ),
    )

    # Composite primary key keeps exactly one record per (user, community).
    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    community_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    reputation: Mapped[float] = mapped_column(Float, nullable=False, default=DEFAULT_REPUTATION)
    total_votes_cast: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Running mean of the polarity (+1, 0, -1) of votes this user has cast.
    average_vote_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    votes_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    participation_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PARTICIPATION_DAYS,
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    quality_rating: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=NEUTRAL_QUALITY_RATING,
    )
