# src/storyweave/models/story_passage.py
"""Accepted story passages written by the default story ledger."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storyweave.db.session import Base
from storyweave.db.time import utcnow


class StoryPassage(Base):
    """A passage accepted into a story at a given insertion slot."""

    __tablename__ = "story_passage"
    __table_args__ = (
        # A position is filled exactly once.
        UniqueConstraint("story_id", "position", name="uq_story_passage_position"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    story_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    author_id: Mapped[str] = mapped_column(String(128), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    appended_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
