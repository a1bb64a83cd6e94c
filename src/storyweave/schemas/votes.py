# src/storyweave/schemas/votes.py
"""Vote records and derived voting metrics.

Standing content and voting sessions use two separate vote variants so that
a session can never receive an ``upvote`` and a content item can never be
``approved``. Each kind maps to a polarity: +1 counts for the target, -1
against it and 0 is recorded without moving the score.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field

MIN_WEIGHT: Final[float] = 0.1
MAX_WEIGHT: Final[float] = 10.0


class ContentVoteKind(str, Enum):
    """Vote kinds accepted on standing content."""

    UPVOTE = "upvote"
    DOWNVOTE = "downvote"
    QUALITY = "quality"
    CREATIVE = "creative"

    @property
    def polarity(self) -> int:
        return CONTENT_POLARITY[self]


class SessionVoteKind(str, Enum):
    """Vote kinds accepted inside a voting session."""

    APPROVE = "approve"
    REJECT = "reject"
    NEUTRAL = "neutral"

    @property
    def polarity(self) -> int:
        return SESSION_POLARITY[self]


CONTENT_POLARITY: Final[dict[ContentVoteKind, int]] = {
    ContentVoteKind.UPVOTE: 1,
    ContentVoteKind.DOWNVOTE: -1,
    ContentVoteKind.QUALITY: 1,
    ContentVoteKind.CREATIVE: 1,
}

SESSION_POLARITY: Final[dict[SessionVoteKind, int]] = {
    SessionVoteKind.APPROVE: 1,
    SessionVoteKind.REJECT: -1,
    SessionVoteKind.NEUTRAL: 0,
}


class ContentVote(BaseModel):
    """A weighted vote on a standing content item."""

    model_config = ConfigDict(frozen=True)

    id: str
    voter_id: str
    target_id: str
    weight: float = Field(..., ge=MIN_WEIGHT, le=MAX_WEIGHT)
    kind: ContentVoteKind
    timestamp: datetime


class SessionVote(BaseModel):
    """A weighted vote for one submission inside a voting session.

    The weight is frozen at cast time; later reputation changes never alter
    a stored vote.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    voter_id: str
    session_id: str
    submission_id: str
    weight: float = Field(..., ge=MIN_WEIGHT, le=MAX_WEIGHT)
    kind: SessionVoteKind
    timestamp: datetime


class VotingMetrics(BaseModel):
    """Metrics derived from the full vote set of one content item."""

    model_config = ConfigDict(frozen=True)

    total_votes: int = 0
    weighted_score: float = 0.0
    quality_rating: float = 5.0
    controversy_score: float = 0.0
    hidden_below_threshold: bool = False
