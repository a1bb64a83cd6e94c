# src/storyweave/schemas/session.py
"""Voting session state and the result views derived from it."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .submission import Submission
from .votes import SessionVote


class SessionStatus(str, Enum):
    """Lifecycle states of a voting session; ``completed`` and ``expired`` are terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.ACTIVE


class VotingSession(BaseModel):
    """Arbitration between competing submissions for one story position."""

    id: str
    story_id: str
    position: int
    community_id: str
    submissions: list[Submission] = Field(..., min_length=2)
    votes: list[SessionVote] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime
    expires_at: datetime
    required_votes: int
    winning_submission_id: str | None = None

    def submission(self, submission_id: str) -> Submission | None:
        """Return the submission with ``submission_id`` if it belongs to this session."""
        for submission in self.submissions:
            if submission.id == submission_id:
                return submission
        return None


class SubmissionTally(BaseModel):
    """Per-submission score inside a session."""

    submission_id: str
    author_id: str
    score: float
    approvals: int
    rejections: int
    neutral: int


class SessionResults(BaseModel):
    """Read view of a voting session returned by ``get_session_results``."""

    session_id: str
    story_id: str
    position: int
    status: SessionStatus
    required_votes: int
    total_votes: int
    created_at: datetime
    expires_at: datetime
    leading_submission_id: str | None = None
    winning_submission_id: str | None = None
    tallies: list[SubmissionTally]


class StoryVotingStats(BaseModel):
    """Aggregate voting statistics for one story."""

    story_id: str
    total_sessions: int = 0
    active_sessions: int = 0
    completed_sessions: int = 0
    expired_sessions: int = 0
    total_votes: int = 0
    unique_winners: int = 0
    average_votes_per_session: float = 0.0
