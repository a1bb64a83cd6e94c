# src/storyweave/schemas/__init__.py
"""
Pydantic schemas for engine records and API request/response models.
"""

from .requests import ContentVoteCreate, SessionVoteCreate, SubmissionCreate
from .story import StoryPassageResponse
from .session import (
    SessionResults,
    SessionStatus,
    StoryVotingStats,
    SubmissionTally,
    VotingSession,
)
from .submission import Submission, SubmissionReceipt, SubmissionStatus
from .votes import ContentVote, ContentVoteKind, SessionVote, SessionVoteKind, VotingMetrics

__all__ = [
    "ContentVote", "ContentVoteCreate", "ContentVoteKind",
    "SessionResults", "SessionStatus", "SessionVote", "SessionVoteCreate", "SessionVoteKind",
    "StoryPassageResponse", "StoryVotingStats", "Submission", "SubmissionCreate", "SubmissionReceipt",
    "SubmissionStatus", "SubmissionTally",
    "VotingMetrics", "VotingSession",
]
