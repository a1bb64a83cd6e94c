# src/storyweave/schemas/submission.py
"""Submission records and intake receipts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Submission(BaseModel):
    """A proposed passage for one insertion slot of a story. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str
    story_id: str
    position: int = Field(..., ge=0)
    author_id: str
    content: str
    submitted_at: datetime
    community_id: str


class SubmissionStatus(str, Enum):
    """Terminal status returned to the caller of ``submit``."""

    ACCEPTED = "accepted"
    QUEUED_FOR_VOTING = "queued_for_voting"
    CONFLICT_DETECTED = "conflict_detected"


class SubmissionReceipt(BaseModel):
    """Outcome of a single ``submit`` call."""

    status: SubmissionStatus
    submission_id: str
    session_id: str | None = None
