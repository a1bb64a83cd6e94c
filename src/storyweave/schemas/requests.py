# src/storyweave/schemas/requests.py
"""Request bodies accepted by the HTTP API."""

from pydantic import BaseModel, Field

from .votes import ContentVoteKind, SessionVoteKind


class SubmissionCreate(BaseModel):
    """Schema for proposing a passage for a story position."""

    story_id: str = Field(..., min_length=1, max_length=128)
    position: int = Field(..., ge=0)
    content: str
    community_id: str | None = Field(None, max_length=128)


class SessionVoteCreate(BaseModel):
    """Schema for voting on a submission inside a voting session."""

    submission_id: str
    kind: SessionVoteKind = Field(..., description="approve, reject or neutral")


class ContentVoteCreate(BaseModel):
    """Schema for voting on standing content."""

    kind: ContentVoteKind = Field(..., description="upvote, downvote, quality or creative")
    author_id: str | None = Field(
        None,
        description="Author of the content; credited in reputation when given",
    )
    community_id: str | None = Field(None, max_length=128)

