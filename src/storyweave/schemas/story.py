# src/storyweave/schemas/story.py
"""Story passage response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class StoryPassageResponse(BaseModel):
    """Schema for an accepted passage of a story."""

    model_config = ConfigDict(from_attributes=True)

    story_id: str
    position: int
    author_id: str
    content: str
    appended_at: datetime
