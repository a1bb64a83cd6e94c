# src/storyweave/models/__init__.py
"""SQLAlchemy models for the StoryWeave engine."""

from .reputation import ReputationRecord
from .story_passage import StoryPassage

__all__ = [
    "ReputationRecord",
    "StoryPassage",
]
