# src/storyweave/services/__init__.py
"""Business logic services for the StoryWeave voting engine."""

from .content_votes import ContentVoteService
from .engine import VotingEngine, get_engine
from .intake import SubmissionIntake
from .voting_sessions import VotingSessionManager
from .weights import WeightCalculator

__all__ = [
    "ContentVoteService",
    "SubmissionIntake",
    "VotingEngine",
    "VotingSessionManager",
    "WeightCalculator",
    "get_engine",
]
