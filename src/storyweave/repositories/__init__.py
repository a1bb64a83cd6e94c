"""Repositories wrapping database access."""

from .reputation_repo import ReputationRepository

__all__ = ["ReputationRepository"]
