"""Facade wiring the voting engine components together.

``VotingEngine`` exposes the operations the rest of the application uses:
``submit``, ``vote``, ``get_session_results``, ``get_voting_metrics``,
``is_hidden`` and ``process_expired_sessions``, plus content voting and
per-story statistics.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.orm import Session

from storyweave.db.session import SessionLocal
from storyweave.db.time import Clock, utcnow
from storyweave.repositories.reputation_repo import ReputationRepository
from storyweave.schemas.session import SessionResults, StoryVotingStats
from storyweave.schemas.submission import SubmissionReceipt
from storyweave.schemas.votes import ContentVoteKind, SessionVoteKind, VotingMetrics
from storyweave.services.collaborators import (
    Notifier,
    SqlStoryLedger,
    StoryAppender,
    VisibilityHook,
    build_notifier,
)
from storyweave.services.content_votes import ContentVoteService
from storyweave.services.intake import SubmissionIntake
from storyweave.services.voting_sessions import VotingSessionManager
from storyweave.services.weights import WeightCalculator
from storyweave.storage.kv import KeyValueStore, get_kv_store


class VotingEngine:
    """Single entry point over intake, sessions and content votes."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        store: KeyValueStore | None = None,
        appender: StoryAppender | None = None,
        notifier: Notifier | None = None,
        visibility: VisibilityHook | None = None,
        clock: Clock = utcnow,
        debounce_seconds: float | None = None,
        window_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
    ) -> None:
        self.store = store or get_kv_store()
        self._db = session_factory()
        self.reputation = ReputationRepository(self._db)
        self.weights = WeightCalculator(self.reputation, clock=clock)
        self.notifier = notifier or build_notifier()
        self.sessions = VotingSessionManager(
            self.store,
            self.weights,
            self.reputation,
            appender or SqlStoryLedger(session_factory),
            self.notifier,
            clock=clock,
            window_seconds=window_seconds,
        )
        self.intake = SubmissionIntake(
            self.store,
            self.sessions,
            clock=clock,
            debounce_seconds=debounce_seconds,
            poll_interval_seconds=poll_interval_seconds,
        )
        self.content_votes = ContentVoteService(
            self.store,
            self.weights,
            self.reputation,
            visibility=visibility,
            clock=clock,
        )

    async def submit(
        self,
        story_id: str,
        position: int,
        author_id: str,
        content: str,
        *,
        community_id: str | None = None,
    ) -> SubmissionReceipt:
        return await self.intake.submit(
            story_id, position, author_id, content, community_id=community_id
        )

    async def vote(
        self,
        session_id: str,
        submission_id: str,
        voter_id: str,
        kind: SessionVoteKind | str,
    ) -> SessionResults:
        return await self.sessions.vote(session_id, submission_id, voter_id, kind)

    async def get_session_results(self, session_id: str) -> SessionResults:
        return await self.sessions.get_session_results(session_id)

    async def process_expired_sessions(self) -> list[str]:
        return await self.sessions.process_expired_sessions()

    async def story_stats(self, story_id: str) -> StoryVotingStats:
        return await self.sessions.story_stats(story_id)

    async def cast_content_vote(
        self,
        target_id: str,
        voter_id: str,
        kind: ContentVoteKind | str,
        *,
        community_id: str | None = None,
        author_id: str | None = None,
    ) -> VotingMetrics:
        return await self.content_votes.cast(
            target_id, voter_id, kind, community_id=community_id, author_id=author_id
        )

    async def remove_content_vote(
        self,
        target_id: str,
        voter_id: str,
        *,
        community_id: str | None = None,
        author_id: str | None = None,
    ) -> VotingMetrics:
        return await self.content_votes.remove(
            target_id, voter_id, community_id=community_id, author_id=author_id
        )

    async def get_voting_metrics(self, target_id: str) -> VotingMetrics:
        return await self.content_votes.metrics(target_id)

    async def is_hidden(self, target_id: str) -> bool:
        return await self.content_votes.is_hidden(target_id)

    async def aclose(self) -> None:
        """Release the database session and any notifier connections."""
        close = getattr(self.notifier, "close", None)
        if close is not None:
            await close()
        self._db.close()


_ENGINE: VotingEngine | None = None


def get_engine() -> VotingEngine:
    """Return the process-wide engine built from configuration."""
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = VotingEngine(SessionLocal)
    return _ENGINE


async def shutdown_engine() -> None:
    """Close and forget the process-wide engine, if one was built."""
    global _ENGINE
    if _ENGINE is not None:
        await _ENGINE.aclose()
        _ENGINE = None
