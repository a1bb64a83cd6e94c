"""Voting sessions arbitrating competing submissions for one story position.

A session moves from ``active`` to ``completed`` when quorum is reached with a
single positive-score leader, or to ``expired`` once its deadline passes. The
deadline is checked lazily on every access path; ``process_expired_sessions``
is only a sweep over the same check.

Session documents are read-modify-written under a per-session lock. Appending
the winner to the story is additionally guarded by an atomic set-if-absent
marker on the story position, so the append happens at most once even when
several processes share the store.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import defaultdict
from collections.abc import Sequence
from datetime import timedelta

from pydantic import ValidationError as SchemaError

from storyweave.core.errors import (
    ConflictError,
    EngineError,
    SessionNotFoundError,
    StorageError,
    ValidationError,
)
from storyweave.core.settings import settings
from storyweave.db.time import Clock, utcnow
from storyweave.repositories.reputation_repo import ReputationRepository
from storyweave.schemas.session import (
    SessionResults,
    SessionStatus,
    StoryVotingStats,
    VotingSession,
)
from storyweave.schemas.submission import Submission
from storyweave.schemas.votes import SessionVote, SessionVoteKind
from storyweave.services import scoring
from storyweave.services.collaborators import (
    NotificationEvent,
    Notifier,
    StoryAppender,
    dispatch_notification,
)
from storyweave.services.locks import KeyedLock
from storyweave.services.validation import parse_kind
from storyweave.services.weights import WeightCalculator
from storyweave.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

# Ids of sessions that have not reached a terminal state yet.
SESSION_INDEX_KEY = "active_voting_sessions"


def session_key(session_id: str) -> str:
    return f"voting_session:{session_id}"


def active_session_key(story_id: str, position: int) -> str:
    return f"active_session:{story_id}:{position}"


def position_marker_key(story_id: str, position: int) -> str:
    return f"position_filled:{story_id}:{position}"


def story_sessions_key(story_id: str) -> str:
    return f"story_sessions:{story_id}"


class VotingSessionManager:
    """Open, vote on, and resolve voting sessions."""

    def __init__(
        self,
        store: KeyValueStore,
        weights: WeightCalculator,
        reputation: ReputationRepository,
        appender: StoryAppender,
        notifier: Notifier,
        *,
        clock: Clock = utcnow,
        window_seconds: float | None = None,
    ) -> None:
        self.store = store
        self.weights = weights
        self.reputation = reputation
        self.appender = appender
        self.notifier = notifier
        self._clock = clock
        self.window = timedelta(
            seconds=window_seconds if window_seconds is not None
            else settings.voting_window_seconds
        )
        self._locks = KeyedLock()

    # --- Position helpers -----------------------------------------------------------

    async def active_session_id(self, story_id: str, position: int) -> str | None:
        """Return the id of the active session for a position, if any."""
        return await self.store.get(active_session_key(story_id, position))

    async def is_position_filled(self, story_id: str, position: int) -> bool:
        """Return True once a submission has been committed to the position."""
        return await self.store.get(position_marker_key(story_id, position)) is not None

    async def accept_submission(self, submission: Submission) -> None:
        """Commit an uncontested submission straight to the story.

        Raises:
            ConflictError: If the position has already been filled.
            StorageError: If the story append fails; nothing is committed.
        """
        claimed = await self._claim_position(
            submission, session_id=None, status="accepted"
        )
        if not claimed:
            raise ConflictError(
                f"Position {submission.position} of story {submission.story_id} is already filled"
            )
        logger.info(
            "Accepted submission %s for %s@%d without a vote",
            submission.id,
            submission.story_id,
            submission.position,
        )
        await dispatch_notification(
            self.notifier,
            submission.author_id,
            NotificationEvent(
                type="submission_accepted",
                story_id=submission.story_id,
                position=submission.position,
                submission_id=submission.id,
            ),
        )

    # --- Lifecycle ------------------------------------------------------------------

    async def open_session(self, submissions: Sequence[Submission]) -> VotingSession:
        """Open a session for two or more competing submissions.

        Raises:
            ValidationError: If fewer than two submissions are given or they
                target different positions.
            ConflictError: If another session is already active for the position.
        """
        if len(submissions) < 2:
            raise ValidationError("A voting session needs at least two submissions")
        first = submissions[0]
        if any(
            (s.story_id, s.position) != (first.story_id, first.position) for s in submissions
        ):
            raise ValidationError("All submissions in a session must share story and position")

        now = self._clock()
        session = VotingSession(
            id=uuid.uuid4().hex,
            story_id=first.story_id,
            position=first.position,
            community_id=first.community_id,
            submissions=list(submissions),
            created_at=now,
            expires_at=now + self.window,
            required_votes=scoring.required_votes(len(submissions)),
        )
        # Persist the document before publishing it as the position's active session.
        await self._save(session)
        claimed = await self.store.set_if_absent(
            active_session_key(session.story_id, session.position), session.id
        )
        if not claimed:
            await self.store.delete(session_key(session.id))
            raise ConflictError(
                f"A voting session is already active for {session.story_id}@{session.position}"
            )
        await self.store.list_append(SESSION_INDEX_KEY, session.id)
        await self.store.list_append(story_sessions_key(session.story_id), session.id)
        logger.info(
            "Opened voting session %s for %s@%d with %d submissions (quorum %d)",
            session.id,
            session.story_id,
            session.position,
            len(session.submissions),
            session.required_votes,
        )

        for submission in session.submissions:
            await dispatch_notification(
                self.notifier,
                submission.author_id,
                NotificationEvent(
                    type="voting_opened",
                    story_id=session.story_id,
                    position=session.position,
                    session_id=session.id,
                    submission_id=submission.id,
                    data={"expires_at": session.expires_at.isoformat()},
                ),
            )
        return session

    async def join_session(self, session_id: str, submission: Submission) -> VotingSession:
        """Add a late submission to an active session for the same position.

        Raises:
            ConflictError: If the session is no longer active or the author
                already has a submission in it.
        """
        async with self._locks.hold(session_id):
            session = await self._refresh(await self._require(session_id))
            if session.status.is_terminal:
                raise ConflictError(f"Voting session {session_id} is {session.status.value}")
            if (submission.story_id, submission.position) != (session.story_id, session.position):
                raise ValidationError("Submission targets a different story position")
            if any(s.author_id == submission.author_id for s in session.submissions):
                raise ConflictError("Author already has a submission in this voting session")
            session.submissions.append(submission)
            session.required_votes = scoring.required_votes(len(session.submissions))
            await self._save(session)
        logger.info("Submission %s joined voting session %s", submission.id, session_id)
        return session

    async def vote(
        self,
        session_id: str,
        submission_id: str,
        voter_id: str,
        kind: SessionVoteKind | str,
    ) -> SessionResults:
        """Record ``voter_id``'s vote and resolve the session on quorum.

        A voter holds one vote per session; voting again, even for another
        submission, replaces the earlier vote.

        Raises:
            ValidationError: If the kind is unknown or the submission is not
                part of the session.
            ConflictError: If the session is missing or terminal, or the voter
                authored the target submission.
            StorageError: If the store fails; the call may be retried.
        """
        kind = parse_kind(SessionVoteKind, kind)
        async with self._locks.hold(session_id):
            session = await self._refresh(await self._require(session_id))
            if session.status.is_terminal:
                raise ConflictError(f"Voting session {session_id} is {session.status.value}")
            target = session.submission(submission_id)
            if target is None:
                raise ValidationError(
                    f"Submission {submission_id} is not part of session {session_id}"
                )
            if target.author_id == voter_id:
                raise ConflictError("Authors cannot vote on their own submission")

            vote = SessionVote(
                id=uuid.uuid4().hex,
                voter_id=voter_id,
                session_id=session_id,
                submission_id=submission_id,
                weight=self.weights.weight(voter_id, session.community_id),
                kind=kind,
                timestamp=self._clock(),
            )
            prior = next((v for v in session.votes if v.voter_id == voter_id), None)
            session.votes = [v for v in session.votes if v.voter_id != voter_id]
            session.votes.append(vote)
            await self._save(session)
            self._update_reputation(session, vote, prior)

            if len(session.votes) >= session.required_votes:
                session = await self._resolve_on_quorum(session)

        return self.results(session)

    async def get_session_results(self, session_id: str) -> SessionResults:
        """Return the current results, expiring the session first if it is due."""
        async with self._locks.hold(session_id):
            session = await self._refresh(await self._require(session_id))
        return self.results(session)

    async def get_session(self, session_id: str) -> VotingSession:
        """Return the stored session after the lazy expiry check."""
        async with self._locks.hold(session_id):
            return await self._refresh(await self._require(session_id))

    async def process_expired_sessions(self) -> list[str]:
        """Resolve every active session whose deadline has passed.

        Only sessions still in the active index are visited; a session leaves
        the index when it is finalised. Sessions that fail with a storage error
        are logged and left for the next sweep.

        Returns:
            Ids of the sessions this sweep moved to a terminal state.
        """
        resolved: list[str] = []
        session_ids = dict.fromkeys(await self.store.list_range(SESSION_INDEX_KEY))
        for session_id in session_ids:
            try:
                async with self._locks.hold(session_id):
                    session = await self._load(session_id)
                    if session is None or session.status.is_terminal:
                        await self.store.list_remove(SESSION_INDEX_KEY, session_id)
                        continue
                    session = await self._refresh(session)
            except (StorageError, ConflictError) as err:
                logger.warning("Sweep could not resolve session %s: %s", session_id, err)
                continue
            if session.status.is_terminal:
                resolved.append(session_id)
        if resolved:
            logger.info("Sweep resolved %d expired voting sessions", len(resolved))
        return resolved

    async def story_stats(self, story_id: str) -> StoryVotingStats:
        """Aggregate session statistics for one story."""
        stats = StoryVotingStats(story_id=story_id)
        winners: set[str] = set()
        resolved_votes = 0
        for session_id in dict.fromkeys(await self.store.list_range(story_sessions_key(story_id))):
            async with self._locks.hold(session_id):
                session = await self._load(session_id)
                if session is None:
                    continue
                session = await self._refresh(session)
            stats.total_sessions += 1
            stats.total_votes += len(session.votes)
            if session.status is SessionStatus.ACTIVE:
                stats.active_sessions += 1
                continue
            if session.status is SessionStatus.COMPLETED:
                stats.completed_sessions += 1
            else:
                stats.expired_sessions += 1
            resolved_votes += len(session.votes)
            winner = session.submission(session.winning_submission_id or "")
            if winner is not None:
                winners.add(winner.author_id)
        stats.unique_winners = len(winners)
        resolved = stats.completed_sessions + stats.expired_sessions
        if resolved:
            stats.average_votes_per_session = round(resolved_votes / resolved, 2)
        return stats

    def results(self, session: VotingSession) -> SessionResults:
        """Build the read view of ``session``."""
        scores = scoring.submission_scores(session)
        return SessionResults(
            session_id=session.id,
            story_id=session.story_id,
            position=session.position,
            status=session.status,
            required_votes=session.required_votes,
            total_votes=len(session.votes),
            created_at=session.created_at,
            expires_at=session.expires_at,
            leading_submission_id=scoring.positive_leader(scores),
            winning_submission_id=session.winning_submission_id,
            tallies=scoring.tally(session),
        )

    # --- Resolution -----------------------------------------------------------------

    async def _resolve_on_quorum(self, session: VotingSession) -> VotingSession:
        leader_id = scoring.positive_leader(scoring.submission_scores(session))
        if leader_id is None:
            # Quorum without a willing majority keeps the session open.
            logger.debug("Session %s reached quorum without a positive leader", session.id)
            return session
        winner = session.submission(leader_id)
        if winner is None:
            raise StorageError(f"Leader {leader_id} is missing from session {session.id}")
        return await self._commit(session, winner, SessionStatus.COMPLETED)

    async def _refresh(self, session: VotingSession) -> VotingSession:
        """Apply pending transitions.

        Resumes a half-finished commit, expires a session past its deadline, or
        retries a quorum resolution whose story append previously failed.
        """
        if session.status.is_terminal:
            return session
        marker = await self._position_marker(session)
        if marker is not None:
            return await self._adopt_marker(session, marker)
        if self._clock() > session.expires_at:
            winner = scoring.expiry_winner(session)
            logger.info("Session %s expired; selected %s", session.id, winner.id)
            return await self._commit(session, winner, SessionStatus.EXPIRED)
        if len(session.votes) >= session.required_votes:
            return await self._resolve_on_quorum(session)
        return session

    async def _commit(
        self, session: VotingSession, winner: Submission, status: SessionStatus
    ) -> VotingSession:
        claimed = await self._claim_position(winner, session_id=session.id, status=status.value)
        if claimed:
            return await self._finalize(session, winner, status, notify=True)
        marker = await self._position_marker(session)
        if marker is None:
            raise StorageError(f"Position marker for session {session.id} vanished")
        return await self._adopt_marker(session, marker)

    async def _adopt_marker(
        self, session: VotingSession, marker: dict[str, str | None]
    ) -> VotingSession:
        """Bring an active session in line with an existing position marker.

        A marker written by this session means an earlier commit appended the
        winner but never finished; any other marker means the position was
        filled without this session, which can then never produce a winner.
        """
        winner = None
        if marker.get("session_id") == session.id:
            winner = session.submission(str(marker.get("submission_id")))
        if winner is None:
            logger.warning(
                "Position %s@%d filled outside session %s; closing it without a winner",
                session.story_id,
                session.position,
                session.id,
            )
            return await self._finalize(session, None, SessionStatus.EXPIRED, notify=False)
        logger.info("Resuming interrupted commit of session %s", session.id)
        return await self._finalize(
            session, winner, SessionStatus(str(marker["status"])), notify=False
        )

    async def _finalize(
        self,
        session: VotingSession,
        winner: Submission | None,
        status: SessionStatus,
        *,
        notify: bool,
    ) -> VotingSession:
        session.status = status
        session.winning_submission_id = winner.id if winner is not None else None
        await self._save(session)
        if await self.active_session_id(session.story_id, session.position) == session.id:
            await self.store.delete(active_session_key(session.story_id, session.position))
        await self.store.list_remove(SESSION_INDEX_KEY, session.id)
        logger.info(
            "Session %s %s with winner %s",
            session.id,
            status.value,
            session.winning_submission_id,
        )
        if notify and winner is not None:
            await self._notify_outcome(session, winner)
        return session

    async def _claim_position(
        self, submission: Submission, *, session_id: str | None, status: str
    ) -> bool:
        """Claim the story position and append ``submission`` exactly once.

        The marker is released again if the append fails so the whole
        operation can be retried.
        """
        marker_key = position_marker_key(submission.story_id, submission.position)
        marker = json.dumps(
            {"submission_id": submission.id, "session_id": session_id, "status": status}
        )
        if not await self.store.set_if_absent(marker_key, marker):
            return False
        try:
            await self.appender.append_content(
                submission.story_id,
                submission.position,
                submission.content,
                submission.author_id,
            )
        except EngineError:
            await self.store.delete(marker_key)
            raise
        except Exception as err:
            await self.store.delete(marker_key)
            logger.warning(
                "Story append failed for %s@%d: %s", submission.story_id, submission.position, err
            )
            raise StorageError("Failed to append the winning submission to the story") from err
        return True

    async def _notify_outcome(self, session: VotingSession, winner: Submission) -> None:
        scores = scoring.submission_scores(session)
        for submission in session.submissions:
            won = submission.id == winner.id
            await dispatch_notification(
                self.notifier,
                submission.author_id,
                NotificationEvent(
                    type="submission_won" if won else "submission_lost",
                    story_id=session.story_id,
                    position=session.position,
                    session_id=session.id,
                    submission_id=submission.id,
                    data={
                        "score": scores[submission.id],
                        "status": session.status.value,
                        "total_submissions": len(session.submissions),
                        "total_votes": len(session.votes),
                    },
                ),
            )

    # --- Persistence ----------------------------------------------------------------

    async def _position_marker(self, session: VotingSession) -> dict[str, str | None] | None:
        raw = await self.store.get(position_marker_key(session.story_id, session.position))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as err:
            raise StorageError(f"Position marker for session {session.id} is unreadable") from err

    async def _load(self, session_id: str) -> VotingSession | None:
        raw = await self.store.get(session_key(session_id))
        if raw is None:
            return None
        try:
            return VotingSession.model_validate_json(raw)
        except SchemaError as err:
            logger.error("Corrupt voting session %s: %s", session_id, err)
            raise StorageError(f"Voting session {session_id} is unreadable") from err

    async def _require(self, session_id: str) -> VotingSession:
        session = await self._load(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _save(self, session: VotingSession) -> None:
        await self.store.set(session_key(session.id), session.model_dump_json())

    def _update_reputation(
        self,
        session: VotingSession,
        vote: SessionVote,
        prior: SessionVote | None,
    ) -> None:
        effects: dict[str, list[float]] = defaultdict(lambda: [0.0, 0])
        for cast, sign in ((vote, 1), (prior, -1)):
            if cast is None:
                continue
            submission = session.submission(cast.submission_id)
            if submission is None:
                continue
            effect = effects[submission.author_id]
            effect[0] += sign * cast.kind.polarity * cast.weight
            effect[1] += sign
        try:
            self.reputation.record_vote_cast(
                vote.voter_id,
                session.community_id,
                polarity=vote.kind.polarity,
                now=vote.timestamp,
            )
            for author_id, (delta, count) in effects.items():
                self.reputation.record_vote_received(
                    author_id,
                    session.community_id,
                    reputation_delta=delta,
                    count_delta=int(count),
                )
        except StorageError as err:
            # The vote is already persisted; reputation bookkeeping is best effort.
            logger.warning("Reputation update failed for session %s: %s", session.id, err)
