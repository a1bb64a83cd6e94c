"""Entry point for new submissions.

The first submission for a free position becomes the *leader*: it waits a
short debounce window so near-simultaneous competitors can queue up, then
either accepts itself directly or opens a voting session for everything that
arrived. Later arrivals append to the pending queue and wait, for a bounded
time, to learn which session they landed in.
"""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from collections.abc import Callable

from pydantic import ValidationError as SchemaError

from storyweave.core.errors import ConflictError, StorageError, ValidationError
from storyweave.core.settings import settings
from storyweave.db.time import Clock, utcnow
from storyweave.schemas.submission import Submission, SubmissionReceipt, SubmissionStatus
from storyweave.services.locks import KeyedLock
from storyweave.services.validation import validate_submission
from storyweave.services.voting_sessions import VotingSessionManager
from storyweave.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)


def pending_key(story_id: str, position: int) -> str:
    return f"pending_submissions:{story_id}:{position}"


def leader_key(story_id: str, position: int) -> str:
    return f"pending_leader:{story_id}:{position}"


class SubmissionIntake:
    """Admit submissions and route contested positions into voting sessions."""

    def __init__(
        self,
        store: KeyValueStore,
        sessions: VotingSessionManager,
        *,
        clock: Clock = utcnow,
        debounce_seconds: float | None = None,
        poll_interval_seconds: float | None = None,
        grace_seconds: float | None = None,
        validator: Callable[[str], str] = validate_submission,
    ) -> None:
        self.store = store
        self.sessions = sessions
        self._clock = clock
        self.debounce = (
            debounce_seconds if debounce_seconds is not None
            else settings.submission_debounce_seconds
        )
        self.poll_interval = (
            poll_interval_seconds if poll_interval_seconds is not None
            else settings.submission_poll_interval_seconds
        )
        self.grace = (
            grace_seconds if grace_seconds is not None
            else settings.submission_decision_grace_seconds
        )
        self._validate = validator
        self._locks = KeyedLock()

    async def submit(
        self,
        story_id: str,
        position: int,
        author_id: str,
        content: str,
        *,
        community_id: str | None = None,
    ) -> SubmissionReceipt:
        """Admit a submission for ``(story_id, position)``.

        Returns:
            ``accepted`` if it was committed uncontested, ``queued_for_voting``
            if this call opened a voting session, or ``conflict_detected`` if
            it joined competition started by another submission.

        Raises:
            ValidationError: If the content or position is invalid.
            ConflictError: If the position is filled or the author already
                has a pending submission for it.
            StorageError: If the store fails; the call may be retried.
        """
        if position < 0:
            raise ValidationError("Story position must be zero or greater")
        text = self._validate(content)
        submission = Submission(
            id=uuid.uuid4().hex,
            story_id=story_id,
            position=position,
            author_id=author_id,
            content=text,
            submitted_at=self._clock(),
            community_id=community_id or settings.default_community_id,
        )
        position_lock = f"{story_id}:{position}"

        async with self._locks.hold(position_lock):
            if await self.sessions.is_position_filled(story_id, position):
                raise ConflictError(f"Position {position} of story {story_id} is already filled")

            active_id = await self.sessions.active_session_id(story_id, position)
            if active_id is not None:
                await self.sessions.join_session(active_id, submission)
                return SubmissionReceipt(
                    status=SubmissionStatus.CONFLICT_DETECTED,
                    submission_id=submission.id,
                    session_id=active_id,
                )

            pending = await self._pending(story_id, position)
            if any(entry.author_id == author_id for entry in pending):
                raise ConflictError("Author already has a pending submission for this position")
            await self.store.list_append(
                pending_key(story_id, position), submission.model_dump_json()
            )
            is_leader = await self.store.set_if_absent(
                leader_key(story_id, position),
                submission.id,
                ttl_seconds=math.ceil(self.debounce + self.grace) + 1,
            )

        if is_leader:
            return await self._lead(submission, position_lock)
        return await self._follow(submission)

    async def _lead(self, submission: Submission, position_lock: str) -> SubmissionReceipt:
        # Cooperative wait; competitors keep appending to the queue meanwhile.
        await asyncio.sleep(self.debounce)
        story_id, position = submission.story_id, submission.position

        async with self._locks.hold(position_lock):
            try:
                pending = await self._pending(story_id, position)
                if len(pending) <= 1:
                    await self.sessions.accept_submission(submission)
                    return SubmissionReceipt(
                        status=SubmissionStatus.ACCEPTED,
                        submission_id=submission.id,
                    )
                session = await self.sessions.open_session(pending)
                return SubmissionReceipt(
                    status=SubmissionStatus.QUEUED_FOR_VOTING,
                    submission_id=submission.id,
                    session_id=session.id,
                )
            finally:
                await self.store.delete(pending_key(story_id, position))
                await self.store.delete(leader_key(story_id, position))

    async def _follow(self, submission: Submission) -> SubmissionReceipt:
        story_id, position = submission.story_id, submission.position
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.debounce + self.grace
        while True:
            session_id = await self.sessions.active_session_id(story_id, position)
            if session_id is not None:
                return SubmissionReceipt(
                    status=SubmissionStatus.CONFLICT_DETECTED,
                    submission_id=submission.id,
                    session_id=session_id,
                )
            if await self.sessions.is_position_filled(story_id, position):
                break
            if loop.time() >= deadline:
                logger.warning(
                    "No voting decision for %s@%d within the debounce window",
                    story_id,
                    position,
                )
                break
            await asyncio.sleep(self.poll_interval)
        return SubmissionReceipt(
            status=SubmissionStatus.CONFLICT_DETECTED,
            submission_id=submission.id,
        )

    async def _pending(self, story_id: str, position: int) -> list[Submission]:
        entries = await self.store.list_range(pending_key(story_id, position))
        try:
            return [Submission.model_validate_json(entry) for entry in entries]
        except SchemaError as err:
            raise StorageError(f"Pending queue for {story_id}@{position} is unreadable") from err
