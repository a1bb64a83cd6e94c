"""Data access helpers for reputation records."""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storyweave.core.errors import StorageError
from storyweave.db.time import ensure_aware, utcnow
from storyweave.models.reputation import (
    DEFAULT_PARTICIPATION_DAYS,
    DEFAULT_REPUTATION,
    NEUTRAL_QUALITY_RATING,
    ReputationRecord,
)

__all__ = ["ReputationRepository"]

logger = logging.getLogger(__name__)

MAX_QUALITY_RATING = 10.0


class ReputationRepository:
    """Thin wrapper around database access for reputation records.

    No business rules live here beyond defaults and range clamping; weights
    are derived in ``storyweave.services.weights``.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, user_id: str, community_id: str) -> ReputationRecord | None:
        """Return the record for ``(user_id, community_id)`` if it exists."""
        try:
            result = self.session.execute(
                select(ReputationRecord).where(
                    ReputationRecord.user_id == user_id,
                    ReputationRecord.community_id == community_id,
                )
            )
        except SQLAlchemyError as err:
            self.session.rollback()
            raise StorageError("Failed to read reputation record") from err
        return result.scalars().first()

    def get_or_create(
        self, user_id: str, community_id: str, *, now: datetime | None = None
    ) -> ReputationRecord:
        """Return the record, creating it with defaults on first access."""
        record = self.get(user_id, community_id)
        if record is not None:
            return record
        record = ReputationRecord(
            user_id=user_id,
            community_id=community_id,
            reputation=DEFAULT_REPUTATION,
            total_votes_cast=0,
            average_vote_score=0.0,
            votes_received=0,
            participation_days=DEFAULT_PARTICIPATION_DAYS,
            last_activity_at=now or utcnow(),
            quality_rating=NEUTRAL_QUALITY_RATING,
        )
        self.session.add(record)
        self._commit()
        logger.debug("Created reputation record for %s in %s", user_id, community_id)
        return record

    def record_vote_cast(
        self,
        user_id: str,
        community_id: str,
        *,
        polarity: int,
        now: datetime | None = None,
    ) -> ReputationRecord:
        """Update voting counters and activity after ``user_id`` casts a vote.

        Args:
            user_id: Voter identifier.
            community_id: Community the vote was cast in.
            polarity: +1, 0 or -1 for the kind of vote cast.
            now: Time of the vote; defaults to the current UTC time.
        """
        now = now or utcnow()
        record = self.get_or_create(user_id, community_id, now=now)
        total = record.total_votes_cast + 1
        record.average_vote_score = (
            record.average_vote_score * record.total_votes_cast + polarity
        ) / total
        record.total_votes_cast = total
        if ensure_aware(record.last_activity_at).date() != now.date():
            record.participation_days += 1
        record.last_activity_at = now
        self._commit()
        return record

    def record_vote_received(
        self,
        user_id: str,
        community_id: str,
        *,
        reputation_delta: float,
        quality_delta: float = 0.0,
        count_delta: int = 1,
    ) -> ReputationRecord:
        """Apply the effect of a vote received on content authored by ``user_id``.

        Deltas may be negative when a vote is replaced or withdrawn. Reputation
        is floored at zero and quality is kept within 0-10.
        """
        record = self.get_or_create(user_id, community_id)
        record.reputation = max(0.0, record.reputation + reputation_delta)
        record.quality_rating = min(
            MAX_QUALITY_RATING,
            max(0.0, record.quality_rating + quality_delta),
        )
        record.votes_received = max(0, record.votes_received + count_delta)
        self._commit()
        return record

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as err:
            self.session.rollback()
            logger.warning("Reputation commit failed: %s", err)
            raise StorageError("Failed to persist reputation record") from err
