"""Vote weight derivation from reputation records."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Final

from sqlalchemy.exc import SQLAlchemyError

from storyweave.core.errors import StorageError
from storyweave.db.time import Clock, ensure_aware, utcnow
from storyweave.models.reputation import (
    DEFAULT_PARTICIPATION_DAYS,
    DEFAULT_REPUTATION,
    NEUTRAL_QUALITY_RATING,
    ReputationRecord,
)
from storyweave.repositories.reputation_repo import ReputationRepository
from storyweave.schemas.votes import MAX_WEIGHT, MIN_WEIGHT

logger = logging.getLogger(__name__)

ACTIVE_WITHIN_DAYS: Final[int] = 7
ACTIVITY_BONUS: Final[float] = 0.5
MAX_PARTICIPATION_TERM: Final[float] = 2.0
MAX_QUALITY_TERM: Final[float] = 2.0

# Reputation of long-idle users shrinks 10% per month beyond six months.
DECAY_GRACE_DAYS: Final[int] = 180
DECAY_PER_MONTH: Final[float] = 0.10
DAYS_PER_MONTH: Final[int] = 30


def effective_reputation(reputation: float, days_inactive: float) -> float:
    """Return reputation after inactivity decay; never negative."""
    reputation = max(0.0, reputation)
    if days_inactive <= DECAY_GRACE_DAYS:
        return reputation
    months_over = int((days_inactive - DECAY_GRACE_DAYS) // DAYS_PER_MONTH)
    return reputation * max(0.0, 1.0 - DECAY_PER_MONTH * months_over)


def compute_weight(
    reputation: float,
    participation_days: int,
    quality_rating: float,
    days_since_active: float,
) -> float:
    """Combine reputation, participation, quality and recency into a weight.

    Returns:
        A weight clamped to ``[MIN_WEIGHT, MAX_WEIGHT]`` and rounded to two
        decimals.

    Raises:
        ValueError: If any input is not a finite number.
    """
    if not all(
        math.isfinite(value)
        for value in (reputation, participation_days, quality_rating, days_since_active)
    ):
        raise ValueError("Reputation inputs must be finite")
    reputation = effective_reputation(reputation, days_since_active)
    reputation_term = math.log10(reputation / 100 + 1) + 1
    participation_term = min(MAX_PARTICIPATION_TERM, max(0, participation_days) / 30)
    quality_term = min(MAX_QUALITY_TERM, max(0.0, quality_rating) / 5)
    activity_term = ACTIVITY_BONUS if days_since_active < ACTIVE_WITHIN_DAYS else 0.0
    total = reputation_term + participation_term + quality_term + activity_term
    return round(min(MAX_WEIGHT, max(MIN_WEIGHT, total)), 2)


BASELINE_WEIGHT: Final[float] = compute_weight(
    DEFAULT_REPUTATION,
    DEFAULT_PARTICIPATION_DAYS,
    NEUTRAL_QUALITY_RATING,
    0,
)


class WeightCalculator:
    """Derive per-community vote weights for users.

    A missing record is created lazily; an unreadable or corrupt record
    degrades to ``BASELINE_WEIGHT`` instead of failing the vote.
    """

    def __init__(self, repository: ReputationRepository, clock: Clock = utcnow) -> None:
        self.repository = repository
        self._clock = clock

    def weight(self, user_id: str, community_id: str) -> float:
        """Return the vote weight for ``user_id`` in ``community_id``."""
        now = self._clock()
        try:
            record = self.repository.get_or_create(user_id, community_id, now=now)
            return self.weight_for_record(record, now)
        except (StorageError, SQLAlchemyError, TypeError, ValueError) as err:
            logger.warning(
                "Falling back to baseline weight for %s in %s: %s",
                user_id,
                community_id,
                err,
            )
            return BASELINE_WEIGHT

    @staticmethod
    def weight_for_record(record: ReputationRecord, now: datetime) -> float:
        """Return the weight for an already loaded record at time ``now``."""
        days_since_active = max(
            0.0,
            (now - ensure_aware(record.last_activity_at)).total_seconds() / 86_400,
        )
        return compute_weight(
            float(record.reputation),
            int(record.participation_days),
            float(record.quality_rating),
            days_since_active,
        )
