"""Weighted votes on standing content and the hide/unhide transition."""

from __future__ import annotations

import logging
import uuid

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from storyweave.core.errors import ConflictError, StorageError
from storyweave.core.settings import settings
from storyweave.db.time import Clock, utcnow
from storyweave.repositories.reputation_repo import ReputationRepository
from storyweave.schemas.votes import ContentVote, ContentVoteKind, VotingMetrics
from storyweave.services import scoring
from storyweave.services.collaborators import LoggingVisibilityHook, VisibilityHook
from storyweave.services.locks import KeyedLock
from storyweave.services.validation import parse_kind
from storyweave.services.weights import WeightCalculator
from storyweave.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)


class ContentVoteLedger(BaseModel):
    """Stored vote set of one content item with its derived metrics.

    Votes and metrics live under one key so a single write keeps them
    consistent.
    """

    votes: dict[str, ContentVote] = Field(default_factory=dict)
    metrics: VotingMetrics = Field(default_factory=VotingMetrics)


def _ledger_key(target_id: str) -> str:
    return f"content_votes:{target_id}"


def _hidden_key(target_id: str) -> str:
    return f"content_hidden:{target_id}"


def _contribution(vote: ContentVote | None) -> tuple[float, float]:
    """Return the (reputation, quality) effect a vote has on the content author."""
    if vote is None:
        return 0.0, 0.0
    quality = vote.weight / 10 if vote.kind is ContentVoteKind.QUALITY else 0.0
    return vote.kind.polarity * vote.weight, quality


class ContentVoteService:
    """Cast, replace and withdraw votes on standing content.

    Every mutation rescores the full vote set and re-evaluates visibility;
    the visibility hook is only called when the hidden state actually flips.
    """

    def __init__(
        self,
        store: KeyValueStore,
        weights: WeightCalculator,
        reputation: ReputationRepository,
        *,
        visibility: VisibilityHook | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.weights = weights
        self.reputation = reputation
        self.visibility = visibility or LoggingVisibilityHook()
        self._clock = clock
        self._locks = KeyedLock()

    async def cast(
        self,
        target_id: str,
        voter_id: str,
        kind: ContentVoteKind | str,
        *,
        community_id: str | None = None,
        author_id: str | None = None,
    ) -> VotingMetrics:
        """Cast or replace ``voter_id``'s vote on ``target_id`` and return new metrics.

        Raises:
            ValidationError: If ``kind`` is not a content vote kind.
            ConflictError: If the voter authored the target.
            StorageError: If the store cannot be read or written.
        """
        kind = parse_kind(ContentVoteKind, kind)
        if author_id is not None and author_id == voter_id:
            raise ConflictError("Authors cannot vote on their own content")
        community_id = community_id or settings.default_community_id
        weight = self.weights.weight(voter_id, community_id)
        now = self._clock()

        async with self._locks.hold(target_id):
            ledger = await self._load(target_id)
            prior = ledger.votes.get(voter_id)
            vote = ContentVote(
                id=uuid.uuid4().hex,
                voter_id=voter_id,
                target_id=target_id,
                weight=weight,
                kind=kind,
                timestamp=now,
            )
            ledger.votes[voter_id] = vote
            metrics = await self._save(target_id, ledger)
            await self._apply_visibility(target_id, metrics)

        self._update_reputation(
            voter_id=voter_id,
            author_id=author_id,
            community_id=community_id,
            prior=prior,
            current=vote,
        )
        return metrics

    async def remove(
        self,
        target_id: str,
        voter_id: str,
        *,
        community_id: str | None = None,
        author_id: str | None = None,
    ) -> VotingMetrics:
        """Withdraw ``voter_id``'s vote; metrics are recomputed as if it never existed."""
        community_id = community_id or settings.default_community_id
        async with self._locks.hold(target_id):
            ledger = await self._load(target_id)
            prior = ledger.votes.pop(voter_id, None)
            if prior is None:
                return ledger.metrics
            metrics = await self._save(target_id, ledger)
            await self._apply_visibility(target_id, metrics)

        self._update_reputation(
            voter_id=None,
            author_id=author_id,
            community_id=community_id,
            prior=prior,
            current=None,
        )
        return metrics

    async def votes(self, target_id: str) -> list[ContentVote]:
        """Return the current vote set of ``target_id``."""
        ledger = await self._load(target_id)
        return list(ledger.votes.values())

    async def metrics(self, target_id: str) -> VotingMetrics:
        """Return cached metrics for ``target_id`` (neutral defaults if unvoted)."""
        ledger = await self._load(target_id)
        return ledger.metrics

    async def is_hidden(self, target_id: str) -> bool:
        """Return whether the content currently falls below the hide threshold."""
        return (await self.metrics(target_id)).hidden_below_threshold

    async def _load(self, target_id: str) -> ContentVoteLedger:
        raw = await self.store.get(_ledger_key(target_id))
        if raw is None:
            return ContentVoteLedger()
        try:
            return ContentVoteLedger.model_validate_json(raw)
        except SchemaError as err:
            logger.error("Corrupt vote ledger for %s: %s", target_id, err)
            raise StorageError(f"Vote ledger for {target_id} is unreadable") from err

    async def _save(self, target_id: str, ledger: ContentVoteLedger) -> VotingMetrics:
        ledger.metrics = scoring.score(ledger.votes.values())
        await self.store.set(_ledger_key(target_id), ledger.model_dump_json())
        logger.debug(
            "Rescored %s: %d votes, score %.2f",
            target_id,
            ledger.metrics.total_votes,
            ledger.metrics.weighted_score,
        )
        return ledger.metrics

    async def _apply_visibility(self, target_id: str, metrics: VotingMetrics) -> None:
        hidden = metrics.hidden_below_threshold
        previous = await self.store.get(_hidden_key(target_id))
        was_hidden = previous == "1"
        if previous is not None and was_hidden == hidden:
            return
        if previous is None and not hidden:
            await self.store.set(_hidden_key(target_id), "0")
            return
        await self.visibility.set_hidden(target_id, hidden)
        await self.store.set(_hidden_key(target_id), "1" if hidden else "0")

    def _update_reputation(
        self,
        *,
        voter_id: str | None,
        author_id: str | None,
        community_id: str,
        prior: ContentVote | None,
        current: ContentVote | None,
    ) -> None:
        try:
            if voter_id is not None and current is not None:
                self.reputation.record_vote_cast(
                    voter_id,
                    community_id,
                    polarity=current.kind.polarity,
                    now=current.timestamp,
                )
            if author_id is not None:
                new_rep, new_quality = _contribution(current)
                old_rep, old_quality = _contribution(prior)
                count_delta = (current is not None) - (prior is not None)
                self.reputation.record_vote_received(
                    author_id,
                    community_id,
                    reputation_delta=new_rep - old_rep,
                    quality_delta=new_quality - old_quality,
                    count_delta=count_delta,
                )
        except StorageError as err:
            # The vote itself is committed; reputation bookkeeping is best effort.
            logger.warning("Reputation update failed for %s: %s", community_id, err)
