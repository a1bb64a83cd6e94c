from __future__ import annotations

import asyncio

import pytest

from storyweave.core.errors import ConflictError, StorageError, ValidationError
from storyweave.repositories.reputation_repo import ReputationRepository
from storyweave.services.content_votes import ContentVoteService
from storyweave.storage.kv import MemoryKeyValueStore


@pytest.fixture()
def service(
    store: MemoryKeyValueStore,
    fixed_weights,
    reputation: ReputationRepository,
    visibility,
    clock,
) -> ContentVoteService:
    return ContentVoteService(
        store,
        fixed_weights,  # type: ignore[arg-type]
        reputation,
        visibility=visibility,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_cast_records_weighted_vote(service: ContentVoteService, fixed_weights) -> None:
    fixed_weights.overrides["reader"] = 2.5

    metrics = await service.cast("post-1", "reader", "upvote")

    assert metrics.total_votes == 1
    assert metrics.weighted_score == pytest.approx(2.5)
    assert await service.metrics("post-1") == metrics


@pytest.mark.asyncio
async def test_second_vote_replaces_the_first(service: ContentVoteService) -> None:
    await service.cast("post-1", "reader", "upvote")
    metrics = await service.cast("post-1", "reader", "downvote")

    assert metrics.total_votes == 1
    assert metrics.weighted_score == pytest.approx(-1.0)
    assert [v.kind.value for v in await service.votes("post-1")] == ["downvote"]


@pytest.mark.asyncio
async def test_self_vote_rejected(service: ContentVoteService) -> None:
    with pytest.raises(ConflictError):
        await service.cast("post-1", "writer", "upvote", author_id="writer")

    assert (await service.metrics("post-1")).total_votes == 0


@pytest.mark.asyncio
async def test_session_kind_rejected_on_content(service: ContentVoteService) -> None:
    with pytest.raises(ValidationError):
        await service.cast("post-1", "reader", "approve")


@pytest.mark.asyncio
async def test_hide_transition_fires_once_and_reverts(
    service: ContentVoteService, fixed_weights, visibility
) -> None:
    fixed_weights.default = 3.0
    await service.cast("post-1", "r1", "downvote")
    assert not await service.is_hidden("post-1")

    await service.cast("post-1", "r2", "downvote")
    await service.cast("post-1", "r3", "downvote")
    assert await service.is_hidden("post-1")
    assert visibility.calls == [("post-1", True)]

    await service.cast("post-1", "r3", "upvote")
    assert not await service.is_hidden("post-1")
    assert visibility.calls == [("post-1", True), ("post-1", False)]


@pytest.mark.asyncio
async def test_removing_vote_restores_previous_state(
    service: ContentVoteService, fixed_weights, visibility
) -> None:
    fixed_weights.default = 6.0
    await service.cast("post-1", "r1", "downvote")
    assert await service.is_hidden("post-1")

    metrics = await service.remove("post-1", "r1")

    assert metrics.total_votes == 0
    assert metrics.hidden_below_threshold is False
    assert visibility.calls == [("post-1", True), ("post-1", False)]


@pytest.mark.asyncio
async def test_removing_missing_vote_is_a_no_op(service: ContentVoteService) -> None:
    metrics = await service.remove("post-1", "nobody")

    assert metrics.total_votes == 0


@pytest.mark.asyncio
async def test_concurrent_votes_are_all_counted(service: ContentVoteService) -> None:
    await asyncio.gather(*(service.cast("post-1", f"r{i}", "upvote") for i in range(10)))

    metrics = await service.metrics("post-1")
    assert metrics.total_votes == 10
    assert metrics.weighted_score == pytest.approx(10.0)


@pytest.mark.asyncio
async def test_author_reputation_follows_vote_changes(
    service: ContentVoteService, reputation: ReputationRepository, fixed_weights
) -> None:
    fixed_weights.default = 2.0

    await service.cast("post-1", "reader", "quality", author_id="writer")
    record = reputation.get("writer", "global")
    assert record.reputation == pytest.approx(102.0)
    assert record.quality_rating == pytest.approx(5.2)
    assert record.votes_received == 1

    await service.cast("post-1", "reader", "downvote", author_id="writer")
    assert record.reputation == pytest.approx(98.0)
    assert record.quality_rating == pytest.approx(5.0)
    assert record.votes_received == 1

    await service.remove("post-1", "reader", author_id="writer")
    assert record.reputation == pytest.approx(100.0)
    assert record.votes_received == 0


@pytest.mark.asyncio
async def test_reputation_failure_does_not_fail_the_vote(
    service: ContentVoteService, reputation: ReputationRepository, mocker
) -> None:
    mocker.patch.object(reputation, "record_vote_cast", side_effect=StorageError("db down"))

    metrics = await service.cast("post-1", "reader", "creative", author_id="writer")

    assert metrics.total_votes == 1


@pytest.mark.asyncio
async def test_corrupt_ledger_surfaces_storage_error(
    service: ContentVoteService, store: MemoryKeyValueStore
) -> None:
    await store.set("content_votes:post-1", "{not json")

    with pytest.raises(StorageError):
        await service.metrics("post-1")
