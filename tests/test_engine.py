from __future__ import annotations

import asyncio

import pytest

from storyweave.schemas.session import SessionStatus
from storyweave.schemas.submission import SubmissionStatus
from storyweave.services.engine import VotingEngine
from storyweave.services.weights import BASELINE_WEIGHT


@pytest.mark.asyncio
async def test_contested_position_end_to_end(voting_engine: VotingEngine, appender, notifier) -> None:
    alice, bob = await asyncio.gather(
        voting_engine.submit("story1", 5, "alice", "The lighthouse went dark."),
        voting_engine.submit("story1", 5, "bob", "A gull screamed overhead."),
    )
    assert alice.status is SubmissionStatus.QUEUED_FOR_VOTING
    assert bob.status is SubmissionStatus.CONFLICT_DETECTED
    session_id = alice.session_id

    for voter in ("v1", "v2", "v3"):
        results = await voting_engine.vote(session_id, alice.submission_id, voter, "approve")

    assert results.status is SessionStatus.COMPLETED
    assert results.winning_submission_id == alice.submission_id
    assert appender.appends == [("story1", 5, "The lighthouse went dark.", "alice")]
    assert "submission_won" in notifier.types_for("alice")
    assert "submission_lost" in notifier.types_for("bob")


@pytest.mark.asyncio
async def test_fresh_voters_cast_baseline_weight(voting_engine: VotingEngine) -> None:
    first, second = await asyncio.gather(
        voting_engine.submit("story2", 0, "alice", "Snow fell."),
        voting_engine.submit("story2", 0, "bob", "Rain fell."),
    )

    await voting_engine.vote(first.session_id, second.submission_id, "reader", "approve")
    session = await voting_engine.sessions.get_session(first.session_id)

    assert session.votes[0].weight == BASELINE_WEIGHT


@pytest.mark.asyncio
async def test_content_vote_round_trip(voting_engine: VotingEngine, visibility) -> None:
    metrics = await voting_engine.cast_content_vote("chapter-1", "reader", "quality", author_id="writer")

    assert metrics.total_votes == 1
    assert metrics.quality_rating > 5.0
    assert await voting_engine.get_voting_metrics("chapter-1") == metrics
    assert not await voting_engine.is_hidden("chapter-1")

    metrics = await voting_engine.remove_content_vote("chapter-1", "reader", author_id="writer")
    assert metrics.total_votes == 0
    assert visibility.calls == []


@pytest.mark.asyncio
async def test_expiry_through_engine(voting_engine: VotingEngine, clock, appender) -> None:
    first, _ = await asyncio.gather(
        voting_engine.submit("story3", 1, "alice", "Chapter one."),
        voting_engine.submit("story3", 1, "bob", "Chapter uno."),
    )
    clock.advance(days=1, seconds=1)

    assert await voting_engine.process_expired_sessions() == [first.session_id]
    stats = await voting_engine.story_stats("story3")
    assert stats.expired_sessions == 1
    assert appender.appends[0][3] == "alice"
