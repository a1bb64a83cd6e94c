"""Scoring primitives for weighted votes.

Everything here is a pure function of a vote set: metrics are recomputed
from scratch after every mutation, which keeps retries after a partial
failure idempotent.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Final

from storyweave.schemas.session import SubmissionTally, VotingSession
from storyweave.schemas.submission import Submission
from storyweave.schemas.votes import (
    ContentVote,
    ContentVoteKind,
    SessionVote,
    SessionVoteKind,
    VotingMetrics,
)

HIDE_THRESHOLD: Final[float] = -5.0
NEUTRAL_QUALITY: Final[float] = 5.0
MIN_QUORUM: Final[int] = 3
QUORUM_FACTOR: Final[float] = 1.5

Vote = ContentVote | SessionVote


def _side_weights(votes: Sequence[Vote]) -> tuple[float, float]:
    up = math.fsum(vote.weight for vote in votes if vote.kind.polarity > 0)
    down = math.fsum(vote.weight for vote in votes if vote.kind.polarity < 0)
    return up, down


def controversy(up_weight: float, down_weight: float) -> float:
    """Return 0 for a unanimous vote up to 1 for a perfectly split one."""
    if up_weight <= 0 or down_weight <= 0:
        return 0.0
    return 2 * min(up_weight, down_weight) / (up_weight + down_weight)


def score(votes: Iterable[Vote]) -> VotingMetrics:
    """Compute voting metrics for the full vote set of one target."""
    votes = list(votes)
    if not votes:
        return VotingMetrics()

    up, down = _side_weights(votes)
    weighted_score = up - down
    total = len(votes)

    has_quality_votes = any(vote.kind is ContentVoteKind.QUALITY for vote in votes)
    if has_quality_votes:
        quality_rating = min(10.0, max(0.0, weighted_score / total + NEUTRAL_QUALITY))
    else:
        quality_rating = NEUTRAL_QUALITY

    return VotingMetrics(
        total_votes=total,
        weighted_score=weighted_score,
        quality_rating=quality_rating,
        controversy_score=controversy(up, down),
        hidden_below_threshold=weighted_score < HIDE_THRESHOLD,
    )


def required_votes(submission_count: int) -> int:
    """Return the quorum for a session with ``submission_count`` submissions."""
    return max(MIN_QUORUM, math.ceil(QUORUM_FACTOR * submission_count))


def submission_scores(session: VotingSession) -> dict[str, float]:
    """Return approve-minus-reject weight for every submission in the session."""
    scores = {submission.id: 0.0 for submission in session.submissions}
    for submission_id in scores:
        votes = [vote for vote in session.votes if vote.submission_id == submission_id]
        up, down = _side_weights(votes)
        scores[submission_id] = up - down
    return scores


def tally(session: VotingSession) -> list[SubmissionTally]:
    """Return per-submission tallies in submission order."""
    scores = submission_scores(session)
    tallies = []
    for submission in session.submissions:
        kinds = [vote.kind for vote in session.votes if vote.submission_id == submission.id]
        tallies.append(
            SubmissionTally(
                submission_id=submission.id,
                author_id=submission.author_id,
                score=scores[submission.id],
                approvals=kinds.count(SessionVoteKind.APPROVE),
                rejections=kinds.count(SessionVoteKind.REJECT),
                neutral=kinds.count(SessionVoteKind.NEUTRAL),
            )
        )
    return tallies


def positive_leader(scores: dict[str, float]) -> str | None:
    """Return the submission with the strictly highest score if that score is positive."""
    if not scores:
        return None
    best = max(scores.values())
    if best <= 0:
        return None
    leaders = [submission_id for submission_id, value in scores.items() if value == best]
    if len(leaders) != 1:
        return None
    return leaders[0]


def earliest(submissions: Iterable[Submission]) -> Submission:
    """Return the earliest submitted entry; equal timestamps go to the lowest id."""
    return min(submissions, key=lambda submission: (submission.submitted_at, submission.id))


def expiry_winner(session: VotingSession) -> Submission:
    """Choose the winner of a session whose deadline has passed.

    A positive-score leader wins; tied positive leaders resolve to the
    earliest of them; with no positive score the earliest submission wins.
    """
    scores = submission_scores(session)
    best = max(scores.values())
    if best > 0:
        tied = [s for s in session.submissions if scores[s.id] == best]
        return earliest(tied)
    return earliest(session.submissions)
