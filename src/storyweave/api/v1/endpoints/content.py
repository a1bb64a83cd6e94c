# src/storyweave/api/v1/endpoints/content.py
"""Standing content vote endpoints."""

from fastapi import APIRouter

from storyweave.core.errors import EngineError
from storyweave.schemas import ContentVoteCreate, VotingMetrics

from ..dependencies import CurrentUserDep, EngineDep, raise_http_error

router = APIRouter(prefix="/content", tags=["content"])


@router.post("/{target_id}/votes", response_model=VotingMetrics)
async def cast_content_vote(
    target_id: str,
    vote_data: ContentVoteCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> VotingMetrics:
    """Record or replace the caller's vote on a content item."""
    try:
        return await engine.cast_content_vote(
            target_id,
            current_user,
            vote_data.kind,
            community_id=vote_data.community_id,
            author_id=vote_data.author_id,
        )
    except EngineError as err:
        raise_http_error(err)


@router.delete("/{target_id}/votes", response_model=VotingMetrics)
async def remove_content_vote(
    target_id: str,
    current_user: CurrentUserDep,
    engine: EngineDep,
    author_id: str | None = None,
    community_id: str | None = None,
) -> VotingMetrics:
    """Withdraw the caller's vote on a content item."""
    try:
        return await engine.remove_content_vote(
            target_id, current_user, community_id=community_id, author_id=author_id
        )
    except EngineError as err:
        raise_http_error(err)


@router.get("/{target_id}/metrics", response_model=VotingMetrics)
async def get_voting_metrics(target_id: str, engine: EngineDep) -> VotingMetrics:
    try:
        return await engine.get_voting_metrics(target_id)
    except EngineError as err:
        raise_http_error(err)


@router.get("/{target_id}/hidden")
async def get_hidden_state(target_id: str, engine: EngineDep) -> dict[str, object]:
    try:
        hidden = await engine.is_hidden(target_id)
    except EngineError as err:
        raise_http_error(err)
    return {"target_id": target_id, "hidden": hidden}
