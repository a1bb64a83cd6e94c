# src/storyweave/api/v1/endpoints/stories.py
"""Story-level reading and reporting endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from storyweave.core.errors import EngineError
from storyweave.db.session import get_db
from storyweave.models import StoryPassage
from storyweave.schemas import StoryPassageResponse, StoryVotingStats

from ..dependencies import EngineDep, raise_http_error

router = APIRouter(prefix="/stories", tags=["stories"])

SessionDep = Annotated[Session, Depends(get_db)]


@router.get("/{story_id}/passages", response_model=list[StoryPassageResponse])
async def list_passages(story_id: str, db: SessionDep) -> list[StoryPassage]:
    """Return the accepted passages of a story in position order."""
    result = db.execute(
        select(StoryPassage)
        .where(StoryPassage.story_id == story_id)
        .order_by(StoryPassage.position)
    )
    return list(result.scalars())


@router.get("/{story_id}/stats", response_model=StoryVotingStats)
async def get_story_stats(story_id: str, engine: EngineDep) -> StoryVotingStats:
    """Summarise every voting session held for a story."""
    try:
        return await engine.story_stats(story_id)
    except EngineError as err:
        raise_http_error(err)
