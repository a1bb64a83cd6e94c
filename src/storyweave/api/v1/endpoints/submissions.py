# src/storyweave/api/v1/endpoints/submissions.py
"""Submission intake endpoint."""

from fastapi import APIRouter, status

from storyweave.core.errors import EngineError
from storyweave.schemas import SubmissionCreate, SubmissionReceipt

from ..dependencies import CurrentUserDep, EngineDep, raise_http_error

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post("", response_model=SubmissionReceipt, status_code=status.HTTP_201_CREATED)
async def create_submission(
    submission_data: SubmissionCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> SubmissionReceipt:
    """Propose a passage for a story position.

    The call returns once the position is decided for this submission:
    accepted outright, queued into a new voting session, or joined to
    competition that was already under way.
    """
    try:
        return await engine.submit(
            submission_data.story_id,
            submission_data.position,
            current_user,
            submission_data.content,
            community_id=submission_data.community_id,
        )
    except EngineError as err:
        raise_http_error(err)
