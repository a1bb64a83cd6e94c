# src/storyweave/api/v1/endpoints/sessions.py
"""Voting session endpoints."""

from fastapi import APIRouter

from storyweave.core.errors import EngineError
from storyweave.schemas import SessionResults, SessionVoteCreate

from ..dependencies import CurrentUserDep, EngineDep, raise_http_error

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("/{session_id}", response_model=SessionResults)
async def get_session_results(session_id: str, engine: EngineDep) -> SessionResults:
    """Return tallies and status for a session, resolving it if its deadline passed."""
    try:
        return await engine.get_session_results(session_id)
    except EngineError as err:
        raise_http_error(err)


@router.post("/{session_id}/votes", response_model=SessionResults)
async def cast_session_vote(
    session_id: str,
    vote_data: SessionVoteCreate,
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> SessionResults:
    """Record or replace the caller's vote in a session."""
    try:
        return await engine.vote(
            session_id, vote_data.submission_id, current_user, vote_data.kind
        )
    except EngineError as err:
        raise_http_error(err)
