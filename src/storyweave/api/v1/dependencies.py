"""Shared API dependencies for authentication and error mapping."""

from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storyweave.core.errors import (
    ConflictError,
    EngineError,
    SessionNotFoundError,
    StorageError,
    ValidationError,
)
from storyweave.core.security import decode_subject
from storyweave.services.engine import VotingEngine, get_engine

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

RETRY_AFTER_SECONDS = "1"


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> str:
    """Return the user id carried by the bearer token.

    Raises:
        HTTPException: If the token is invalid, expired or has no subject.
    """
    user_id = decode_subject(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user_id


def get_engine_dep() -> VotingEngine:
    """Return the shared voting engine."""
    return get_engine()


CurrentUserDep = Annotated[str, Depends(get_current_user_id)]
EngineDep = Annotated[VotingEngine, Depends(get_engine_dep)]


def raise_http_error(err: EngineError) -> NoReturn:
    """Translate an engine error into the matching HTTP response."""
    if isinstance(err, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(err)
        ) from err
    if isinstance(err, SessionNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(err)) from err
    if isinstance(err, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(err)) from err
    if isinstance(err, StorageError):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage temporarily unavailable",
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        ) from err
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Voting engine failure"
    ) from err
