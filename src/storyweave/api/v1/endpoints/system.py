"""System and transparency endpoints for the StoryWeave API."""

from __future__ import annotations

from fastapi import APIRouter

from storyweave.core.errors import EngineError
from storyweave.core.settings import settings
from storyweave.services.scoring import HIDE_THRESHOLD, MIN_QUORUM, QUORUM_FACTOR

from ..dependencies import CurrentUserDep, EngineDep, raise_http_error

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings; suitable for transparency UIs.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "jwt_algorithm": settings.jwt_algorithm,
        },
        "submissions": {
            "max_chars": settings.max_submission_chars,
            "word_limit": settings.submission_word_limit,
            "debounce_seconds": settings.submission_debounce_seconds,
            "default_community_id": settings.default_community_id,
        },
        "voting": {
            "window_seconds": settings.voting_window_seconds,
            "min_quorum": MIN_QUORUM,
            "quorum_factor": QUORUM_FACTOR,
            "hide_threshold": HIDE_THRESHOLD,
        },
        "kv_backend": settings.kv_backend,
        "expiry_sweep_enabled": settings.expiry_sweep_enabled,
    }


@router.post("/sweep")
async def sweep_expired_sessions(
    current_user: CurrentUserDep,
    engine: EngineDep,
) -> dict[str, object]:
    """Resolve every session whose deadline has passed."""
    try:
        resolved = await engine.process_expired_sessions()
    except EngineError as err:
        raise_http_error(err)
    return {"resolved": resolved, "count": len(resolved)}
