# src/storyweave/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    content_router,
    sessions_router,
    stories_router,
    submissions_router,
    system_router,
)

__all__ = [
    "submissions_router",
    "sessions_router",
    "content_router",
    "stories_router",
    "system_router",
]
