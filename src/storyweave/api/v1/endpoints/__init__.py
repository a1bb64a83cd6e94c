# src/storyweave/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .content import router as content_router
from .sessions import router as sessions_router
from .stories import router as stories_router
from .submissions import router as submissions_router
from .system import router as system_router

__all__ = [
    "content_router",
    "sessions_router",
    "stories_router",
    "submissions_router",
    "system_router",
]
