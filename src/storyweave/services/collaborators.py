"""Adapters for the collaborators the engine calls out to.

The story itself, notification delivery and content visibility belong to
the surrounding application. The engine only depends on the small
protocols below; the default implementations write accepted passages through
SQLAlchemy, deliver notifications to an optional webhook, and log visibility
changes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storyweave.core.errors import ConflictError, StorageError
from storyweave.core.settings import settings
from storyweave.db.time import utcnow
from storyweave.models.story_passage import StoryPassage

logger = logging.getLogger(__name__)


class NotificationEvent(BaseModel):
    """Payload delivered to a user when a submission or session changes state."""

    type: str
    story_id: str
    position: int
    session_id: str | None = None
    submission_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class StoryAppender(Protocol):
    async def append_content(
        self, story_id: str, position: int, content: str, author_id: str
    ) -> None:
        """Append accepted content to a story; raise StorageError on failure."""


class Notifier(Protocol):
    async def notify(self, user_id: str, event: NotificationEvent) -> None:
        """Deliver ``event`` to ``user_id``."""


class VisibilityHook(Protocol):
    async def set_hidden(self, target_id: str, hidden: bool) -> None:
        """Mark a content item hidden or visible."""


class SqlStoryLedger:
    """Story appender writing one ``story_passage`` row per filled position."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def append_content(
        self, story_id: str, position: int, content: str, author_id: str
    ) -> None:
        with self._session_factory() as db:
            try:
                existing = db.execute(
                    select(StoryPassage).where(
                        StoryPassage.story_id == story_id,
                        StoryPassage.position == position,
                    )
                ).scalars().first()
                if existing is not None:
                    if existing.author_id == author_id and existing.content == content:
                        # Retry of an append that already landed.
                        return
                    raise ConflictError(
                        f"Position {position} of story {story_id} is already filled"
                    )
                db.add(
                    StoryPassage(
                        story_id=story_id,
                        position=position,
                        author_id=author_id,
                        content=content,
                    )
                )
                db.commit()
            except SQLAlchemyError as err:
                db.rollback()
                logger.warning("Story append failed for %s@%d: %s", story_id, position, err)
                raise StorageError("Failed to append story content") from err
        logger.info("Appended passage to story %s at position %d", story_id, position)

    def passages(self, story_id: str) -> list[StoryPassage]:
        """Return the accepted passages of a story ordered by position."""
        with self._session_factory() as db:
            result = db.execute(
                select(StoryPassage)
                .where(StoryPassage.story_id == story_id)
                .order_by(StoryPassage.position)
            )
            return list(result.scalars())


class LoggingNotifier:
    """Notifier used when no delivery endpoint is configured."""

    async def notify(self, user_id: str, event: NotificationEvent) -> None:
        logger.info("Notify %s: %s (story %s)", user_id, event.type, event.story_id)


class WebhookNotifier:
    """POST notifications as JSON to a configured webhook."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.notify_http_timeout_seconds
        )

    async def notify(self, user_id: str, event: NotificationEvent) -> None:
        payload = {"user_id": user_id, "event": event.model_dump(mode="json")}
        response = await self._client.post(self.url, json=payload)
        response.raise_for_status()

    async def close(self) -> None:
        await self._client.aclose()


class LoggingVisibilityHook:
    """Visibility hook that only records transitions."""

    async def set_hidden(self, target_id: str, hidden: bool) -> None:
        logger.info("Content %s is now %s", target_id, "hidden" if hidden else "visible")


async def dispatch_notification(
    notifier: Notifier, user_id: str, event: NotificationEvent
) -> None:
    """Deliver a notification without letting delivery failures propagate.

    Notifications are fire-and-forget: a committed resolution must never be
    rolled back because a message could not be sent.
    """
    try:
        await notifier.notify(user_id, event)
    except httpx.HTTPError as err:
        logger.warning("Notification %s to %s failed: %s", event.type, user_id, err)
    except Exception:  # noqa: BLE001 - delivery is best effort
        logger.warning(
            "Notification %s to %s raised unexpectedly", event.type, user_id, exc_info=True
        )


def build_notifier() -> Notifier:
    """Return the notifier selected by configuration."""
    if settings.notify_webhook_url:
        return WebhookNotifier(settings.notify_webhook_url)
    return LoggingNotifier()
