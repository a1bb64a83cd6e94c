"""Background sweep resolving voting sessions whose deadline has passed.

Expiry is evaluated lazily on every access path, so this worker is only an
optimisation that keeps idle sessions from waiting for their next reader.
"""

from __future__ import annotations

import asyncio
import logging

from storyweave.core.errors import EngineError
from storyweave.core.settings import settings
from storyweave.services.engine import VotingEngine

logger = logging.getLogger(__name__)


class ExpirySweepWorker:
    """Periodically calls ``process_expired_sessions`` on an engine."""

    def __init__(self, engine: VotingEngine, interval_seconds: float | None = None) -> None:
        self.engine = engine
        self.interval = max(
            0.1,
            float(
                interval_seconds if interval_seconds is not None
                else settings.expiry_sweep_interval_seconds
            ),
        )
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def run_once(self) -> list[str]:
        """Run a single sweep, logging failures instead of raising them."""
        try:
            return await self.engine.process_expired_sessions()
        except EngineError as e:
            logger.warning("ExpirySweepWorker encountered engine error: %s", e)
        except (OSError, ConnectionError, TimeoutError) as e:
            logger.warning("ExpirySweepWorker encountered network error: %s", e)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error(
                "ExpirySweepWorker encountered data processing error: %s", e, exc_info=True
            )
        return []

    async def _run(self) -> None:
        while not self._stopping.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except TimeoutError:
                continue
