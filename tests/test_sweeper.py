import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from storyweave.core.errors import StorageError
from storyweave.services.sweeper import ExpirySweepWorker


@pytest.fixture
def mock_engine():
    engine = MagicMock()
    engine.process_expired_sessions = AsyncMock(return_value=["s1"])
    return engine


@pytest.mark.asyncio
async def test_run_once_returns_resolved_ids(mock_engine):
    worker = ExpirySweepWorker(mock_engine, interval_seconds=0.1)

    assert await worker.run_once() == ["s1"]


@pytest.mark.asyncio
async def test_run_once_logs_engine_errors(mock_engine, caplog):
    mock_engine.process_expired_sessions.side_effect = StorageError("redis down")
    worker = ExpirySweepWorker(mock_engine, interval_seconds=0.1)

    assert await worker.run_once() == []
    assert "ExpirySweepWorker encountered engine error" in caplog.text


@pytest.mark.asyncio
async def test_worker_sweeps_until_stopped(mock_engine):
    worker = ExpirySweepWorker(mock_engine, interval_seconds=0.1)

    await worker.start()
    await asyncio.sleep(0.25)
    await worker.stop()

    calls = mock_engine.process_expired_sessions.await_count
    assert calls >= 2
    await asyncio.sleep(0.15)
    assert mock_engine.process_expired_sessions.await_count == calls


@pytest.mark.asyncio
async def test_stop_without_start_is_a_no_op(mock_engine):
    worker = ExpirySweepWorker(mock_engine)

    await worker.stop()
    mock_engine.process_expired_sessions.assert_not_awaited()
