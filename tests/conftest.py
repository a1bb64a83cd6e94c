# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from itertools import count
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "storyweave-test-secret")
os.environ.setdefault("KV_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from storyweave.api.v1.dependencies import get_engine_dep
from storyweave.core.security import create_access_token
from storyweave.db.session import Base
from storyweave.db.session import get_db as app_get_session
from storyweave.main import app as fastapi_app
from storyweave.repositories.reputation_repo import ReputationRepository
from storyweave.schemas.submission import Submission
from storyweave.services.collaborators import NotificationEvent
from storyweave.services.engine import VotingEngine
from storyweave.services.intake import SubmissionIntake
from storyweave.services.voting_sessions import VotingSessionManager
from storyweave.services.weights import WeightCalculator
from storyweave.storage.kv import MemoryKeyValueStore

TEST_DB_URL = "sqlite://"
START_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

_SUBMISSION_COUNTER = count(1)


class FakeClock:
    """Controllable clock; call it to read the current time."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FixedWeights:
    """Weight source returning configured weights (1.0 unless overridden)."""

    def __init__(self, default: float = 1.0) -> None:
        self.default = default
        self.overrides: dict[str, float] = {}
        self.calls: list[tuple[str, str]] = []

    def weight(self, user_id: str, community_id: str) -> float:
        self.calls.append((user_id, community_id))
        return self.overrides.get(user_id, self.default)


class RecordingAppender:
    """Story appender that records appends and can be told to fail."""

    def __init__(self) -> None:
        self.appends: list[tuple[str, int, str, str]] = []
        self.failures_remaining = 0

    async def append_content(
        self, story_id: str, position: int, content: str, author_id: str
    ) -> None:
        if self.failures_remaining:
            self.failures_remaining -= 1
            raise ConnectionError("story service unavailable")
        self.appends.append((story_id, position, content, author_id))


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, NotificationEvent]] = []

    async def notify(self, user_id: str, event: NotificationEvent) -> None:
        self.events.append((user_id, event))

    def types_for(self, user_id: str) -> list[str]:
        return [event.type for uid, event in self.events if uid == user_id]


class RecordingVisibility:
    def __init__(self) -> None:
        self.calls: list[tuple[str, bool]] = []

    async def set_hidden(self, target_id: str, hidden: bool) -> None:
        self.calls.append((target_id, hidden))


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    factory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield factory
    finally:
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def reputation(db_session: Session) -> ReputationRepository:
    return ReputationRepository(db_session)


@pytest.fixture()
def weight_calculator(reputation: ReputationRepository, clock: FakeClock) -> WeightCalculator:
    return WeightCalculator(reputation, clock=clock)


@pytest.fixture()
def fixed_weights() -> FixedWeights:
    return FixedWeights()


@pytest.fixture()
def appender() -> RecordingAppender:
    return RecordingAppender()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def visibility() -> RecordingVisibility:
    return RecordingVisibility()


@pytest.fixture()
def manager(
    store: MemoryKeyValueStore,
    fixed_weights: FixedWeights,
    reputation: ReputationRepository,
    appender: RecordingAppender,
    notifier: RecordingNotifier,
    clock: FakeClock,
) -> VotingSessionManager:
    return VotingSessionManager(
        store,
        fixed_weights,  # type: ignore[arg-type]
        reputation,
        appender,
        notifier,
        clock=clock,
        window_seconds=24 * 60 * 60,
    )


@pytest.fixture()
def intake(
    store: MemoryKeyValueStore,
    manager: VotingSessionManager,
    clock: FakeClock,
) -> SubmissionIntake:
    return SubmissionIntake(
        store,
        manager,
        clock=clock,
        debounce_seconds=0.05,
        poll_interval_seconds=0.01,
        grace_seconds=1.0,
    )


@pytest.fixture()
def make_submission(clock: FakeClock) -> Callable[..., Submission]:
    """Build submissions whose timestamps increase by one second each."""

    def _make(author_id: str, **overrides: Any) -> Submission:
        number = next(_SUBMISSION_COUNTER)
        data: dict[str, Any] = {
            "id": f"sub-{number}",
            "story_id": "story1",
            "position": 5,
            "author_id": author_id,
            "content": f"A passage written by {author_id}.",
            "submitted_at": clock.now + timedelta(seconds=number),
            "community_id": "global",
        }
        data.update(overrides)
        return Submission(**data)

    return _make


@pytest.fixture()
def voting_engine(
    session_factory: sessionmaker[Session],
    store: MemoryKeyValueStore,
    appender: RecordingAppender,
    notifier: RecordingNotifier,
    visibility: RecordingVisibility,
    clock: FakeClock,
) -> Iterator[VotingEngine]:
    voting_engine = VotingEngine(
        session_factory,
        store=store,
        appender=appender,
        notifier=notifier,
        visibility=visibility,
        clock=clock,
        debounce_seconds=0.05,
        poll_interval_seconds=0.01,
    )
    try:
        yield voting_engine
    finally:
        voting_engine.reputation.session.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(
    app: FastAPI, voting_engine: VotingEngine, db_session: Session
) -> Iterator[TestClient]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_engine_dep] = lambda: voting_engine
    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_engine_dep, None)
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
