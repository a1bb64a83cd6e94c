from __future__ import annotations

import pytest

from storyweave.core.security import create_access_token, decode_subject
from storyweave.core.settings import Settings


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "abc")
    monkeypatch.setenv("SUBMISSION_DEBOUNCE_SECONDS", "0.5")
    monkeypatch.setenv("VOTING_WINDOW_SECONDS", "60")
    monkeypatch.setenv("SUBMISSION_WORD_LIMIT", "3-40")

    configured = Settings()

    assert configured.submission_debounce_seconds == 0.5
    assert configured.voting_window_seconds == 60
    assert configured.word_limit_range == (3, 40)


def test_test_database_override(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "abc")
    monkeypatch.setenv("USE_TEST_DATABASE", "true")
    monkeypatch.setenv("TEST_DATABASE_URL", "sqlite:///./test.db")

    assert Settings().effective_database_url == "sqlite:///./test.db"


def test_async_postgres_url_converted_for_tooling(monkeypatch) -> None:
    monkeypatch.setenv("SECRET_KEY", "abc")
    monkeypatch.setenv("USE_TEST_DATABASE", "false")
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@db/storyweave")

    assert Settings().database_url_sync == "postgresql+psycopg://u:p@db/storyweave"


def test_access_token_round_trip() -> None:
    token = create_access_token("alice")

    assert decode_subject(token) == "alice"


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_invalid_tokens_have_no_subject(token: str) -> None:
    assert decode_subject(token) is None
