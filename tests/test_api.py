from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from storyweave.core.errors import StorageError
from storyweave.services.engine import VotingEngine


def _open_session(voting_engine: VotingEngine, make_submission, *authors: str):
    submissions = [make_submission(author) for author in authors]
    return asyncio.run(voting_engine.sessions.open_session(submissions)), submissions


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_root_describes_api(client: TestClient) -> None:
    data = client.get("/").json()

    assert data["name"] == "StoryWeave API"
    assert data["docs"] == "/docs"


def test_submission_requires_authentication(client: TestClient) -> None:
    response = client.post(
        "/api/v1/submissions",
        json={"story_id": "story1", "position": 0, "content": "Hello."},
    )

    assert response.status_code in (401, 403)


def test_invalid_token_rejected(client: TestClient) -> None:
    response = client.post(
        "/api/v1/submissions",
        json={"story_id": "story1", "position": 0, "content": "Hello."},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


def test_uncontested_submission_is_accepted(client: TestClient, auth_headers, appender) -> None:
    response = client.post(
        "/api/v1/submissions",
        json={"story_id": "story1", "position": 0, "content": "It began with a knock."},
        headers=auth_headers("alice"),
    )

    assert response.status_code == 201
    assert response.json()["status"] == "accepted"
    assert appender.appends == [("story1", 0, "It began with a knock.", "alice")]


def test_submission_errors_are_mapped(client: TestClient, auth_headers) -> None:
    blank = client.post(
        "/api/v1/submissions",
        json={"story_id": "story1", "position": 0, "content": "   "},
        headers=auth_headers("alice"),
    )
    assert blank.status_code == 422

    client.post(
        "/api/v1/submissions",
        json={"story_id": "story1", "position": 0, "content": "Taken."},
        headers=auth_headers("alice"),
    )
    filled = client.post(
        "/api/v1/submissions",
        json={"story_id": "story1", "position": 0, "content": "Too late."},
        headers=auth_headers("bob"),
    )
    assert filled.status_code == 409


def test_unknown_session_returns_404(client: TestClient, auth_headers) -> None:
    assert client.get("/api/v1/sessions/missing").status_code == 404

    response = client.post(
        "/api/v1/sessions/missing/votes",
        json={"submission_id": "x", "kind": "approve"},
        headers=auth_headers("v1"),
    )
    assert response.status_code == 404


def test_session_voting_flow(
    client: TestClient, auth_headers, voting_engine: VotingEngine, make_submission, appender
) -> None:
    session, (alice, bob) = _open_session(voting_engine, make_submission, "alice", "bob")

    own = client.post(
        f"/api/v1/sessions/{session.id}/votes",
        json={"submission_id": alice.id, "kind": "approve"},
        headers=auth_headers("alice"),
    )
    assert own.status_code == 409

    wrong_kind = client.post(
        f"/api/v1/sessions/{session.id}/votes",
        json={"submission_id": alice.id, "kind": "upvote"},
        headers=auth_headers("v1"),
    )
    assert wrong_kind.status_code == 422

    for voter in ("v1", "v2", "v3"):
        response = client.post(
            f"/api/v1/sessions/{session.id}/votes",
            json={"submission_id": alice.id, "kind": "approve"},
            headers=auth_headers(voter),
        )
        assert response.status_code == 200

    results = client.get(f"/api/v1/sessions/{session.id}").json()
    assert results["status"] == "completed"
    assert results["winning_submission_id"] == alice.id
    assert results["total_votes"] == 3
    assert len(appender.appends) == 1

    closed = client.post(
        f"/api/v1/sessions/{session.id}/votes",
        json={"submission_id": bob.id, "kind": "approve"},
        headers=auth_headers("v4"),
    )
    assert closed.status_code == 409


def test_content_voting_endpoints(client: TestClient, auth_headers) -> None:
    response = client.post(
        "/api/v1/content/post-1/votes",
        json={"kind": "upvote", "author_id": "writer"},
        headers=auth_headers("reader"),
    )
    assert response.status_code == 200
    assert response.json()["total_votes"] == 1

    self_vote = client.post(
        "/api/v1/content/post-1/votes",
        json={"kind": "upvote", "author_id": "writer"},
        headers=auth_headers("writer"),
    )
    assert self_vote.status_code == 409

    metrics = client.get("/api/v1/content/post-1/metrics").json()
    assert metrics["weighted_score"] > 0
    assert client.get("/api/v1/content/post-1/hidden").json() == {
        "target_id": "post-1",
        "hidden": False,
    }

    removed = client.delete(
        "/api/v1/content/post-1/votes",
        params={"author_id": "writer"},
        headers=auth_headers("reader"),
    )
    assert removed.status_code == 200
    assert removed.json()["total_votes"] == 0


def test_story_stats_endpoint(
    client: TestClient, voting_engine: VotingEngine, make_submission
) -> None:
    _open_session(voting_engine, make_submission, "alice", "bob")

    stats = client.get("/api/v1/stories/story1/stats").json()

    assert stats["total_sessions"] == 1
    assert stats["active_sessions"] == 1


def test_sweep_endpoint_resolves_expired_sessions(
    client: TestClient, auth_headers, voting_engine: VotingEngine, make_submission, clock
) -> None:
    session, _ = _open_session(voting_engine, make_submission, "alice", "bob")
    clock.advance(days=2)

    response = client.post("/api/v1/system/sweep", headers=auth_headers("operator"))

    assert response.status_code == 200
    assert response.json() == {"resolved": [session.id], "count": 1}


def test_public_config_excludes_secrets(client: TestClient) -> None:
    data = client.get("/api/v1/system/config").json()

    assert data["voting"]["min_quorum"] == 3
    assert data["submissions"]["max_chars"] == 280
    assert "secret_key" not in str(data)
    assert "database_url" not in str(data)


def test_storage_errors_map_to_503(
    client: TestClient, voting_engine: VotingEngine, mocker
) -> None:
    mocker.patch.object(voting_engine, "get_voting_metrics", side_effect=StorageError("down"))

    response = client.get("/api/v1/content/post-1/metrics")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"


@pytest.mark.parametrize("position", [-1, "first"])
def test_submission_body_validation(client: TestClient, auth_headers, position) -> None:
    response = client.post(
        "/api/v1/submissions",
        json={"story_id": "story1", "position": position, "content": "Hi."},
        headers=auth_headers("alice"),
    )

    assert response.status_code == 422


def test_story_passages_listed_in_position_order(client: TestClient, db_session) -> None:
    from storyweave.models import StoryPassage

    db_session.add_all(
        [
            StoryPassage(story_id="story1", position=1, author_id="bob", content="Then rain."),
            StoryPassage(story_id="story1", position=0, author_id="alice", content="First sun."),
            StoryPassage(story_id="story2", position=0, author_id="carol", content="Elsewhere."),
        ]
    )
    db_session.commit()

    passages = client.get("/api/v1/stories/story1/passages").json()

    assert [(p["position"], p["author_id"]) for p in passages] == [(0, "alice"), (1, "bob")]
