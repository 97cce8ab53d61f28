"""Tests for the JSON API."""

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from squadgrowth.db.session import get_db
from squadgrowth.growth.stores import SnapshotStore
from squadgrowth.services import roster
from squadgrowth.web.main import app, get_suggester


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_suggester] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(db_session, make_player, make_match):
    player = make_player("Riley Shaw", position="CM")
    match = make_match(date(2026, 3, 1))
    return {"player_id": player.id, "match_id": match.id}


class TestReviewEndpoints:

    def test_submit_review(self, client, seeded):
        response = client.post(
            "/api/reviews",
            json={**seeded, "goals": 2, "minutes_played": 90, "feedback": "Great engine"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["match_computed_attributes"]["shooting"] == 51
        assert body["data"]["per_attribute_growth"]["shooting"] == 1
        assert body["data"]["ai_rating"] is not None
        assert body["data"]["ai_suggestions"] is None

    def test_invalid_body_is_400(self, client, seeded):
        response = client.post("/api/reviews", json={**seeded, "goals": -2})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["loc"][-1] == "goals"

    def test_missing_ids_is_400(self, client):
        response = client.post("/api/reviews", json={"goals": 1})
        assert response.status_code == 400

    def test_unknown_player_is_404(self, client, seeded):
        response = client.post("/api/reviews", json={"player_id": 9999, "match_id": seeded["match_id"]})

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Player 9999 not found"}

    def test_read_back_review(self, client, seeded):
        client.post("/api/reviews", json={**seeded, "tackles": 3})

        single = client.get(f"/api/reviews/{seeded['player_id']}/{seeded['match_id']}")
        by_match = client.get(f"/api/reviews/match/{seeded['match_id']}")

        assert single.status_code == 200
        assert single.json()["data"]["tackles"] == 3
        assert by_match.json()["count"] == 1
        assert by_match.json()["data"][0]["player_name"] == "Riley Shaw"

    def test_missing_review_is_404(self, client, seeded):
        response = client.get(f"/api/reviews/{seeded['player_id']}/{seeded['match_id']}")
        assert response.status_code == 404

    def test_persistence_failure_is_500(self, client, seeded, monkeypatch):
        def failing_upsert(self, entries):
            raise OperationalError("INSERT INTO player_snapshots", {}, Exception("database is locked"))

        monkeypatch.setattr(SnapshotStore, "upsert_many", failing_upsert)

        response = client.post("/api/reviews", json={**seeded, "goals": 1})

        assert response.status_code == 500
        assert response.json()["success"] is False


class TestPlayerEndpoints:

    def test_growth_history(self, client, seeded):
        client.post("/api/reviews", json={**seeded, "assists": 2, "minutes_played": 60})

        response = client.get(f"/api/players/{seeded['player_id']}/growth")

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["total_matches"] == 1
        assert [entry["is_initial"] for entry in data["growth_history"]] == [True, False]

    def test_summary(self, client, seeded):
        client.post("/api/reviews", json={**seeded, "goals": 1, "minutes_played": 70})

        data = client.get(f"/api/players/{seeded['player_id']}/summary").json()["data"]

        assert data["stats"]["goals"] == 1
        assert data["ai_grades"]["total_reviews"] == 1

    def test_attach_player_creates_initial_once(self, client, db_session, team):
        player = roster.create_player(db_session, "New Signing")
        db_session.commit()
        player_id = player.id

        first = client.post(f"/api/teams/{team.id}/players/{player_id}")
        second = client.post(f"/api/teams/{team.id}/players/{player_id}")

        assert first.json()["data"]["initial_snapshot_created"] is True
        assert second.json()["data"]["initial_snapshot_created"] is False

    def test_attach_to_unknown_team_is_404(self, client, seeded):
        response = client.post(f"/api/teams/9999/players/{seeded['player_id']}")
        assert response.status_code == 404


class TestMatchEndpoints:

    def test_redate_match(self, client, seeded):
        client.post("/api/reviews", json={**seeded, "goals": 1})

        response = client.patch(f"/api/matches/{seeded['match_id']}", json={"match_date": "2026-04-02"})

        assert response.status_code == 200
        assert response.json()["data"]["rechained_player_ids"] == [seeded["player_id"]]

    def test_delete_match(self, client, seeded):
        client.post("/api/reviews", json={**seeded, "goals": 1})

        response = client.delete(f"/api/matches/{seeded['match_id']}")
        history = client.get(f"/api/players/{seeded['player_id']}/growth").json()["data"]

        assert response.status_code == 200
        assert history["total_matches"] == 0

    def test_delete_unknown_match_is_404(self, client):
        assert client.delete("/api/matches/9999").status_code == 404


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
