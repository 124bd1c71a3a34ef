"""
Conditions API tests.

The request session is the test session, so rows seeded by a test are visible
to the endpoint and vice versa.
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from core.database import get_db
from main import app
from models import ForecastSlot, Scrape, ScoringLog, TideEvent
from services.condition_scores import save_condition_score
from scoring_helpers import HOUR_MS, add_slots, ms

START = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def client(db_session):
    def _override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def forecast(db_session, spot, wingfoil_config):
    """Three slots from a successful scrape, two tide extrema, one system score."""
    slots = [
        add_slots(db_session, spot, START, 1, scrape_timestamp=ms(START), speed=16.0, gust=20.0)[0],
        add_slots(db_session, spot, START.replace(hour=13), 1, scrape_timestamp=ms(START), speed=22.0, gust=26.0)[0],
        add_slots(db_session, spot, START.replace(hour=14), 1, scrape_timestamp=ms(START), speed=12.0, gust=15.0)[0],
    ]
    db_session.add(Scrape(spot_id=spot.id, scrape_timestamp=ms(START), is_successful=True, slots_count=3))
    db_session.add_all([
        TideEvent(spot_id=spot.id, time=ms(START) - 5 * HOUR_MS, type="low", height=0.8),
        TideEvent(spot_id=spot.id, time=ms(START) + int(1.5 * HOUR_MS), type="high", height=3.2),
    ])
    db_session.commit()
    save_condition_score(
        db_session,
        slot_id=slots[0].id,
        spot_id=spot.id,
        timestamp=slots[0].timestamp,
        sport="wingfoil",
        score=64,
        reasoning="Solid and steady.",
        factors={"windQuality": 70},
        model="gpt-4o-mini",
        scored_at=ms(START),
    )
    return slots


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestScrapeIngestion:

    def test_valid_scrape_is_queued(self, client, spot, monkeypatch):
        queued = []
        monkeypatch.setattr(
            "tasks.scoring_tasks.enqueue_scoring_jobs",
            lambda spot_id, scrape_timestamp, slot_ids: queued.append(len(slot_ids)),
        )
        now = int(datetime.now(timezone.utc).timestamp() * 1000)
        body = {
            "scrape_timestamp": now,
            "slots": [
                {"timestamp": now + i * 3 * HOUR_MS, "speed": 14, "gust": 18, "direction": 20}
                for i in range(16)
            ],
        }
        response = client.post(f"/v1/spots/{spot.id}/scrapes", json=body)

        assert response.status_code == 201
        data = response.json()
        assert data["is_successful"] is True
        assert data["slots_count"] == 16
        assert queued == [16]

    def test_invalid_scrape_is_recorded(self, client, db_session, spot, monkeypatch):
        monkeypatch.setattr("tasks.scoring_tasks.enqueue_scoring_jobs", MagicMock())
        body = {"scrape_timestamp": 1, "slots": [{"timestamp": 1, "speed": 5, "gust": 8, "direction": 90}]}
        response = client.post(f"/v1/spots/{spot.id}/scrapes", json=body)

        assert response.status_code == 201
        assert response.json()["is_successful"] is False
        assert response.json()["error_message"] == "Insufficient slots: 1 < 10"
        assert db_session.query(ForecastSlot).count() == 1

    def test_unknown_spot(self, client):
        response = client.post(f"/v1/spots/{uuid4()}/scrapes", json={"scrape_timestamp": 1, "slots": []})
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_missing_required_field(self, client, spot):
        body = {"scrape_timestamp": 1, "slots": [{"timestamp": 1, "speed": 5}]}
        assert client.post(f"/v1/spots/{spot.id}/scrapes", json=body).status_code == 422


class TestTides:

    def test_replace_tides(self, client, db_session, spot):
        db_session.add(TideEvent(spot_id=spot.id, time=1, type="low", height=0.5))
        db_session.commit()

        body = {"events": [
            {"time": 1000, "type": "high", "height": 3.0},
            {"time": 2000, "type": "low", "height": 0.7},
        ]}
        response = client.put(f"/v1/spots/{spot.id}/tides", json=body)

        assert response.status_code == 200
        assert response.json()["stored"] == 2
        assert sorted(e.time for e in db_session.query(TideEvent).all()) == [1000, 2000]

    def test_invalid_tide_type(self, client, spot):
        body = {"events": [{"time": 1, "type": "slack", "height": 1.0}]}
        assert client.put(f"/v1/spots/{spot.id}/tides", json=body).status_code == 422


class TestScores:

    def test_effective_scores(self, client, spot, forecast):
        response = client.get(f"/v1/spots/{spot.id}/scores", params={"sport": "wingfoil"})
        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["score"] == 64
        assert data[0]["factors"] == {"windQuality": 70}

    def test_unknown_sport_is_rejected(self, client, spot):
        response = client.get(f"/v1/spots/{spot.id}/scores", params={"sport": "parasailing"})
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_SPORT"


class TestForecast:

    def test_forecast_view(self, client, spot, forecast):
        response = client.get(f"/v1/spots/{spot.id}/forecast", params={"sport": "wingfoil"})
        assert response.status_code == 200
        data = response.json()

        assert data["spot_name"] == "Praia do Guincho"
        assert data["timezone"] == "Europe/Lisbon"
        first, second, third = data["slots"]

        assert first["score"]["score"] == 64
        assert first["score"]["is_personalized"] is False
        assert second["score"] is None

        assert first["tide"] == {
            "is_exact_time": False, "is_rising": True, "is_falling": False,
            "time": None, "type": None, "height": None, "time_str": None,
        }
        assert second["tide"]["is_exact_time"] is True
        assert second["tide"]["type"] == "high"
        # 13:30 UTC is 14:30 in Lisbon summer time
        assert second["tide"]["time_str"] == "14:30"
        assert third["tide"]["is_falling"] is True

        assert [s["matches_criteria"] for s in data["slots"]] == [True, True, False]
        assert [s["is_ideal"] for s in data["slots"]] == [False, True, False]
        assert [s["is_epic"] for s in data["slots"]] == [False, True, False]

    def test_sport_is_required(self, client, spot):
        assert client.get(f"/v1/spots/{spot.id}/forecast").status_code == 422

    def test_unknown_spot(self, client):
        response = client.get(f"/v1/spots/{uuid4()}/forecast", params={"sport": "surfing"})
        assert response.status_code == 404


class TestScoringLog:

    def test_log_for_score(self, client, db_session, spot, forecast):
        score_id = UUID(client.get(f"/v1/spots/{spot.id}/scores").json()[0]["id"])
        db_session.add(ScoringLog(
            score_id=score_id, slot_id=forecast[0].id, spot_id=spot.id, sport="wingfoil",
            timestamp=forecast[0].timestamp, system_prompt="sys", user_prompt="user", model="gpt-4o-mini",
            temperature=0.3, max_tokens=800, raw_response="{}", scored_at=1, attempt=2,
        ))
        db_session.commit()

        response = client.get(f"/v1/scores/{score_id}/log")
        assert response.status_code == 200
        assert response.json()["attempt"] == 2
        assert response.json()["user_prompt"] == "user"

    def test_missing_log(self, client):
        assert client.get(f"/v1/scores/{uuid4()}/log").status_code == 404


class TestUnscoredBackfill:

    def test_backfill_is_queued(self, client, spot, monkeypatch):
        task = MagicMock()
        task.delay.return_value.id = "task-123"
        monkeypatch.setattr("tasks.scoring_tasks.score_unscored_slots_task", task)

        response = client.post(
            "/v1/admin/scoring/unscored",
            json={"spot_ids": [str(spot.id)], "sports": ["Wingfoil"], "start": 1},
        )

        assert response.status_code == 202
        assert response.json() == {"task_id": "task-123", "status": "queued"}
        task.delay.assert_called_once_with(spot_ids=[str(spot.id)], sports=["wingfoil"], start=1, end=None)

    def test_backfill_rejects_unknown_sport(self, client, monkeypatch):
        task = MagicMock()
        monkeypatch.setattr("tasks.scoring_tasks.score_unscored_slots_task", task)
        response = client.post("/v1/admin/scoring/unscored", json={"sports": ["kayak"]})
        assert response.status_code == 422
        task.delay.assert_not_called()
