"""
API tests through FastAPI's TestClient
"""

import pytest
from fastapi.testclient import TestClient

from recstream.core.registry import DEFAULT_MODEL_VERSION, ModelRegistry
from recstream.serving.api import create_app
from recstream.serving.services import RecommendationService, TrainingService
from recstream.streaming.bus import InMemoryMessageBus


@pytest.fixture
def client(demo_store, clock):
    bus = InMemoryMessageBus()
    registry = ModelRegistry()
    app = create_app(
        recommendation=RecommendationService(demo_store, bus, registry=registry, clock=clock),
        training=TrainingService(demo_store, bus, registry=registry, clock=clock)
    )
    with TestClient(app) as test_client:
        yield test_client


def test_recommendations_enriched_with_products(client):
    response = client.get("/recommendations/user-1", params={"limit": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["success"]
    assert body["model_version"] == DEFAULT_MODEL_VERSION
    assert body["recommendations"][0]["product_id"] == "product-8"
    assert body["recommendations"][0]["product"]["category"] == "Аксессуары"


def test_limit_is_validated(client):
    response = client.get("/recommendations/user-1", params={"limit": 0})

    assert response.status_code == 422


def test_refresh_endpoint(client):
    response = client.post("/recommendations/user-5/refresh", json={"limit": 3})

    assert response.status_code == 200
    assert len(response.json()["recommendations"]) == 3


def test_track_activity(client):
    response = client.post("/track", json={
        "user_id": "user-5",
        "activity_type": "purchase",
        "product_id": "product-1",
        "metadata": {"quantity": 1, "price": 29999.0}
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"]
    assert body["notified"]


def test_track_unknown_activity_type(client):
    response = client.post("/track", json={"user_id": "user-5", "activity_type": "click", "product_id": "product-1"})

    assert response.status_code == 400
    assert response.json()["error_type"] == "ValidationError"


def test_model_push_without_weights_keeps_current_model(client):
    response = client.post("/model/update", json={"version": "v2.0"})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert client.get("/model/current").json()["version"] == DEFAULT_MODEL_VERSION


def test_model_push(client):
    response = client.post("/model/update", json={"version": "v2.0", "weights": {"view": 1, "purchase": 5}})

    assert response.status_code == 200
    assert response.json()["swapped"]
    current = client.get("/model/current").json()
    assert current["version"] == "v2.0"
    assert current["model"]["weights"] == {"view": 1.0, "purchase": 5.0}


def test_train_and_status(client):
    response = client.post("/train", json={"config": {"time_decay": 0.8}})

    assert response.status_code == 200
    assert response.json()["status"] in ("started", "queued")

    status = client.get("/status").json()
    assert status["success"]
    assert set(status["status"]) == {"is_training", "current_job", "queue_length", "completed_models"}


def test_train_with_malformed_config(client):
    response = client.post("/train", json={"config": {"weights": {"click": 1}}})

    assert response.status_code == 400


def test_models(client):
    response = client.get("/models")

    assert response.status_code == 200
    assert response.json() == {"success": True, "models": []}


def test_health(client):
    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["components"]["model_version"] == DEFAULT_MODEL_VERSION
    assert body["components"]["event_processor"] == "healthy"


def test_model_push_with_non_numeric_decay(client):
    response = client.post("/model/update", json={"version": "v2.0", "weights": {"view": 1}, "time_decay": "fast"})

    assert response.status_code == 400
    assert response.json()["error_type"] == "ValidationError"
    assert client.get("/model/current").json()["version"] == DEFAULT_MODEL_VERSION


def test_user_activities(client):
    response = client.get("/activities/user-1", params={"limit": 2})

    assert response.status_code == 200
    activities = response.json()["activities"]
    assert [a["product_id"] for a in activities] == ["product-6", "product-2"]


def test_behavior_profile(client):
    response = client.get("/profile/user-1")

    assert response.status_code == 200
    profile = response.json()["profile"]
    purchase = next(row for row in profile["summary"] if row["activity_type"] == "purchase")
    assert purchase["avg_purchase_value"] == 2999.0
    assert len(profile["recently_viewed"]) == 3


def test_recommendation_stats(client):
    client.get("/recommendations/user-1")

    response = client.get("/stats/user-1")

    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["total_recommendations"] == 1
    assert stats["model_version"] == DEFAULT_MODEL_VERSION


def test_recommendation_stats_for_unknown_user(client):
    stats = client.get("/stats/nobody").json()["stats"]

    assert stats["total_recommendations"] == 0
    assert stats["model_version"] == "N/A"
