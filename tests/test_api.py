import pytest
from fastapi.testclient import TestClient

from main import app
from synq.services.optimization import OptimizationService, get_optimization_service
from synq.services.optimization_engine.facade import RouteOptimizationFacade
from synq.services.optimization_engine.route_cache import InMemoryCacheStorage, RouteCache
from synq.services.optimization_engine.routing_client import FallbackRouter
from tests.fakes import FailingProvider, FakeProvider, RecordingSleep


def build_service(*providers):
    router = FallbackRouter(
        list(providers),
        max_attempts=1,
        timeout=5.0,
        cache=RouteCache(storage=InMemoryCacheStorage(), ttl_seconds=60, max_entries=10),
        sleep=RecordingSleep()
    )
    return OptimizationService(RouteOptimizationFacade(router))


@pytest.fixture
def client():
    service = build_service(FakeProvider("mapquest"))
    app.dependency_overrides[get_optimization_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def degraded_client():
    service = build_service(FailingProvider("mapquest"), FailingProvider("osrm"))
    app.dependency_overrides[get_optimization_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


RIDE = {
    "waypoints": [
        {"id": "driver-1", "role": "origin", "location": {"lat": 32.7767, "lng": -96.7970}},
        {"id": "rider-1", "role": "pickup", "location": {"lat": 32.7801, "lng": -96.8003}},
        {"id": "venue", "role": "destination", "location": {"lat": 32.7905, "lng": -96.8103}},
    ],
    "constraints": {"max_passengers_per_vehicle": 4},
}


def test_optimize_returns_normalized_result(client):
    response = client.post("/api/routes/optimize", json=RIDE, headers={"X-Route-Session": "ride-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["degraded"] is False
    assert body["vehicles"][0]["driver_id"] == "driver-1"
    assert body["vehicles"][0]["stop_ids"] == ["driver-1", "rider-1", "venue"]
    assert body["vehicles"][0]["provider"] == "mapquest"
    assert body["total_distance_meters"] > 0


def test_degraded_result_is_still_200(degraded_client):
    response = degraded_client.post("/api/routes/optimize", json=RIDE)

    assert response.status_code == 200
    assert response.json()["degraded"] is True
    assert response.json()["vehicles"][0]["synthesized"] is True


def test_missing_destination_is_422(client):
    payload = {"waypoints": RIDE["waypoints"][:2]}

    response = client.post("/api/routes/optimize", json=payload)

    assert response.status_code == 422
    assert "destination" in response.json()["detail"]


def test_out_of_range_latitude_is_422(client):
    payload = {"waypoints": [
        {"id": "driver-1", "role": "origin", "location": {"lat": 123.0, "lng": 0.0}},
        {"id": "venue", "role": "destination", "location": {"lat": 0.0, "lng": 0.0}},
    ]}

    assert client.post("/api/routes/optimize", json=payload).status_code == 422


def test_health_reports_provider_chain(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["providers"] == ["mapquest", "synthesized"]
    assert body["cache"]["backend"] == "InMemoryCacheStorage"
    assert body["cache"]["max_entries"] == 10
