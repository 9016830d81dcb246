import asyncio

import pytest

from synq.models.route import Constraints
from synq.schemas.route import RouteOptimizationRequest
from synq.services.optimization import OptimizationService
from synq.services.optimization_engine.errors import (
    ProviderErrorKind,
    RequestSupersededError,
    RouteValidationError,
)
from synq.services.optimization_engine.facade import RouteOptimizationFacade
from synq.services.optimization_engine.geo import haversine_distance
from synq.services.optimization_engine.routing_client import FallbackRouter
from synq.services.optimization_engine.straight_line import StraightLineSynthesizer
from synq.services.optimization_engine.traffic import StaticTrafficProvider, TrafficSeverity
from tests.fakes import FailingProvider, FakeProvider, RecordingSleep, destination, origin, pickup

DALLAS_DRIVER = origin("driver-1", 32.7767, -96.7970)
DALLAS_VENUE = destination("venue", 32.7905, -96.8103)


def make_facade(*providers):
    router = FallbackRouter(
        list(providers),
        synthesizer=StraightLineSynthesizer(speed_mps=1000.0 / 120.0),
        max_attempts=1,
        timeout=5.0,
        sleep=RecordingSleep()
    )
    return RouteOptimizationFacade(router)


def optimize(facade, waypoints, constraints=None):
    return asyncio.run(facade.optimize(waypoints, constraints))


def test_direct_route_with_every_provider_down():
    facade = make_facade(FailingProvider("mapquest"), FailingProvider("osrm", ProviderErrorKind.TIMEOUT))

    result = optimize(facade, [DALLAS_DRIVER, DALLAS_VENUE])

    expected = haversine_distance(DALLAS_DRIVER.coordinate, DALLAS_VENUE.coordinate)
    assert len(result.vehicles) == 1
    vehicle = result.vehicles[0]
    assert vehicle.driver_id == "driver-1"
    assert vehicle.stop_ids == ["driver-1", "venue"]
    assert vehicle.synthesized
    assert vehicle.distance_meters == pytest.approx(expected)
    # two minutes per kilometer
    assert vehicle.duration_seconds == pytest.approx(expected / 1000.0 * 120.0)
    assert result.degraded
    assert any("straight-line" in warning for warning in result.warnings)


def test_direct_route_uses_road_provider_when_available():
    provider = FakeProvider("mapquest")

    result = optimize(make_facade(provider), [DALLAS_DRIVER, DALLAS_VENUE])

    assert result.vehicles[0].provider == "mapquest"
    assert not result.degraded
    assert result.warnings == []
    assert provider.calls == 1
    assert result.vehicles[0].encoded_polyline


def test_single_vehicle_with_pickups_is_reordered():
    waypoints = [
        origin("o", 0, 0),
        pickup("p1", 0, 0.03),
        pickup("p2", 0, 0.01),
        pickup("p3", 0, 0.02),
        destination("d", 0, 0.04),
    ]

    result = optimize(make_facade(FakeProvider("road")), waypoints)

    vehicle = result.vehicles[0]
    assert vehicle.stop_ids == ["o", "p2", "p3", "p1", "d"]
    assert sorted(vehicle.passenger_ids) == ["p1", "p2", "p3"]


def test_multi_vehicle_overflow_is_reported():
    waypoints = [
        origin("v0", 0, 0),
        origin("v1", 0, 1),
        pickup("p1", 0, 0.1),
        pickup("p2", 0, 0.2),
        pickup("p3", 0, 0.9),
        pickup("p4", 0, 0.8),
        pickup("p5", 0, 0.3),
        destination("d", 1, 0.5),
    ]

    result = optimize(
        make_facade(FakeProvider("road")),
        waypoints,
        Constraints(max_passengers_per_vehicle=2, max_route_distance_meters=10_000_000)
    )

    assert [len(v.passenger_ids) for v in result.vehicles] == [3, 2]
    assert sorted(result.vehicles[0].passenger_ids) == ["p1", "p2", "p5"]
    assert any("p5" in warning and "capacity" in warning for warning in result.warnings)
    for vehicle in result.vehicles:
        assert vehicle.stop_ids[0] == vehicle.driver_id
        assert vehicle.stop_ids[-1] == "d"


def test_degraded_multi_vehicle_result():
    waypoints = [
        origin("v0", 0, 0),
        origin("v1", 0, 1),
        pickup("p1", 0, 0.1),
        pickup("p2", 0, 0.9),
        destination("d", 0, 0.5),
    ]

    result = optimize(make_facade(FailingProvider("osrm")), waypoints)

    assert result.degraded
    assert all(vehicle.synthesized for vehicle in result.vehicles)
    assert all(vehicle.provider == "synthesized" for vehicle in result.vehicles)


def test_totals_are_sums_of_vehicles():
    waypoints = [
        origin("v0", 0, 0),
        origin("v1", 0, 1),
        pickup("p1", 0, 0.1),
        pickup("p2", 0, 0.9),
        destination("d", 0, 0.5),
    ]

    result = optimize(make_facade(FakeProvider("road")), waypoints)

    assert result.total_distance_meters == pytest.approx(sum(v.distance_meters for v in result.vehicles))
    assert result.total_duration_seconds == pytest.approx(sum(v.duration_seconds for v in result.vehicles))
    assert result.total_distance_km == pytest.approx(result.total_distance_meters / 1000.0, abs=1e-3)


def test_vehicle_without_pickups_drives_directly():
    waypoints = [
        origin("near", 0, 0),
        origin("far", 5, 5),
        pickup("p1", 0, 0.1),
        destination("d", 0, 0.5),
    ]

    result = optimize(make_facade(FakeProvider("road")), waypoints)

    far = result.vehicles[1]
    assert far.driver_id == "far"
    assert far.passenger_ids == []
    assert far.stop_ids == ["far", "d"]


def test_several_drivers_without_pickups():
    waypoints = [origin("v0", 0, 0), origin("v1", 0, 1), destination("d", 0, 0.5)]

    result = optimize(make_facade(FakeProvider("road")), waypoints)

    assert [v.stop_ids for v in result.vehicles] == [["v0", "d"], ["v1", "d"]]


def test_route_limits_produce_warnings_not_errors():
    result = optimize(
        make_facade(FakeProvider("road")),
        [DALLAS_DRIVER, DALLAS_VENUE],
        Constraints(max_route_distance_meters=100, max_route_duration_seconds=1)
    )

    assert len(result.vehicles) == 1
    assert len(result.warnings) == 2
    assert "driver-1" in result.warnings[0]


def test_vehicles_are_optimized_concurrently():
    provider = FakeProvider("road", delay=0.05)
    waypoints = [
        origin("v0", 0, 0),
        origin("v1", 0, 1),
        origin("v2", 1, 0),
        pickup("p0", 0, 0.05),
        pickup("p1", 0, 0.95),
        pickup("p2", 0.95, 0),
        destination("d", 0.5, 0.5),
    ]

    optimize(make_facade(provider), waypoints)

    assert provider.calls == 3
    assert provider.max_in_flight > 1


@pytest.mark.parametrize("waypoints,message", [
    ([DALLAS_DRIVER], "At least 2"),
    ([DALLAS_DRIVER, pickup("p", 0, 0)], "No destination"),
    ([DALLAS_DRIVER, DALLAS_VENUE, destination("venue-2", 0, 0)], "Exactly one destination"),
    ([pickup("p", 0, 0), DALLAS_VENUE], "origin"),
    ([DALLAS_DRIVER, origin("driver-1", 0, 0), DALLAS_VENUE], "Duplicate"),
    ([origin("bad", 91, 0), DALLAS_VENUE], "invalid coordinate"),
    ([origin("nan", float("nan"), 0), DALLAS_VENUE], "invalid coordinate"),
])
def test_structural_errors_are_rejected(waypoints, message):
    provider = FakeProvider("road")

    with pytest.raises(RouteValidationError, match=message):
        optimize(make_facade(provider), waypoints)

    assert provider.calls == 0


def test_optimize_request_converts_schema():
    request = RouteOptimizationRequest.model_validate({
        "waypoints": [
            {"id": "driver-1", "role": "origin", "location": {"lat": 32.7767, "lng": -96.7970}},
            {"id": "rider-1", "role": "pickup", "location": {"lat": 32.7801, "lng": -96.8003},
             "time_window": {"start": 28800, "end": 30600}},
            {"id": "venue", "role": "destination", "location": {"lat": 32.7905, "lng": -96.8103}},
        ],
        "constraints": {"max_passengers_per_vehicle": 4},
    })

    result = asyncio.run(make_facade(FakeProvider("road")).optimize_request(request))

    assert result.vehicles[0].stop_ids == ["driver-1", "rider-1", "venue"]


def rebooking(lat):
    return RouteOptimizationRequest.model_validate({
        "waypoints": [
            {"id": "driver-1", "role": "origin", "location": {"lat": lat, "lng": -96.7970}},
            {"id": "venue", "role": "destination", "location": {"lat": 32.7905, "lng": -96.8103}},
        ]
    })


def test_newer_session_request_supersedes_older():
    provider = FakeProvider("road", delay=0.1)
    service = OptimizationService(make_facade(provider))

    async def scenario():
        first = asyncio.ensure_future(service.optimize(rebooking(32.7767), session_key="ride-1"))
        await asyncio.sleep(0.02)
        second = asyncio.ensure_future(service.optimize(rebooking(32.7700), session_key="ride-1"))
        return await asyncio.gather(first, second, return_exceptions=True)

    first, second = asyncio.run(scenario())

    assert isinstance(first, RequestSupersededError)
    assert second.vehicles[0].distance_meters > 0
    assert provider.cancelled == 1
    assert service._latest == {}


def test_different_sessions_do_not_interfere():
    provider = FakeProvider("road", delay=0.05)
    service = OptimizationService(make_facade(provider))

    async def scenario():
        return await asyncio.gather(
            service.optimize(rebooking(32.7767), session_key="ride-1"),
            service.optimize(rebooking(32.7700), session_key="ride-2"),
        )

    first, second = asyncio.run(scenario())

    assert first.vehicles and second.vehicles
    assert provider.cancelled == 0


def test_abandoned_session_request_is_cancelled():
    provider = FakeProvider("road", delay=1)
    service = OptimizationService(make_facade(provider))

    async def scenario():
        caller = asyncio.ensure_future(service.optimize(rebooking(32.7767), session_key="ride-1"))
        await asyncio.sleep(0.02)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.01)

    asyncio.run(scenario())

    assert provider.cancelled == 1
    assert service._latest == {}


def test_direct_route_in_traffic_mode_scales_synthesized_duration():
    router = FallbackRouter(
        [FailingProvider("osrm")],
        synthesizer=StraightLineSynthesizer(speed_mps=10.0),
        max_attempts=1,
        sleep=RecordingSleep()
    )
    facade = RouteOptimizationFacade(router, traffic_provider=StaticTrafficProvider(default=TrafficSeverity.MEDIUM))
    distance = haversine_distance(DALLAS_DRIVER.coordinate, DALLAS_VENUE.coordinate)

    result = optimize(facade, [DALLAS_DRIVER, DALLAS_VENUE], Constraints(traffic_mode=True))

    assert result.vehicles[0].duration_seconds == pytest.approx(distance * 1.3 / 10.0)
