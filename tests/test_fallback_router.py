import asyncio

import pytest

from synq.services.optimization_engine.errors import ProviderErrorKind, ProviderResult
from synq.services.optimization_engine.geo import path_distance
from synq.services.optimization_engine.routing_client import FallbackRouter
from synq.services.optimization_engine.straight_line import StraightLineSynthesizer
from tests.fakes import OK, FailingProvider, FakeProvider, RecordingSleep, destination, origin, pickup

STOPS = [origin("o", 32.7767, -96.7970), pickup("p", 32.7801, -96.8003), destination("d", 32.7905, -96.8103)]


def make_router(providers, sleep=None, **kwargs):
    return FallbackRouter(
        providers,
        synthesizer=StraightLineSynthesizer(speed_mps=10.0),
        max_attempts=kwargs.pop("max_attempts", 3),
        retry_delay=kwargs.pop("retry_delay", 1.0),
        timeout=kwargs.pop("timeout", 10.0),
        sleep=sleep or RecordingSleep(),
        **kwargs
    )


def test_first_success_stops_the_chain():
    primary, secondary = FakeProvider("primary"), FakeProvider("secondary")

    route = asyncio.run(make_router([primary, secondary]).route(STOPS))

    assert route.provider_used == "primary"
    assert primary.calls == 1
    assert secondary.calls == 0


def test_transient_failures_are_retried_with_backoff():
    sleep = RecordingSleep()
    provider = FakeProvider("primary", outcomes=[ProviderErrorKind.NETWORK_ERROR, ProviderErrorKind.TIMEOUT, OK])

    route = asyncio.run(make_router([provider], sleep=sleep).route(STOPS))

    assert route.provider_used == "primary"
    assert provider.calls == 3
    assert sleep.delays == [1.0, 2.0]


def test_exhausted_provider_advances_to_next():
    sleep = RecordingSleep()
    primary = FailingProvider("primary", ProviderErrorKind.NETWORK_ERROR)
    secondary = FakeProvider("secondary")

    route = asyncio.run(make_router([primary, secondary], sleep=sleep).route(STOPS))

    assert route.provider_used == "secondary"
    assert primary.calls == 3
    # no backoff after the final attempt
    assert sleep.delays == [1.0, 2.0]


def test_invalid_response_is_not_retried():
    sleep = RecordingSleep()
    primary = FailingProvider("primary", ProviderErrorKind.INVALID_RESPONSE)
    secondary = FakeProvider("secondary")

    route = asyncio.run(make_router([primary, secondary], sleep=sleep).route(STOPS))

    assert route.provider_used == "secondary"
    assert primary.calls == 1
    assert sleep.delays == []


def test_retry_after_raises_the_backoff():
    class RateLimited(FakeProvider):
        async def route(self, waypoints):
            self.calls += 1
            if self.calls == 1:
                return ProviderResult.failure(
                    ProviderErrorKind.RATE_LIMITED, "slow down", provider=self.name, retry_after=5.0
                )
            return await super().route(waypoints)

    sleep = RecordingSleep()
    provider = RateLimited("primary")

    asyncio.run(make_router([provider], sleep=sleep).route(STOPS))

    assert sleep.delays == [5.0]


def test_retry_after_is_capped_by_the_timeout():
    class RateLimited(FakeProvider):
        async def route(self, waypoints):
            self.calls += 1
            return ProviderResult.failure(
                ProviderErrorKind.RATE_LIMITED, "slow down", provider=self.name, retry_after=3600.0
            )

    sleep = RecordingSleep()

    asyncio.run(make_router([RateLimited("primary")], sleep=sleep, max_attempts=2).route(STOPS))

    assert sleep.delays == [10.0]


def test_slow_provider_times_out():
    slow = FakeProvider("slow", delay=5)
    fast = FakeProvider("fast")

    route = asyncio.run(make_router([slow, fast], max_attempts=1, timeout=0.05).route(STOPS))

    assert route.provider_used == "fast"
    assert slow.cancelled == 1


def test_all_providers_down_synthesizes_straight_line():
    providers = [
        FailingProvider("mapquest", ProviderErrorKind.TIMEOUT),
        FailingProvider("osrm", ProviderErrorKind.NETWORK_ERROR),
    ]

    route = asyncio.run(make_router(providers).route(STOPS))

    coordinates = [wp.coordinate for wp in STOPS]
    assert route.synthesized
    assert route.provider_used == "synthesized"
    assert route.total_distance_meters == pytest.approx(path_distance(coordinates))
    assert route.total_duration_seconds == pytest.approx(route.total_distance_meters / 10.0)
    assert route.polyline[0] == STOPS[0].coordinate
    assert route.polyline[-1] == STOPS[-1].coordinate
    assert STOPS[1].coordinate in route.polyline
    assert [wp.id for wp in route.waypoints] == ["o", "p", "d"]


def test_no_providers_configured_still_routes():
    route = asyncio.run(make_router([]).route(STOPS))
    assert route.synthesized


def test_provider_names_end_with_synthesizer():
    router = make_router([FakeProvider("mapquest"), FakeProvider("osrm")])
    assert router.provider_names == ["mapquest", "osrm", "synthesized"]


def test_synthesized_polyline_is_densified_without_duplicate_joints():
    route = StraightLineSynthesizer(speed_mps=10.0).build(STOPS)

    # at least 10 segments per leg, shared joint counted once
    assert len(route.polyline) >= 21
    assert all(a != b for a, b in zip(route.polyline, route.polyline[1:]))


def test_provider_that_raises_is_skipped():
    class Exploding(FakeProvider):
        async def route(self, waypoints):
            self.calls += 1
            raise AttributeError("'NoneType' object has no attribute 'get'")

    sleep = RecordingSleep()
    exploding = Exploding("primary")
    secondary = FakeProvider("secondary")

    route = asyncio.run(make_router([exploding, secondary], sleep=sleep).route(STOPS))

    assert route.provider_used == "secondary"
    # treated as an invalid response, so not retried
    assert exploding.calls == 1
    assert sleep.delays == []


def test_only_raising_providers_still_synthesize():
    class Exploding(FakeProvider):
        async def route(self, waypoints):
            raise RuntimeError("bug")

    route = asyncio.run(make_router([Exploding("a"), Exploding("b")]).route(STOPS))

    assert route.synthesized
