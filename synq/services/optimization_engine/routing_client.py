"""
Routing client abstraction.

Provides a unified interface for the road-routing providers and the
FallbackRouter that walks them in priority order. The chain always ends in
the straight-line synthesizer, so routing never fails.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Protocol

from synq.core.config import settings
from synq.core.logging_config import logger
from synq.models.route import Route, Waypoint
from synq.services.optimization_engine.errors import ProviderErrorKind, ProviderResult
from synq.services.optimization_engine.graphhopper_client import GraphHopperClient
from synq.services.optimization_engine.mapquest_client import MapQuestClient
from synq.services.optimization_engine.osrm_client import OSRMClient
from synq.services.optimization_engine.route_cache import RouteCache
from synq.services.optimization_engine.straight_line import StraightLineSynthesizer


class RoutingClient(Protocol):
    """Protocol for routing providers."""

    name: str

    async def route(self, waypoints: List[Waypoint]) -> ProviderResult:
        """Road route through the waypoints in order, or a tagged failure."""
        ...


class FallbackRouter:
    """
    Tries providers in priority order with timeout and retry.

    Transient failures (timeout, network error, rate limit) are retried with
    exponential backoff; invalid responses move straight on to the next
    provider. When every provider is exhausted the synthesizer answers.
    """

    def __init__(
        self,
        providers: List[RoutingClient],
        synthesizer: Optional[StraightLineSynthesizer] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        cache: Optional[RouteCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Args:
            providers: Road providers, highest priority first
            synthesizer: Final fallback (defaults to a StraightLineSynthesizer)
            max_attempts: Attempts per provider (defaults to settings)
            retry_delay: Base backoff delay in seconds (defaults to settings)
            timeout: Upper bound on a single provider call (defaults to settings)
            cache: Optional route cache consulted before any provider
            sleep: Awaitable sleep, replaceable in tests
        """
        self.providers = list(providers)
        self.synthesizer = synthesizer or StraightLineSynthesizer()
        self.max_attempts = max(1, max_attempts if max_attempts is not None else settings.PROVIDER_MAX_ATTEMPTS)
        self.retry_delay = retry_delay if retry_delay is not None else settings.PROVIDER_RETRY_DELAY_SECONDS
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self.cache = cache
        self._sleep = sleep

    @property
    def provider_names(self) -> List[str]:
        return [provider.name for provider in self.providers] + [self.synthesizer.name]

    async def route(self, waypoints: List[Waypoint]) -> Route:
        """
        Road route through the waypoints in order.

        Always returns a Route; `provider_used` tells which provider produced
        it ("synthesized" when all road providers failed).
        """
        if self.cache is None:
            return await self._route_uncached(waypoints)

        key = self.cache.make_key([wp.coordinate for wp in waypoints])
        route = await self.cache.get_or_compute(key, lambda: self._route_uncached(waypoints))
        # the cached path may have been computed for another request's stops
        return route.with_waypoints(waypoints)

    async def _route_uncached(self, waypoints: List[Waypoint]) -> Route:
        for provider in self.providers:
            route = await self._try_provider(provider, waypoints)
            if route is not None:
                return route
            logger.warning(f"Provider {provider.name} exhausted, advancing to next provider")

        logger.warning(
            f"All road providers failed for {len(waypoints)} stops; "
            f"using straight-line synthesizer"
        )
        return self.synthesizer.build(waypoints)

    async def _try_provider(self, provider: RoutingClient, waypoints: List[Waypoint]) -> Optional[Route]:
        for attempt in range(1, self.max_attempts + 1):
            logger.info(f"{provider.name} attempt {attempt}/{self.max_attempts}")
            result = await self._call(provider, waypoints)

            if result.ok:
                return result.route

            error = result.error
            if not error.retryable:
                logger.warning(f"{provider.name} returned {error.kind.value}, not retrying: {error.message}")
                return None

            if attempt < self.max_attempts:
                delay = self.retry_delay * (2 ** (attempt - 1))
                if error.retry_after is not None:
                    delay = max(delay, min(error.retry_after, self.timeout))
                logger.info(f"{provider.name} {error.kind.value}; retrying in {delay:.1f}s")
                await self._sleep(delay)

        return None

    async def _call(self, provider: RoutingClient, waypoints: List[Waypoint]) -> ProviderResult:
        try:
            return await asyncio.wait_for(provider.route(waypoints), timeout=self.timeout)
        except asyncio.TimeoutError:
            return ProviderResult.failure(
                ProviderErrorKind.TIMEOUT,
                f"No answer within {self.timeout}s",
                provider=provider.name
            )
        except Exception as e:
            # a provider bug must not take the whole request down
            logger.exception(f"{provider.name} raised unexpectedly")
            return ProviderResult.failure(
                ProviderErrorKind.INVALID_RESPONSE,
                f"{type(e).__name__}: {e}",
                provider=provider.name
            )


PROVIDER_FACTORIES = {
    "mapquest": MapQuestClient,
    "osrm": OSRMClient,
    "graphhopper": GraphHopperClient,
}


def get_routing_clients() -> List[RoutingClient]:
    """
    Build the configured road providers in priority order.

    Returns:
        Provider instances; unknown names are skipped with a warning
    """
    clients = []
    for name in settings.routing_provider_names:
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            logger.warning(f"Unknown routing provider '{name}', skipping")
            continue
        clients.append(factory())
    return clients


def build_fallback_router(cache: Optional[RouteCache] = None) -> FallbackRouter:
    """Factory for the router configured from settings."""
    router = FallbackRouter(providers=get_routing_clients(), cache=cache)
    logger.info(f"Routing provider chain: {' -> '.join(router.provider_names)}")
    return router
