"""
Shared plumbing for HTTP routing providers.

Subclasses implement `_route()` and may raise httpx errors or ValueError /
KeyError on malformed payloads; `route()` turns every failure into a tagged
ProviderResult so nothing provider-related escapes as an exception.
"""

from typing import Any, Dict, List, Optional

import httpx

from synq.core.config import settings
from synq.core.logging_config import logger
from synq.models.route import Route, Waypoint
from synq.services.optimization_engine.errors import ProviderErrorKind, ProviderResult


class HttpRoutingClient:
    """Base class for providers reached over HTTP."""

    name = "http"

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            timeout: Per-request timeout in seconds (defaults to settings)
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        """
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def route(self, waypoints: List[Waypoint]) -> ProviderResult:
        """
        Compute a road route through the waypoints in the given order.

        Returns:
            ProviderResult with the Route, or the tagged reason it failed
        """
        if len(waypoints) < 2:
            return self._failure(
                ProviderErrorKind.INVALID_RESPONSE,
                f"Not enough locations for route: {len(waypoints)}"
            )

        try:
            route = await self._route(waypoints)
        except httpx.TimeoutException as e:
            return self._failure(ProviderErrorKind.TIMEOUT, f"Timed out: {type(e).__name__}")
        except httpx.HTTPStatusError as e:
            return self._status_failure(e.response)
        except httpx.DecodingError as e:
            return self._failure(ProviderErrorKind.INVALID_RESPONSE, f"Undecodable body: {e}")
        except httpx.RequestError as e:
            return self._failure(ProviderErrorKind.NETWORK_ERROR, f"{type(e).__name__}: {e}")
        except (ValueError, KeyError, TypeError, IndexError, AttributeError) as e:
            return self._failure(ProviderErrorKind.INVALID_RESPONSE, str(e) or type(e).__name__)

        logger.info(
            f"{self.name} route: {len(waypoints)} stops, {len(route.polyline)} points, "
            f"{route.total_distance_meters:.0f}m"
        )
        return ProviderResult.success(route)

    async def _route(self, waypoints: List[Waypoint]) -> Route:
        raise NotImplementedError

    def _json(self, response: httpx.Response) -> Dict[str, Any]:
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    def _status_failure(self, response: httpx.Response) -> ProviderResult:
        status = response.status_code
        if status == 429:
            return self._failure(
                ProviderErrorKind.RATE_LIMITED,
                "Rate limited",
                retry_after=_parse_retry_after(response.headers.get("Retry-After"))
            )
        if status >= 500:
            return self._failure(ProviderErrorKind.NETWORK_ERROR, f"Server error {status}")
        return self._failure(
            ProviderErrorKind.INVALID_RESPONSE,
            f"Rejected with {status}: {response.text[:200]}"
        )

    def _failure(
        self,
        kind: ProviderErrorKind,
        message: str,
        retry_after: Optional[float] = None
    ) -> ProviderResult:
        logger.warning(f"{self.name} routing failed ({kind.value}): {message}")
        return ProviderResult.failure(kind, message, provider=self.name, retry_after=retry_after)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        # HTTP-date form is not worth supporting here
        return None
