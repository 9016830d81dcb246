"""
MapQuest Directions v2 client.

Primary road-routing provider. Returns the raw shape (lat/lng pairs) of the
road route through all stops.
"""

from typing import Any, Dict, List, Optional, Tuple

import httpx

from synq.core.config import settings
from synq.core.logging_config import logger
from synq.models.route import Coordinate, Route, Waypoint
from synq.services.optimization_engine.base_client import HttpRoutingClient

# MapQuest reports this code on its routeError object for successful routes
NO_ROUTE_ERROR = -400


class MapQuestClient(HttpRoutingClient):
    """Client for MapQuest Directions API."""

    name = "mapquest"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize MapQuest client.

        Args:
            api_key: MapQuest API key (defaults to env var)
            base_url: Directions API base URL (defaults to env var)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport
        """
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key or settings.MAPQUEST_API_KEY
        self.base_url = (base_url or settings.MAPQUEST_BASE_URL).rstrip("/")
        if not self.api_key:
            logger.warning("MAPQUEST_API_KEY not set. MapQuest routing will be skipped.")

    def _build_params(self, waypoints: List[Waypoint]) -> List[Tuple[str, str]]:
        # MapQuest expects "lat,lng"; every stop after the first is another "to"
        params = [
            ("key", self.api_key),
            ("from", _format_point(waypoints[0].coordinate)),
        ]
        params.extend(("to", _format_point(wp.coordinate)) for wp in waypoints[1:])
        params.extend([
            ("outFormat", "json"),
            ("routeType", "fastest"),
            ("unit", "k"),
            ("narrativeType", "none"),
            ("shapeFormat", "raw"),
            ("generalize", "0"),
        ])
        return params

    async def _route(self, waypoints: List[Waypoint]) -> Route:
        if not self.api_key:
            raise ValueError("MapQuest API key not configured")

        logger.info(f"Requesting route from MapQuest: {len(waypoints)} stops")

        async with self._client() as client:
            response = await client.get(f"{self.base_url}/route", params=self._build_params(waypoints))
            response.raise_for_status()
            data = self._json(response)

        return self._parse_route(data, waypoints)

    def _parse_route(self, data: Dict[str, Any], waypoints: List[Waypoint]) -> Route:
        status_code = data.get("info", {}).get("statuscode", 0)
        if status_code != 0:
            messages = data.get("info", {}).get("messages") or ["Route calculation failed"]
            raise ValueError(f"MapQuest status {status_code}: {messages[0]}")

        route = data.get("route")
        if not route:
            raise ValueError("No route in MapQuest response")

        route_error = route.get("routeError") or {}
        error_code = route_error.get("errorCode", NO_ROUTE_ERROR)
        if error_code not in (None, NO_ROUTE_ERROR):
            raise ValueError(f"MapQuest route error {error_code}: {route_error.get('message', '')}")

        # Flat [lat, lng, lat, lng, ...]
        shape_points = route.get("shape", {}).get("shapePoints") or []
        if len(shape_points) < 4 or len(shape_points) % 2:
            raise ValueError("No usable shape points in MapQuest response")

        polyline = [
            Coordinate(shape_points[i], shape_points[i + 1])
            for i in range(0, len(shape_points), 2)
        ]

        return Route(
            waypoints=waypoints,
            polyline=polyline,
            total_distance_meters=float(route["distance"]) * 1000.0,  # unit=k
            total_duration_seconds=float(route["time"]),
            provider_used=self.name
        )


def _format_point(point: Coordinate) -> str:
    return f"{point.lat},{point.lng}"
