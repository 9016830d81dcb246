"""
OSRM route service client.

Secondary road-routing provider backed by the public OSRM demo server (or any
self-hosted instance).
"""

from typing import Any, Dict, List, Optional

import httpx

from synq.core.config import settings
from synq.core.logging_config import logger
from synq.models.route import Coordinate, Route, Waypoint
from synq.services.optimization_engine.base_client import HttpRoutingClient


class OSRMClient(HttpRoutingClient):
    """Client for the OSRM /route endpoint."""

    name = "osrm"

    def __init__(
        self,
        base_url: Optional[str] = None,
        profile: str = "driving",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.base_url = (base_url or settings.OSRM_BASE_URL).rstrip("/")
        self.profile = profile

    def format_coordinates(self, waypoints: List[Waypoint]) -> str:
        """Convert waypoints to OSRM format 'lng,lat;lng,lat;...'"""
        return ";".join(f"{wp.coordinate.lng},{wp.coordinate.lat}" for wp in waypoints)

    async def _route(self, waypoints: List[Waypoint]) -> Route:
        url = f"{self.base_url}/route/v1/{self.profile}/{self.format_coordinates(waypoints)}"

        logger.info(f"Requesting route from OSRM: {len(waypoints)} stops, profile={self.profile}")

        async with self._client() as client:
            response = await client.get(
                url,
                params={"overview": "full", "geometries": "geojson"}
            )
            response.raise_for_status()
            data = self._json(response)

        return self._parse_route(data, waypoints)

    def _parse_route(self, data: Dict[str, Any], waypoints: List[Waypoint]) -> Route:
        if data.get("code") != "Ok":
            raise ValueError(f"OSRM error: {data.get('message', data.get('code', 'Unknown error'))}")

        routes = data.get("routes") or []
        if not routes:
            raise ValueError("No route found")

        # take the first route (OSRM may return alternatives)
        route = routes[0]
        coordinates = route.get("geometry", {}).get("coordinates") or []
        if len(coordinates) < 2:
            raise ValueError("No usable geometry in OSRM response")

        return Route(
            waypoints=waypoints,
            polyline=[Coordinate(lat, lng) for lng, lat in coordinates],
            total_distance_meters=float(route["distance"]),
            total_duration_seconds=float(route["duration"]),
            provider_used=self.name
        )
