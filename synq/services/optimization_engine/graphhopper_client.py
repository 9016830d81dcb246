"""
GraphHopper Routing API client.

Optional provider; enabled by adding "graphhopper" to ROUTING_PROVIDERS.
"""

from typing import Any, Dict, List, Optional

import httpx

from synq.core.config import settings
from synq.core.logging_config import logger
from synq.models.route import Route, Waypoint
from synq.services.optimization_engine.base_client import HttpRoutingClient
from synq.utils.polyline import decode_polyline


class GraphHopperClient(HttpRoutingClient):
    """Client for GraphHopper API."""

    name = "graphhopper"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        profile: str = "car",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize GraphHopper client.

        Args:
            api_key: GraphHopper API key (defaults to env var)
            base_url: API base URL (defaults to env var)
            profile: GraphHopper vehicle profile
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport
        """
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key or settings.GRAPHHOPPER_API_KEY
        self.base_url = (base_url or settings.GRAPHHOPPER_BASE_URL).rstrip("/")
        self.profile = profile
        if not self.api_key:
            logger.warning("GRAPHHOPPER_API_KEY not set. GraphHopper routing will be skipped.")

    async def _route(self, waypoints: List[Waypoint]) -> Route:
        if not self.api_key:
            raise ValueError("GraphHopper API key not configured")

        # GraphHopper expects [lon, lat] arrays
        payload = {
            "points": [[wp.coordinate.lng, wp.coordinate.lat] for wp in waypoints],
            "profile": self.profile,
            "elevation": False,
            "instructions": False,
            "calc_points": True,
            "points_encoded": True
        }

        logger.info(f"Requesting route from GraphHopper: {len(waypoints)} stops, profile={self.profile}")
        logger.debug(f"Route points: {payload['points']}")

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/route",
                params={"key": self.api_key},
                json=payload
            )
            response.raise_for_status()
            data = self._json(response)

        return self._parse_route(data, waypoints)

    def _parse_route(self, data: Dict[str, Any], waypoints: List[Waypoint]) -> Route:
        paths = data.get("paths") or []
        if not paths:
            raise ValueError("No paths in GraphHopper response")

        path = paths[0]
        encoded = path.get("points")
        if not encoded:
            raise ValueError("No polyline in GraphHopper response")

        return Route(
            waypoints=waypoints,
            polyline=decode_polyline(encoded),
            total_distance_meters=float(path["distance"]),
            total_duration_seconds=float(path["time"]) / 1000.0,  # GraphHopper reports ms
            provider_used=self.name
        )
