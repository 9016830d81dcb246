"""
Straight-line route synthesizer.

Last link of the provider chain. It needs no network and cannot fail: the path
follows the great circle between consecutive stops and the duration is
estimated from a fixed average speed.
"""

from typing import List, Optional

from synq.core.config import settings
from synq.core.logging_config import logger
from synq.models.route import SYNTHESIZED_PROVIDER, Coordinate, Route, Waypoint
from synq.services.optimization_engine.errors import ProviderResult
from synq.services.optimization_engine.geo import haversine_distance, interpolate_great_circle

# Minimum intermediate segments per leg, then roughly one per km
MIN_SEGMENTS_PER_LEG = 10
METERS_PER_SEGMENT = 1000.0


class StraightLineSynthesizer:
    """Synthesizes an approximate route when no road provider answers."""

    name = SYNTHESIZED_PROVIDER

    def __init__(self, speed_mps: Optional[float] = None):
        self.speed_mps = speed_mps or settings.SYNTHESIZED_SPEED_MPS

    def build(self, waypoints: List[Waypoint]) -> Route:
        polyline: List[Coordinate] = []
        total_distance = 0.0

        for i in range(len(waypoints) - 1):
            start = waypoints[i].coordinate
            end = waypoints[i + 1].coordinate
            leg_distance = haversine_distance(start, end)
            total_distance += leg_distance

            segments = max(MIN_SEGMENTS_PER_LEG, int(leg_distance // METERS_PER_SEGMENT))
            leg = interpolate_great_circle(start, end, segments)
            # consecutive legs share their joining stop
            polyline.extend(leg if not polyline else leg[1:])

        if not polyline and waypoints:
            polyline = [waypoints[0].coordinate]

        logger.info(
            f"Synthesized straight-line route: {len(waypoints)} stops, "
            f"{len(polyline)} points, {total_distance:.0f}m"
        )

        return Route(
            waypoints=waypoints,
            polyline=polyline,
            total_distance_meters=total_distance,
            total_duration_seconds=total_distance / self.speed_mps,
            provider_used=self.name
        )

    def apply_traffic(self, route: Route, leg_multipliers: List[float]) -> Route:
        """
        Re-estimate a synthesized route's duration with per-leg traffic.

        Args:
            route: Route built by this synthesizer
            leg_multipliers: One multiplier per consecutive waypoint pair

        Returns:
            Same path and distance with the scaled duration
        """
        duration = sum(
            haversine_distance(route.waypoints[i].coordinate, route.waypoints[i + 1].coordinate)
            * multiplier / self.speed_mps
            for i, multiplier in enumerate(leg_multipliers)
        )
        return Route(
            waypoints=route.waypoints,
            polyline=route.polyline,
            total_distance_meters=route.total_distance_meters,
            total_duration_seconds=duration,
            provider_used=route.provider_used
        )

    async def route(self, waypoints: List[Waypoint]) -> ProviderResult:
        return ProviderResult.success(self.build(waypoints))
