"""
Result formatter for optimization solutions.

Turns vehicle assignments into the normalized RouteOptimizationResult. This is
the presentation boundary: the only place units other than meters/seconds
appear.
"""

from typing import List, Optional

from synq.core.logging_config import logger
from synq.models.route import VehicleAssignment
from synq.schemas.route import RouteOptimizationResult, VehicleRoute
from synq.services.optimization_engine.geo import meters_to_kilometers, seconds_to_minutes
from synq.utils.polyline import encode_polyline


class ResultFormatter:
    """Formats vehicle assignments."""

    def format(
        self,
        assignments: List[VehicleAssignment],
        warnings: Optional[List[str]] = None
    ) -> RouteOptimizationResult:
        """
        Format assignments into the response model.

        Args:
            assignments: One assignment per vehicle
            warnings: Non-blocking constraint warnings

        Returns:
            RouteOptimizationResult with per-vehicle routes and totals
        """
        warnings = list(warnings or [])
        vehicles = [self._format_vehicle(assignment) for assignment in assignments]

        total_distance = sum(vehicle.distance_meters for vehicle in vehicles)
        total_duration = sum(vehicle.duration_seconds for vehicle in vehicles)
        degraded = any(vehicle.synthesized for vehicle in vehicles)

        if degraded:
            warnings.append("Road routing unavailable; some paths are straight-line approximations")

        logger.info(
            f"Results formatted: {len(vehicles)} routes, "
            f"total distance={total_distance:.0f}m, degraded={degraded}"
        )

        return RouteOptimizationResult(
            vehicles=vehicles,
            total_distance_meters=total_distance,
            total_duration_seconds=total_duration,
            total_distance_km=round(meters_to_kilometers(total_distance), 3),
            total_duration_minutes=round(seconds_to_minutes(total_duration), 1),
            degraded=degraded,
            warnings=warnings
        )

    def _format_vehicle(self, assignment: VehicleAssignment) -> VehicleRoute:
        route = assignment.route
        polyline = [[point.lat, point.lng] for point in route.polyline]
        return VehicleRoute(
            driver_id=assignment.origin.id,
            passenger_ids=assignment.pickup_ids,
            stop_ids=[wp.id for wp in route.waypoints],
            polyline=polyline,
            encoded_polyline=encode_polyline(route.polyline),
            distance_meters=route.total_distance_meters,
            duration_seconds=route.total_duration_seconds,
            provider=route.provider_used,
            synthesized=route.synthesized
        )
