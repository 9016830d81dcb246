"""
Route optimization facade.

Single entry point: validates and classifies waypoints, then takes either the
direct path (one driver straight to the destination) or the full
multi-vehicle pipeline.
"""

from typing import List, Optional, Tuple

from synq.core.logging_config import logger
from synq.models.route import Constraints, Waypoint, WaypointRole
from synq.schemas.route import RouteOptimizationRequest, RouteOptimizationResult
from synq.services.optimization_engine.coordinator import MultiVehicleCoordinator, constraint_warnings
from synq.services.optimization_engine.errors import RouteValidationError
from synq.services.optimization_engine.result_formatter import ResultFormatter
from synq.services.optimization_engine.routing_client import FallbackRouter, build_fallback_router
from synq.services.optimization_engine.route_cache import RouteCache, build_route_cache
from synq.services.optimization_engine.solver import SingleVehicleOptimizer
from synq.services.optimization_engine.traffic import TrafficProvider


class RouteOptimizationFacade:
    """Entry point of the optimization engine."""

    def __init__(
        self,
        router: FallbackRouter,
        coordinator: Optional[MultiVehicleCoordinator] = None,
        formatter: Optional[ResultFormatter] = None,
        traffic_provider: Optional[TrafficProvider] = None
    ):
        self.router = router
        self.coordinator = coordinator or MultiVehicleCoordinator(
            SingleVehicleOptimizer(router, traffic_provider=traffic_provider)
        )
        self.formatter = formatter or ResultFormatter()

    async def optimize_request(self, request: RouteOptimizationRequest) -> RouteOptimizationResult:
        """Optimize an API request."""
        return await self.optimize(
            [waypoint.to_waypoint() for waypoint in request.waypoints],
            request.constraints.to_constraints()
        )

    async def optimize(
        self,
        waypoints: List[Waypoint],
        constraints: Optional[Constraints] = None
    ) -> RouteOptimizationResult:
        """
        Optimize a shared ride.

        Args:
            waypoints: Origins, pickups and exactly one destination
            constraints: Optional limits (defaults from settings)

        Returns:
            RouteOptimizationResult

        Raises:
            RouteValidationError: If the waypoints are structurally invalid
        """
        constraints = constraints or Constraints()
        origins, pickups, destination = self.classify(waypoints)

        if len(origins) == 1 and not pickups:
            logger.info(f"Direct route: {origins[0].id} -> {destination.id}")
            assignment = await self.coordinator.optimizer.optimize(
                origins[0], [], destination, traffic_mode=constraints.traffic_mode
            )
            warnings = constraint_warnings(assignment, constraints)
            return self.formatter.format([assignment], warnings)

        logger.info(
            f"Multi-vehicle optimization: {len(origins)} vehicles, {len(pickups)} pickups, "
            f"capacity={constraints.max_passengers_per_vehicle}, traffic={constraints.traffic_mode}"
        )
        result = await self.coordinator.optimize(origins, pickups, destination, constraints)
        return self.formatter.format(result.assignments, result.warnings)

    @staticmethod
    def classify(waypoints: List[Waypoint]) -> Tuple[List[Waypoint], List[Waypoint], Waypoint]:
        """
        Validate waypoints and split them by role.

        Returns:
            (origins, pickups, destination), each in input order

        Raises:
            RouteValidationError: On any structural problem
        """
        if len(waypoints) < 2:
            raise RouteValidationError(f"At least 2 waypoints are required, got {len(waypoints)}")

        seen = set()
        for waypoint in waypoints:
            if not waypoint.coordinate.is_valid():
                raise RouteValidationError(
                    f"Waypoint {waypoint.id} has invalid coordinate "
                    f"({waypoint.coordinate.lat}, {waypoint.coordinate.lng})"
                )
            if waypoint.id in seen:
                raise RouteValidationError(f"Duplicate waypoint id: {waypoint.id}")
            seen.add(waypoint.id)

        origins = [wp for wp in waypoints if wp.role == WaypointRole.ORIGIN]
        pickups = [wp for wp in waypoints if wp.role == WaypointRole.PICKUP]
        destinations = [wp for wp in waypoints if wp.role == WaypointRole.DESTINATION]

        if not destinations:
            raise RouteValidationError("No destination waypoint present")
        if len(destinations) > 1:
            raise RouteValidationError(f"Exactly one destination is required, got {len(destinations)}")
        if not origins:
            raise RouteValidationError("At least one vehicle origin is required")

        return origins, pickups, destinations[0]


def build_facade(cache: Optional[RouteCache] = None) -> RouteOptimizationFacade:
    """Facade wired from settings: provider chain, cache and defaults."""
    return RouteOptimizationFacade(router=build_fallback_router(cache or build_route_cache()))
