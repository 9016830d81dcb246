"""
Multi-vehicle coordinator.

Clusters pickups once, then optimizes every vehicle independently. Vehicles
share only the read-only inputs, so their optimizations run concurrently.
"""

import asyncio
from typing import List, Optional

from synq.core.config import settings
from synq.core.logging_config import logger
from synq.models.route import Constraints, VehicleAssignment, Waypoint
from synq.services.optimization_engine.clustering import Clusterer
from synq.services.optimization_engine.solver import SingleVehicleOptimizer


class CoordinatorResult:
    """Per-vehicle assignments with aggregated totals."""

    def __init__(self, assignments: List[VehicleAssignment], warnings: List[str]):
        self.assignments = assignments
        self.warnings = warnings

    @property
    def total_distance_meters(self) -> float:
        return sum(a.route.total_distance_meters for a in self.assignments)

    @property
    def total_duration_seconds(self) -> float:
        return sum(a.route.total_duration_seconds for a in self.assignments)


class MultiVehicleCoordinator:
    """Runs clustering then per-vehicle optimization."""

    def __init__(
        self,
        optimizer: SingleVehicleOptimizer,
        clusterer: Optional[Clusterer] = None,
        max_concurrency: Optional[int] = None
    ):
        self.optimizer = optimizer
        self.clusterer = clusterer or Clusterer()
        self.max_concurrency = max_concurrency or settings.MAX_CONCURRENT_VEHICLES

    async def optimize(
        self,
        origins: List[Waypoint],
        pickups: List[Waypoint],
        destination: Waypoint,
        constraints: Constraints
    ) -> CoordinatorResult:
        """
        Plan routes for every vehicle.

        Args:
            origins: One origin per vehicle
            pickups: All passengers to pick up
            destination: Shared destination
            constraints: Capacity, limits and traffic mode

        Returns:
            CoordinatorResult with one assignment per origin, in origin order
        """
        clusters = self.clusterer.cluster(origins, pickups, constraints.max_passengers_per_vehicle)
        warnings = [
            f"Pickup {pickup.id} exceeds vehicle capacity and was assigned to the least-loaded vehicle"
            for pickup in clusters.overflow
        ]

        # worker pool sized to the vehicle count
        semaphore = asyncio.Semaphore(max(1, min(len(origins), self.max_concurrency)))

        async def run(origin: Waypoint, group: List[Waypoint]) -> VehicleAssignment:
            async with semaphore:
                return await self.optimizer.optimize(
                    origin, group, destination, traffic_mode=constraints.traffic_mode
                )

        tasks = [
            asyncio.ensure_future(run(origin, group))
            for origin, group in zip(origins, clusters.groups)
        ]
        try:
            assignments = await asyncio.gather(*tasks)
        except BaseException:
            # one vehicle failed or the caller went away; stop the others
            for task in tasks:
                task.cancel()
            raise

        for assignment in assignments:
            warnings.extend(constraint_warnings(assignment, constraints))

        result = CoordinatorResult(assignments=list(assignments), warnings=warnings)
        logger.info(
            f"Multi-vehicle optimization completed: {len(assignments)} vehicles, "
            f"total distance={result.total_distance_meters:.0f}m, "
            f"total time={result.total_duration_seconds:.0f}s, warnings={len(warnings)}"
        )
        return result


def constraint_warnings(assignment: VehicleAssignment, constraints: Constraints) -> List[str]:
    """Non-blocking warnings for a route over its distance or duration limit."""
    warnings = []
    route = assignment.route
    if constraints.max_route_distance_meters and route.total_distance_meters > constraints.max_route_distance_meters:
        warnings.append(
            f"Route for {assignment.origin.id} is {route.total_distance_meters:.0f}m, "
            f"over the {constraints.max_route_distance_meters:.0f}m limit"
        )
    if constraints.max_route_duration_seconds and route.total_duration_seconds > constraints.max_route_duration_seconds:
        warnings.append(
            f"Route for {assignment.origin.id} takes {route.total_duration_seconds:.0f}s, "
            f"over the {constraints.max_route_duration_seconds:.0f}s limit"
        )
    for warning in warnings:
        logger.warning(warning)
    return warnings
