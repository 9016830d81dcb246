"""
Single-vehicle tour optimizer.

Nearest-neighbor construction followed by 2-opt refinement. The origin stays
first and the destination last; only the pickups in between move. Tour sizes
are bounded by the vehicle capacity, so the O(n^2) passes stay cheap.
"""

import asyncio
from typing import List, Optional

from synq.core.config import settings
from synq.core.logging_config import logger
from synq.models.route import VehicleAssignment, Waypoint
from synq.services.optimization_engine.geo import haversine_distance
from synq.services.optimization_engine.routing_client import FallbackRouter
from synq.services.optimization_engine.traffic import NoTrafficProvider, TrafficProvider, edge_multiplier

# Improvements smaller than this are float noise, not real gains
IMPROVEMENT_EPSILON = 1e-9


class TourPlan:
    """Optimized visiting order with its cost before and after refinement."""

    def __init__(
        self,
        waypoints: List[Waypoint],
        order: List[int],
        construction_cost: float,
        cost: float,
        passes: int
    ):
        self.waypoints = waypoints
        self.order = order
        self.construction_cost = construction_cost
        self.cost = cost
        self.passes = passes


class SingleVehicleOptimizer:
    """Orders one vehicle's pickups and fetches the road path for that order."""

    def __init__(
        self,
        router: FallbackRouter,
        traffic_provider: Optional[TrafficProvider] = None,
        max_iterations: Optional[int] = None
    ):
        """
        Args:
            router: Provides the road polyline for the final order
            traffic_provider: Congestion source used when traffic mode is on
            max_iterations: Cap on 2-opt passes (defaults to settings)
        """
        self.router = router
        self.traffic_provider = traffic_provider or NoTrafficProvider()
        self.max_iterations = max_iterations if max_iterations is not None else settings.TWO_OPT_MAX_ITERATIONS

    async def traffic_matrix(self, nodes: List[Waypoint]) -> List[List[float]]:
        """
        Traffic multiplier for every directed edge between nodes.

        Lookups run concurrently so a provider backed by a live feed does not
        serialize one request per edge.
        """
        size = len(nodes)
        pairs = [(i, j) for i in range(size) for j in range(size) if i != j]
        values = await asyncio.gather(*(
            edge_multiplier(self.traffic_provider, nodes[i].coordinate, nodes[j].coordinate)
            for i, j in pairs
        ))

        matrix = [[1.0] * size for _ in range(size)]
        for (i, j), value in zip(pairs, values):
            matrix[i][j] = value
        return matrix

    def cost_matrix(
        self,
        nodes: List[Waypoint],
        multipliers: Optional[List[List[float]]] = None
    ) -> List[List[float]]:
        """
        Edge costs between every pair of nodes.

        Plain great-circle meters, scaled by `multipliers[i][j]` when given.
        """
        size = len(nodes)
        matrix = [[0.0] * size for _ in range(size)]
        for i in range(size):
            for j in range(size):
                if i == j:
                    continue
                cost = haversine_distance(nodes[i].coordinate, nodes[j].coordinate)
                if multipliers is not None:
                    cost *= multipliers[i][j]
                matrix[i][j] = cost
        return matrix

    @staticmethod
    def tour_cost(tour: List[int], matrix: List[List[float]]) -> float:
        return sum(matrix[tour[i]][tour[i + 1]] for i in range(len(tour) - 1))

    def construct(self, matrix: List[List[float]]) -> List[int]:
        """
        Nearest-neighbor tour over node indices.

        Node 0 is the origin and the last node the destination; ties go to the
        pickup listed first.
        """
        destination = len(matrix) - 1
        unvisited = list(range(1, destination))
        tour = [0]
        current = 0

        while unvisited:
            nearest = unvisited[0]
            for candidate in unvisited[1:]:
                if matrix[current][candidate] < matrix[current][nearest]:
                    nearest = candidate
            tour.append(nearest)
            unvisited.remove(nearest)
            current = nearest

        tour.append(destination)
        return tour

    def refine(self, tour: List[int], matrix: List[List[float]]):
        """
        2-opt local search with fixed endpoints.

        Reverses interior segments while doing so strictly lowers the cost.

        Returns:
            (refined tour, number of passes made)
        """
        best = list(tour)
        best_cost = self.tour_cost(best, matrix)
        passes = 0
        improved = True

        while improved and passes < self.max_iterations:
            improved = False
            passes += 1

            for i in range(1, len(best) - 2):
                for j in range(i + 1, len(best) - 1):
                    candidate = best[:i] + best[i:j + 1][::-1] + best[j + 1:]
                    candidate_cost = self.tour_cost(candidate, matrix)
                    if candidate_cost < best_cost - IMPROVEMENT_EPSILON:
                        best = candidate
                        best_cost = candidate_cost
                        improved = True

        return best, passes

    def plan(
        self,
        origin: Waypoint,
        pickups: List[Waypoint],
        destination: Waypoint,
        multipliers: Optional[List[List[float]]] = None
    ) -> TourPlan:
        """
        Visiting order for one vehicle, without any routing calls.

        Args:
            origin: Vehicle start
            pickups: Pickups to order
            destination: Shared destination
            multipliers: Optional per-edge traffic multipliers over
                [origin] + pickups + [destination]
        """
        nodes = [origin] + list(pickups) + [destination]
        matrix = self.cost_matrix(nodes, multipliers)

        constructed = self.construct(matrix)
        construction_cost = self.tour_cost(constructed, matrix)
        refined, passes = self.refine(constructed, matrix)
        cost = self.tour_cost(refined, matrix)

        logger.debug(
            f"Tour for {origin.id}: {len(pickups)} pickups, nearest-neighbor={construction_cost:.0f}, "
            f"2-opt={cost:.0f} after {passes} passes"
        )
        return TourPlan(
            waypoints=[nodes[i] for i in refined],
            order=refined,
            construction_cost=construction_cost,
            cost=cost,
            passes=passes
        )

    async def optimize(
        self,
        origin: Waypoint,
        pickups: List[Waypoint],
        destination: Waypoint,
        traffic_mode: bool = False
    ) -> VehicleAssignment:
        """
        Optimize one vehicle's tour and fetch its road route.

        A vehicle without pickups drives straight to the destination. In
        traffic mode, edge costs and the duration of a synthesized route are
        scaled by the traffic multipliers.
        """
        nodes = [origin] + list(pickups) + [destination]
        multipliers = await self.traffic_matrix(nodes) if traffic_mode else None

        if pickups:
            order = self.plan(origin, pickups, destination, multipliers).order
        else:
            order = [0, 1]
        ordered = [nodes[i] for i in order]

        logger.info(f"Optimized order for {origin.id}: {[wp.id for wp in ordered]}")

        route = await self.router.route(ordered)
        if multipliers is not None and route.synthesized:
            legs = [multipliers[order[i]][order[i + 1]] for i in range(len(order) - 1)]
            route = self.router.synthesizer.apply_traffic(route, legs)
        return VehicleAssignment(origin=origin, pickups=pickups, route=route)
