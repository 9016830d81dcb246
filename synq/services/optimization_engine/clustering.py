"""
Pickup clustering.

Assigns every pickup to one vehicle: the nearest vehicle origin with a free
seat. When every vehicle is full the pickup goes to the least-loaded vehicle
anyway and is reported as overflow, so no passenger is ever dropped.
"""

from typing import List, Optional

from synq.core.logging_config import logger
from synq.models.route import Waypoint
from synq.services.optimization_engine.geo import haversine_distance


class ClusterResult:
    """Pickup groups, one per vehicle, in vehicle order."""

    def __init__(self, groups: List[List[Waypoint]], overflow: List[Waypoint]):
        self.groups = groups
        self.overflow = overflow

    @property
    def loads(self) -> List[int]:
        return [len(group) for group in self.groups]


class Clusterer:
    """Nearest-origin clustering with a capacity overflow policy."""

    def cluster(
        self,
        origins: List[Waypoint],
        pickups: List[Waypoint],
        max_passengers_per_vehicle: Optional[int] = None
    ) -> ClusterResult:
        """
        Split pickups between vehicles.

        Args:
            origins: Vehicle start points; index order breaks distance ties
            pickups: Passengers to assign, in input order
            max_passengers_per_vehicle: Seats per vehicle (None or < 1 means unlimited)

        Returns:
            ClusterResult with one possibly empty group per origin
        """
        if not origins:
            raise ValueError("At least one vehicle origin is required for clustering")

        capacity = max_passengers_per_vehicle if max_passengers_per_vehicle and max_passengers_per_vehicle > 0 else None
        groups: List[List[Waypoint]] = [[] for _ in origins]
        overflow: List[Waypoint] = []

        for pickup in pickups:
            distances = [haversine_distance(origin.coordinate, pickup.coordinate) for origin in origins]
            # stable sort keeps the lowest index first among equal distances
            ranked = sorted(range(len(origins)), key=lambda i: distances[i])

            chosen = next(
                (i for i in ranked if capacity is None or len(groups[i]) < capacity),
                None
            )
            if chosen is None:
                chosen = min(ranked, key=lambda i: (len(groups[i]), distances[i], i))
                overflow.append(pickup)
                logger.warning(
                    f"All vehicles full; pickup {pickup.id} assigned to least-loaded "
                    f"vehicle {origins[chosen].id} ({len(groups[chosen]) + 1} passengers)"
                )

            groups[chosen].append(pickup)

        logger.info(
            f"Clustered {len(pickups)} pickups across {len(origins)} vehicles: "
            f"loads={[len(group) for group in groups]}, overflow={len(overflow)}"
        )
        return ClusterResult(groups=groups, overflow=overflow)
