"""
Traffic-aware edge costs.

The optimizer asks a TrafficProvider for the congestion severity of each
edge and scales the great-circle distance by a fixed multiplier. Swap in a
provider backed by a live feed without touching the optimizer.
"""

import enum
from typing import Dict, Optional, Protocol, Tuple

from synq.core.logging_config import logger
from synq.models.route import Coordinate


class TrafficSeverity(str, enum.Enum):
    """Congestion level on a road segment."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    SEVERE = "severe"


TRAFFIC_MULTIPLIERS = {
    TrafficSeverity.LOW: 1.0,
    TrafficSeverity.MEDIUM: 1.3,
    TrafficSeverity.HIGH: 1.8,
    TrafficSeverity.SEVERE: 2.5,
}

DEFAULT_MULTIPLIER = 1.0


class TrafficProvider(Protocol):
    """Source of congestion data for an edge."""

    async def severity(self, start: Coordinate, end: Coordinate) -> Optional[TrafficSeverity]:
        """Severity between two points, or None when unknown. May do I/O."""
        ...


class NoTrafficProvider:
    """Never knows anything; every edge costs its plain distance."""

    async def severity(self, start: Coordinate, end: Coordinate) -> Optional[TrafficSeverity]:
        return None


class StaticTrafficProvider:
    """
    Fixed severities, e.g. from a periodically refreshed snapshot.

    Edges are looked up in both directions; anything else gets `default`.
    """

    def __init__(
        self,
        edges: Optional[Dict[Tuple[Coordinate, Coordinate], TrafficSeverity]] = None,
        default: Optional[TrafficSeverity] = None
    ):
        self.edges = dict(edges or {})
        self.default = default

    async def severity(self, start: Coordinate, end: Coordinate) -> Optional[TrafficSeverity]:
        if (start, end) in self.edges:
            return self.edges[(start, end)]
        return self.edges.get((end, start), self.default)


def traffic_multiplier(severity) -> float:
    """Multiplier for a severity; unknown or missing values cost 1.0."""
    if severity is None:
        return DEFAULT_MULTIPLIER
    try:
        return TRAFFIC_MULTIPLIERS[TrafficSeverity(severity)]
    except ValueError:
        return DEFAULT_MULTIPLIER


async def edge_multiplier(provider: TrafficProvider, start: Coordinate, end: Coordinate) -> float:
    """Look up the multiplier for one edge, treating provider errors as no data."""
    try:
        return traffic_multiplier(await provider.severity(start, end))
    except Exception as e:
        logger.warning(f"Traffic lookup failed, using base distance: {e}")
        return DEFAULT_MULTIPLIER
