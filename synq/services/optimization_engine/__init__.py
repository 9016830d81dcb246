"""
Route optimization engine for shared rides.

This package provides modular components for:
- Great-circle distance math
- Road routing via MapQuest / OSRM / GraphHopper with a straight-line fallback
- Route caching with TTL, capacity bound and single-flight computation
- Pickup clustering and per-vehicle nearest-neighbor + 2-opt optimization
- Result formatting behind a single facade
"""

from .clustering import Clusterer
from .coordinator import MultiVehicleCoordinator
from .facade import RouteOptimizationFacade, build_facade
from .result_formatter import ResultFormatter
from .route_cache import RouteCache
from .routing_client import FallbackRouter
from .solver import SingleVehicleOptimizer
from .straight_line import StraightLineSynthesizer

__all__ = [
    "Clusterer",
    "MultiVehicleCoordinator",
    "RouteOptimizationFacade",
    "build_facade",
    "ResultFormatter",
    "RouteCache",
    "FallbackRouter",
    "SingleVehicleOptimizer",
    "StraightLineSynthesizer",
]
