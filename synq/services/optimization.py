import asyncio
from typing import Dict, Optional

from synq.core.logging_config import logger
from synq.schemas.route import RouteOptimizationRequest, RouteOptimizationResult
from synq.services.optimization_engine.errors import RequestSupersededError
from synq.services.optimization_engine.facade import RouteOptimizationFacade, build_facade


class OptimizationService:
    """
    Service layer in front of the optimization facade.

    Callers that re-optimize the same ride (e.g. on every driver location
    update) pass a session key. A newer request for a session cancels the
    older one, and a stale result is never returned.
    """

    def __init__(self, facade: Optional[RouteOptimizationFacade] = None):
        self._facade = facade
        self._latest: Dict[str, asyncio.Task] = {}

    @property
    def facade(self) -> RouteOptimizationFacade:
        # built lazily so importing the service does not touch Redis
        if self._facade is None:
            self._facade = build_facade()
        return self._facade

    async def optimize(
        self,
        request: RouteOptimizationRequest,
        session_key: Optional[str] = None
    ) -> RouteOptimizationResult:
        """
        Run an optimization, superseding any in-flight one for the session.

        Args:
            request: Optimization request
            session_key: Optional caller-chosen key, e.g. a ride id

        Returns:
            RouteOptimizationResult

        Raises:
            RouteValidationError: If the request is structurally invalid
            RequestSupersededError: If a newer request for the session arrived first
        """
        if session_key is None:
            return await self.facade.optimize_request(request)

        previous = self._latest.get(session_key)
        if previous is not None and not previous.done():
            logger.info(f"Superseding in-flight optimization for session {session_key}")
            previous.cancel()

        task = asyncio.ensure_future(self.facade.optimize_request(request))
        self._latest[session_key] = task

        try:
            result = await task
        except asyncio.CancelledError:
            if self._latest.get(session_key) is not task:
                raise RequestSupersededError(f"Optimization for session {session_key} was superseded")
            # the caller itself went away
            task.cancel()
            del self._latest[session_key]
            raise

        # finished, but a newer request arrived before we resumed
        if self._latest.get(session_key) is not task:
            raise RequestSupersededError(f"Optimization for session {session_key} was superseded")

        del self._latest[session_key]
        return result


# Create singleton instance
optimization_service = OptimizationService()


def get_optimization_service() -> OptimizationService:
    return optimization_service
