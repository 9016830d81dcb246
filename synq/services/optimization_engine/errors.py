"""
Error types for the route optimization engine.

Provider failures never travel as exceptions: clients return a ProviderResult
holding either a Route or a ProviderError tagged with its kind. Only
structurally invalid input raises (RouteValidationError).
"""

import enum
from typing import Optional

from synq.models.route import Route


class ProviderErrorKind(str, enum.Enum):
    """Why a routing provider call failed."""
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    NETWORK_ERROR = "network_error"

    @property
    def retryable(self) -> bool:
        return self is not ProviderErrorKind.INVALID_RESPONSE


class ProviderError:
    """A failed provider call."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        provider: str = "",
        retry_after: Optional[float] = None
    ):
        self.kind = kind
        self.message = message
        self.provider = provider
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def __repr__(self) -> str:
        return f"ProviderError({self.provider}: {self.kind.value} - {self.message})"


class ProviderResult:
    """Either a Route (success) or a ProviderError (failure)."""

    def __init__(self, route: Optional[Route] = None, error: Optional[ProviderError] = None):
        if (route is None) == (error is None):
            raise ValueError("ProviderResult needs exactly one of route or error")
        self.route = route
        self.error = error

    @classmethod
    def success(cls, route: Route) -> "ProviderResult":
        return cls(route=route)

    @classmethod
    def failure(
        cls,
        kind: ProviderErrorKind,
        message: str,
        provider: str = "",
        retry_after: Optional[float] = None
    ) -> "ProviderResult":
        return cls(error=ProviderError(kind, message, provider, retry_after))

    @property
    def ok(self) -> bool:
        return self.route is not None


class RouteValidationError(ValueError):
    """The request is structurally invalid and cannot be optimized."""


class RequestSupersededError(Exception):
    """A newer request for the same session replaced this one."""
