"""Exception taxonomy shared by the routing, storage and admin services."""

from __future__ import annotations

from enum import Enum


class DrivelessError(Exception):
    """Base class for every error raised by the engine."""


class OptimizationError(DrivelessError):
    """No feasible visiting order could be produced."""


class RoutingReason(str, Enum):
    NO_ROUTE = "no_route"
    UNAVAILABLE = "unavailable"
    RATE_LIMITED = "rate_limited"


class RoutingError(DrivelessError):
    """The directions provider could not produce legs for an ordering."""

    def __init__(self, message: str, reason: RoutingReason = RoutingReason.UNAVAILABLE) -> None:
        super().__init__(message)
        self.reason = reason


class PersistenceError(DrivelessError):
    """A saved-route read or write failed, e.g. an unknown id on update."""


class AuthError(DrivelessError):
    """The admin check exhausted its attempts."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.message = message
        self.attempts = attempts
