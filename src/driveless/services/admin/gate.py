"""Retrying admin authorization check guarding the dashboard."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import Enum
from typing import Callable, Optional, Protocol

from ...config import settings
from ...errors import AuthError, PersistenceError
from ...persistence.collections import DocumentCollection
from ..statistics.aggregator import StatisticsAggregator
from ..statistics.models import DashboardSnapshot

logger = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = "Access denied. Admin privileges required."


class IdentityProvider(Protocol):
    def is_admin(self) -> bool:
        ...


class AdminDirectory:
    """Admin membership looked up as a row keyed by user id in the admins collection."""

    def __init__(self, admins: DocumentCollection, user_id: str) -> None:
        self.admins = admins
        self.user_id = user_id

    def is_admin(self) -> bool:
        if not self.user_id:
            return False
        try:
            is_admin = self.admins.get(self.user_id) is not None
        except PersistenceError as e:
            raise AuthError(f"Error checking admin access: {e}", attempts=0) from e
        logger.debug(f"Admin check for {self.user_id}: {is_admin}")
        return is_admin


class StaticIdentity:
    """Identity with a fixed answer; used for local runs and tests."""

    def __init__(self, admin: bool) -> None:
        self.admin = admin

    def is_admin(self) -> bool:
        return self.admin


@dataclass(frozen=True, slots=True)
class RetryOutcome:
    succeeded: bool
    attempts: int
    error_message: Optional[str] = None


def retry(
    operation: Callable[[], bool],
    max_attempts: int = 3,
    delay_fn: Callable[[float], None] = time.sleep,
    on_attempt: Callable[[int], None] | None = None,
    delay_seconds: float = 0.5,
) -> RetryOutcome:
    """Run ``operation`` until it returns ``True`` or attempts run out.

    An exception or an explicit ``False`` counts as a failed attempt. The
    message of the last failure is returned unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1.")

    last_message: Optional[str] = None
    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            delay_fn(delay_seconds)
        if on_attempt is not None:
            on_attempt(attempt)
        try:
            if operation():
                return RetryOutcome(succeeded=True, attempts=attempt)
            last_message = ACCESS_DENIED_MESSAGE
            logger.info(f"Admin access denied on attempt {attempt}/{max_attempts}")
        except Exception as e:
            last_message = getattr(e, "message", None) or str(e)
            logger.warning(f"Admin check error on attempt {attempt}/{max_attempts}: {last_message}")
    return RetryOutcome(succeeded=False, attempts=max_attempts, error_message=last_message)


class GateStatus(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    AUTHORIZED = "authorized"
    DENIED = "denied"


TERMINAL_STATUSES = frozenset({GateStatus.AUTHORIZED, GateStatus.DENIED})


@dataclass(slots=True)
class AdminCheckState:
    attempt: int = 0
    authorized: bool = False
    error_message: Optional[str] = None
    status: GateStatus = GateStatus.IDLE

    @property
    def finished(self) -> bool:
        return self.status in TERMINAL_STATUSES


class AdminAccessGate:
    """State machine for one authorization sequence.

    ``IDLE -> ATTEMPTING(n) -> AUTHORIZED | ATTEMPTING(n + 1) | DENIED``. Once
    the gate reaches a terminal status, further runs return that state.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        *,
        max_attempts: int | None = None,
        delay_fn: Callable[[float], None] = time.sleep,
        delay_seconds: float | None = None,
    ) -> None:
        self.identity = identity
        self.max_attempts = settings.admin_max_attempts if max_attempts is None else max_attempts
        self.delay_seconds = settings.admin_retry_delay_seconds if delay_seconds is None else delay_seconds
        self.delay_fn = delay_fn
        self.state = AdminCheckState()
        self._lock = threading.Lock()

    def _on_attempt(self, attempt: int) -> None:
        self.state.attempt = attempt
        self.state.status = GateStatus.ATTEMPTING
        logger.debug(f"Admin access check attempt {attempt}/{self.max_attempts}")

    def run(self) -> AdminCheckState:
        with self._lock:
            if self.state.finished:
                return self.state
            outcome = retry(
                self.identity.is_admin,
                max_attempts=self.max_attempts,
                delay_fn=self.delay_fn,
                on_attempt=self._on_attempt,
                delay_seconds=self.delay_seconds,
            )
            self.state.attempt = outcome.attempts
            if outcome.succeeded:
                self.state.authorized = True
                self.state.status = GateStatus.AUTHORIZED
                logger.info(f"Admin access granted on attempt {outcome.attempts}")
            else:
                self.state.error_message = outcome.error_message
                self.state.status = GateStatus.DENIED
            return self.state

    def require(self) -> int:
        """Return the successful attempt number or raise :class:`AuthError`."""
        state = self.run()
        if not state.authorized:
            raise AuthError(state.error_message or ACCESS_DENIED_MESSAGE, attempts=state.attempt)
        return state.attempt


@dataclass(frozen=True, slots=True)
class AdminDashboard:
    snapshot: DashboardSnapshot
    attempts: int


def load_dashboard(
    gate: AdminAccessGate,
    aggregator: StatisticsAggregator,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> AdminDashboard:
    attempts = gate.require()
    return AdminDashboard(snapshot=aggregator.snapshot(now, tz), attempts=attempts)
