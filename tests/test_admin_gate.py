from datetime import datetime, timezone

import pytest

from driveless.errors import AuthError
from driveless.persistence.collections import InMemoryCollection
from driveless.persistence.route_store import RouteStore
from driveless.services.admin.gate import (
    ACCESS_DENIED_MESSAGE,
    AdminAccessGate,
    AdminDirectory,
    GateStatus,
    StaticIdentity,
    load_dashboard,
    retry,
)
from driveless.services.statistics.aggregator import StatisticsAggregator


class FlakyIdentity:
    """Fails with the queued errors before answering."""

    def __init__(self, outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    def is_admin(self) -> bool:
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_retry_succeeds_on_third_attempt() -> None:
    delays: list[float] = []
    attempts: list[int] = []
    identity = FlakyIdentity([RuntimeError("not ready"), RuntimeError("still not ready"), True])

    outcome = retry(identity.is_admin, max_attempts=3, delay_fn=delays.append, on_attempt=attempts.append, delay_seconds=0.5)

    assert outcome.succeeded is True
    assert outcome.attempts == 3
    assert attempts == [1, 2, 3]
    assert delays == [0.5, 0.5]


def test_gate_authorizes_and_records_attempt() -> None:
    identity = FlakyIdentity([RuntimeError("token refresh"), False, True])
    gate = AdminAccessGate(identity, max_attempts=3, delay_fn=lambda seconds: None, delay_seconds=0.0)

    state = gate.run()

    assert state.status == GateStatus.AUTHORIZED
    assert state.authorized is True
    assert state.attempt == 3
    assert gate.require() == 3
    assert identity.calls == 3


def test_gate_denies_with_last_message_verbatim() -> None:
    identity = FlakyIdentity([RuntimeError("first"), RuntimeError("second"), RuntimeError("permission check failed")])
    gate = AdminAccessGate(identity, max_attempts=3, delay_fn=lambda seconds: None)

    with pytest.raises(AuthError) as excinfo:
        gate.require()

    assert excinfo.value.message == "permission check failed"
    assert excinfo.value.attempts == 3
    assert gate.state.status == GateStatus.DENIED


def test_explicit_refusal_uses_access_denied_message() -> None:
    gate = AdminAccessGate(StaticIdentity(False), max_attempts=2, delay_fn=lambda seconds: None)

    state = gate.run()

    assert state.status == GateStatus.DENIED
    assert state.error_message == ACCESS_DENIED_MESSAGE


def test_terminal_state_is_final() -> None:
    identity = FlakyIdentity([False, False, False, True])
    gate = AdminAccessGate(identity, max_attempts=3, delay_fn=lambda seconds: None)

    gate.run()
    state = gate.run()

    assert state.status == GateStatus.DENIED
    assert identity.calls == 3


def test_admin_directory_looks_up_user_row() -> None:
    admins = InMemoryCollection("admins", [{"id": "user-1", "role": "admin"}])

    assert AdminDirectory(admins, "user-1").is_admin() is True
    assert AdminDirectory(admins, "user-2").is_admin() is False
    assert AdminDirectory(admins, "").is_admin() is False


def test_load_dashboard_requires_authorization() -> None:
    store = RouteStore(InMemoryCollection("saved_routes"), max_saved_routes=0)
    aggregator = StatisticsAggregator(
        store, InMemoryCollection("users"), InMemoryCollection("errors"), InMemoryCollection("analytics")
    )
    now = datetime(2026, 3, 18, 12, tzinfo=timezone.utc)

    loaded = load_dashboard(AdminAccessGate(StaticIdentity(True), delay_fn=lambda s: None), aggregator, now, timezone.utc)

    assert loaded.attempts == 1
    assert loaded.snapshot.total_routes == 0
    assert loaded.snapshot.success_rate == 100.0
    with pytest.raises(AuthError):
        load_dashboard(AdminAccessGate(StaticIdentity(False), delay_fn=lambda s: None), aggregator, now)
