"""Admin access exports."""

from .gate import (
    AdminAccessGate,
    AdminCheckState,
    AdminDirectory,
    GateStatus,
    StaticIdentity,
    load_dashboard,
    retry,
)

__all__ = [
    "AdminAccessGate",
    "AdminCheckState",
    "AdminDirectory",
    "GateStatus",
    "StaticIdentity",
    "load_dashboard",
    "retry",
]
