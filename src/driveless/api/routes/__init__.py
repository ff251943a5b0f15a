"""Route group exports."""

from . import admin, health, routes

__all__ = ["admin", "health", "routes"]
