"""Human-readable distance and duration strings."""

from __future__ import annotations

METERS_PER_MILE = 1609.344
FEET_PER_METER = 3.28084


def format_distance(meters: float, units: str = "imperial") -> str:
    if meters <= 0:
        return "0 mi" if units == "imperial" else "0 m"
    if units == "imperial":
        miles = meters / METERS_PER_MILE
        if miles < 0.1:
            return f"{round(meters * FEET_PER_METER)} ft"
        return f"{miles:.1f} mi"
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000.0:.1f} km"


def format_duration(seconds: float) -> str:
    total_minutes = max(0, int(round(seconds / 60.0)))
    hours, minutes = divmod(total_minutes, 60)
    if hours and minutes:
        return f"{hours} hr {minutes} min"
    if hours:
        return f"{hours} hr"
    return f"{minutes} min"
