"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class RouteConstraints:
    fixed_start: bool = True
    fixed_end: bool = True
    round_trip: bool = False
    include_traffic: bool = False


@dataclass(slots=True)
class CostMatrix:
    """Pairwise travel costs; ``None`` marks an unreachable pair."""

    distances: List[List[Optional[float]]]
    durations: List[List[Optional[float]]]
    source: str = "osrm"

    @classmethod
    def from_table(cls, table: dict, source: str = "osrm") -> "CostMatrix":
        durations = table.get("durations")
        distances = table.get("distances")
        if durations is None or distances is None:
            raise ValueError("Table response missing durations or distances.")
        return cls(distances=distances, durations=durations, source=source)

    @property
    def size(self) -> int:
        return len(self.distances)

    def costs(self, include_traffic: bool) -> List[List[Optional[float]]]:
        return self.durations if include_traffic else self.distances
