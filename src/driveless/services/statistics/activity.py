"""Route calculation and error events feeding the admin dashboard."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ...errors import RoutingError
from ...models.domain import OptimizedRouteResult, OriginalRouteInputs
from ...persistence.collections import DocumentCollection

logger = logging.getLogger(__name__)

ROUTE_CALCULATION = "route_calculation"
ERROR = "error"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def error_type_for(error: Exception) -> str:
    if isinstance(error, RoutingError):
        return f"routing_{error.reason.value}"
    return type(error).__name__


class ActivityRecorder:
    """Writes calculation events to ``analytics`` and failures to ``errors`` as well.

    Recording never interrupts the caller: a write failure is logged and
    dropped.
    """

    def __init__(
        self,
        errors: DocumentCollection,
        analytics: DocumentCollection,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.errors = errors
        self.analytics = analytics
        self._clock = clock or _utc_now

    def _write(self, collection: DocumentCollection, document: dict[str, Any]) -> None:
        try:
            collection.insert({**document, "id": str(uuid.uuid4())})
        except Exception as e:
            logger.error(f"Failed to record {document.get('type')} event in '{collection.name}': {e}")

    def route_calculated(
        self,
        inputs: OriginalRouteInputs,
        result: Optional[OptimizedRouteResult] = None,
        *,
        user_id: Optional[str] = None,
        error: Optional[Exception] = None,
    ) -> None:
        stops = [stop.display_name or stop.address for stop in inputs.stops]
        self._write(
            self.analytics,
            {
                "userId": user_id,
                "type": ROUTE_CALCULATION,
                "stops": stops,
                "stopCount": len(stops),
                "totalDistance": result.total_distance if result else "",
                "totalTime": result.estimated_time if result else "",
                "success": error is None,
                "errorMessage": str(error) if error else "",
                "timestamp": self._clock().isoformat(),
            },
        )

    def error(
        self,
        error: Exception,
        *,
        user_id: Optional[str] = None,
        location: str = "unknown",
        additional_data: Optional[dict[str, Any]] = None,
    ) -> None:
        document = {
            "userId": user_id,
            "type": ERROR,
            "errorType": error_type_for(error),
            "errorMessage": str(error),
            "location": location,
            "additionalData": additional_data or {},
            "timestamp": self._clock().isoformat(),
            "resolved": False,
        }
        self._write(self.analytics, document)
        self._write(self.errors, document)
        logger.info(f"Recorded {document['errorType']} error at {location}")
