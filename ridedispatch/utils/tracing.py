"""Per-ride dispatch timeline."""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator
from uuid import UUID

from ridedispatch.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TraceEvent:
    """One step of a ride's dispatch, timed from session start."""

    event_type: str
    offset_ms: float
    duration_ms: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class DispatchTracer:
    """
    Records what happened while a ride was being dispatched.

    Offsets are measured on the monotonic clock from the moment the
    session opened, so they stay meaningful across wall-clock changes.
    """

    def __init__(self, ride_id: UUID):
        self.ride_id = ride_id
        self.events: list[TraceEvent] = []
        self._started = time.monotonic()

    def _elapsed_ms(self) -> float:
        return (time.monotonic() - self._started) * 1000

    def add_event(
        self,
        event_type: str,
        duration_ms: float | None = None,
        **metadata: Any,
    ) -> None:
        """Append an event at the current offset."""
        self.events.append(
            TraceEvent(
                event_type=event_type,
                offset_ms=self._elapsed_ms(),
                duration_ms=duration_ms,
                metadata=metadata,
            )
        )

        logger.debug(
            "dispatch_trace",
            ride_id=str(self.ride_id),
            event_type=event_type,
            duration_ms=duration_ms,
            **metadata,
        )

    @contextmanager
    def trace_operation(self, operation: str, **metadata: Any) -> Generator[None, None, None]:
        """Time a block and record it as one event."""
        start = time.monotonic()
        try:
            yield
        finally:
            self.add_event(operation, duration_ms=(time.monotonic() - start) * 1000, **metadata)

    def first_offset(self, event_type: str) -> float | None:
        """Offset of the first event of a type, or None if it never happened."""
        for event in self.events:
            if event.event_type == event_type:
                return event.offset_ms
        return None

    def get_trace_summary(self) -> dict[str, Any]:
        """Aggregates logged when the session closes."""
        event_counts: dict[str, int] = {}
        rank_ms = 0.0

        for event in self.events:
            event_counts[event.event_type] = event_counts.get(event.event_type, 0) + 1
            if event.event_type == "rank" and event.duration_ms is not None:
                rank_ms += event.duration_ms

        first_push = self.first_offset("driver_notified")

        return {
            "total_duration_ms": round(self._elapsed_ms(), 3),
            "rank_ms": round(rank_ms, 3),
            "first_push_ms": round(first_push, 3) if first_push is not None else None,
            "event_counts": event_counts,
        }
