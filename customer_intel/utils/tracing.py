"""Request-scoped operation timing."""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generator

from customer_intel.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TraceEvent:
    """Individual timed operation within a request."""

    timestamp: datetime
    operation: str
    duration_ms: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class RequestTracer:
    """Times the operations performed while serving one request."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self.events: list[TraceEvent] = []
        self.start_time = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the tracer was created."""
        return (time.perf_counter() - self.start_time) * 1000

    def add_event(
        self,
        operation: str,
        duration_ms: float | None = None,
        **metadata: Any,
    ) -> None:
        """Add a trace event."""
        event = TraceEvent(
            timestamp=datetime.now(timezone.utc),
            operation=operation,
            duration_ms=duration_ms,
            metadata=metadata,
        )
        self.events.append(event)

        logger.debug(
            "trace_event",
            endpoint=self.endpoint,
            operation=operation,
            duration_ms=duration_ms,
            **metadata,
        )

    @contextmanager
    def trace_operation(self, operation: str, **metadata: Any) -> Generator[None, None, None]:
        """Context manager to trace an operation with timing."""
        start = time.perf_counter()
        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self.add_event(operation, duration_ms=duration_ms, **metadata)

    def get_trace_summary(self) -> dict[str, Any]:
        """Get a summary of the trace."""
        return {
            "endpoint": self.endpoint,
            "total_duration_ms": self.elapsed_ms,
            "total_events": len(self.events),
            "events": [
                {
                    "timestamp": event.timestamp.isoformat(),
                    "operation": event.operation,
                    "duration_ms": event.duration_ms,
                    "metadata": event.metadata,
                }
                for event in self.events
            ],
        }
