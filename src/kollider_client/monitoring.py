"""
Observability for Kollider client.

The WebSocket core reports what happens through an injected ``EventSink``
instead of logging directly. ``SessionMonitor`` is the default sink: it logs
each event at a level chosen per event name, counts events, keeps a bounded
history and tracks REST request metrics.
"""

import logging
import time
from collections import Counter, defaultdict, deque
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# Events emitted by the transport, session, multiplexer and REST client
EVENT_LEVELS: Dict[str, int] = {
    "connected": logging.INFO,
    "connect_failed": logging.ERROR,
    "frame_sent": logging.DEBUG,
    "frame_received": logging.DEBUG,
    "frame_decode_failed": logging.WARNING,
    "frame_unrecognized": logging.WARNING,
    "transport_error": logging.ERROR,
    "stream_closed": logging.INFO,
    "auth_sent": logging.DEBUG,
    "authenticated": logging.INFO,
    "auth_failed": logging.ERROR,
    "message_discarded": logging.DEBUG,
    "message_held": logging.DEBUG,
    "request_held": logging.DEBUG,
    "request_sent": logging.DEBUG,
    "request_matched": logging.DEBUG,
    "request_failed": logging.WARNING,
    "request_timeout": logging.WARNING,
    "subscribed": logging.INFO,
    "unsubscribed": logging.INFO,
    "listener_error": logging.ERROR,
    "session_closed": logging.INFO,
    "http_request": logging.DEBUG,
}


class EventSink:
    """Receiver of named events with keyword fields. The base sink drops everything."""

    def emit(self, event: str, **fields: Any) -> None:
        pass


@dataclass(frozen=True)
class SessionEvent:
    """One recorded event."""
    name: str
    fields: Dict[str, Any]
    timestamp: float


@dataclass(frozen=True)
class RequestMetrics:
    """Metrics for a single REST request."""
    endpoint: str
    method: str
    status_code: int
    duration_ms: float
    timestamp: float


@dataclass
class Statistics:
    """REST client performance statistics."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_duration_ms: float = 0.0
    avg_duration_ms: float = 0.0
    min_duration_ms: float = float("inf")
    max_duration_ms: float = 0.0

    def update(self, metrics: RequestMetrics) -> None:
        """Update statistics with new request metrics."""
        self.total_requests += 1
        self.total_duration_ms += metrics.duration_ms
        self.avg_duration_ms = self.total_duration_ms / self.total_requests
        self.min_duration_ms = min(self.min_duration_ms, metrics.duration_ms)
        self.max_duration_ms = max(self.max_duration_ms, metrics.duration_ms)

        if 200 <= metrics.status_code < 400:
            self.successful_requests += 1
        else:
            self.failed_requests += 1


def _format_fields(fields: Dict[str, Any]) -> str:
    return " ".join(f"{key}={value!r}" for key, value in fields.items())


class SessionMonitor(EventSink):
    """Logging event sink with counters, history and REST statistics."""

    def __init__(self, max_history: int = 1000, log: Optional[logging.Logger] = None):
        self._max_history = max_history
        self._log = log or logger
        self._counts: Counter = Counter()
        self._history: deque = deque(maxlen=max_history)
        self._statistics = Statistics()
        self._request_history: deque = deque(maxlen=max_history)
        self._endpoint_stats: Dict[str, List[RequestMetrics]] = defaultdict(list)
        self._start_time = time.time()

    def emit(self, event: str, **fields: Any) -> None:
        """Record an event and log it at the level configured for its name."""
        self._counts[event] += 1
        self._history.append(SessionEvent(name=event, fields=dict(fields), timestamp=time.time()))

        level = EVENT_LEVELS.get(event, logging.INFO)
        if self._log.isEnabledFor(level):
            self._log.log(level, f"{event} {_format_fields(fields)}".rstrip())

    def count(self, event: str) -> int:
        """Number of times an event was emitted."""
        return self._counts[event]

    def events(self, name: Optional[str] = None) -> List[SessionEvent]:
        """Recorded events, optionally filtered by name, oldest first."""
        if name is None:
            return list(self._history)
        return [item for item in self._history if item.name == name]

    def record_request(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        """Record metrics for a completed REST request."""
        metrics = RequestMetrics(
            endpoint=endpoint,
            method=method,
            status_code=status_code,
            duration_ms=duration_ms,
            timestamp=time.time(),
        )
        self._statistics.update(metrics)
        self._request_history.append(metrics)

        endpoint_key = f"{method} {endpoint}"
        self._endpoint_stats[endpoint_key].append(metrics)
        if len(self._endpoint_stats[endpoint_key]) > self._max_history:
            self._endpoint_stats[endpoint_key] = self._endpoint_stats[endpoint_key][-self._max_history:]

        self.emit(
            "http_request",
            method=method,
            endpoint=endpoint,
            status=status_code,
            duration_ms=round(duration_ms, 3),
        )

    @property
    def statistics(self) -> Statistics:
        """Get current REST statistics snapshot."""
        return self._statistics

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self._start_time

    def get_endpoint_stats(self, endpoint: str, method: str) -> Dict[str, float]:
        """Get statistics for a specific endpoint."""
        requests = self._endpoint_stats.get(f"{method} {endpoint}", [])

        if not requests:
            return {
                "count": 0,
                "avg_duration_ms": 0.0,
                "min_duration_ms": 0.0,
                "max_duration_ms": 0.0,
                "success_rate": 0.0,
            }

        durations = [r.duration_ms for r in requests]
        successful = sum(1 for r in requests if 200 <= r.status_code < 400)

        return {
            "count": len(requests),
            "avg_duration_ms": sum(durations) / len(durations),
            "min_duration_ms": min(durations),
            "max_duration_ms": max(durations),
            "success_rate": successful / len(requests),
        }

    def get_error_rate(self, window_seconds: float = 60.0) -> float:
        """Get REST error rate for the recent time window."""
        cutoff_time = time.time() - window_seconds
        recent = [r for r in self._request_history if r.timestamp >= cutoff_time]
        if not recent:
            return 0.0
        return sum(1 for r in recent if r.status_code >= 400) / len(recent)

    def reset(self) -> None:
        """Reset counters, history and statistics."""
        self._counts.clear()
        self._history.clear()
        self._statistics = Statistics()
        self._request_history.clear()
        self._endpoint_stats.clear()
        self._start_time = time.time()
