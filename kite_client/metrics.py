"""
Kite Client - Request Metrics.

============================================================
PURPOSE
============================================================
In-process metrics for the request pipeline.

METRICS TRACKED:
- Request latency (by operation)
- Success/failure counts
- Failures by error category

============================================================
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


@dataclass
class LatencyStats:
    """Latency statistics."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count > 0 else 0.0

    def record(self, latency_ms: float) -> None:
        self.count += 1
        self.total_ms += latency_ms
        self.min_ms = min(self.min_ms, latency_ms)
        self.max_ms = max(self.max_ms, latency_ms)


class RequestMetrics:
    """
    Metrics collector shared by cloned clients.

    Thread-safe metrics collection and reporting.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._total = 0
            self._success = 0
            self._failure = 0
            self._latency = LatencyStats()
            self._by_operation: Dict[str, LatencyStats] = defaultdict(LatencyStats)
            self._errors_by_category: Dict[str, int] = defaultdict(int)

    def record_request(
        self,
        operation: str,
        latency_ms: float,
        success: bool,
        error_category: Optional[str] = None,
    ) -> None:
        """Record one completed or failed request."""
        with self._lock:
            self._total += 1
            if success:
                self._success += 1
            else:
                self._failure += 1
                self._errors_by_category[error_category or "UNKNOWN"] += 1
            self._latency.record(latency_ms)
            self._by_operation[operation].record(latency_ms)

    def get_latency_by_operation(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {
                operation: {
                    "count": stats.count,
                    "avg_ms": stats.avg_ms,
                    "min_ms": stats.min_ms,
                    "max_ms": stats.max_ms,
                }
                for operation, stats in self._by_operation.items()
            }

    def get_summary(self) -> Dict[str, Any]:
        """Get metrics summary."""
        with self._lock:
            return {
                "requests": {
                    "total": self._total,
                    "success": self._success,
                    "failure": self._failure,
                },
                "latency": {
                    "avg_ms": self._latency.avg_ms,
                    "max_ms": self._latency.max_ms,
                },
                "errors": dict(self._errors_by_category),
            }
