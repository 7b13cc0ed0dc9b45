"""
Metrics Collection for the Reminder Service.

In-process counters and timers for scheduling and delivery.
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict

COUNTERS = (
    "reminders_created_total",
    "reminders_scheduled_total",
    "scheduling_failures_total",
    "deliveries_sent_total",
    "deliveries_failed_total",
    "delivery_retries_total",
    "duplicate_callbacks_total",
    "snoozes_total",
    "dismissals_total",
)


class MetricsCollector:
    """Collects and manages metrics for the reminder service."""

    def __init__(self):
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()
        for name in COUNTERS:
            self.metrics[name] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    @contextmanager
    def time_operation(self, metric_name: str):
        """Time the enclosed block, recording even when it raises."""
        start_time = time.monotonic()
        try:
            yield
        finally:
            self.record_timer(metric_name, time.monotonic() - start_time)

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.utcnow().isoformat()
            }

    def reset(self):
        with self.lock:
            self.metrics.clear()
            self.timers.clear()
            for name in COUNTERS:
                self.metrics[name] = 0


# Global metrics instance
metrics_collector = MetricsCollector()
