"""Request counters for the /stats endpoint."""

import os
import time
from collections import Counter


class RequestStats:
    """Counts requests, status codes and response time since startup."""

    def __init__(self) -> None:
        self.started = time.monotonic()
        self.total_count = 0
        self.status_code_count: Counter[str] = Counter()
        self.total_response_time = 0.0

    def record(self, status_code: int, elapsed: float) -> None:
        self.total_count += 1
        self.status_code_count[str(status_code)] += 1
        self.total_response_time += elapsed

    def snapshot(self) -> dict[str, object]:
        average = self.total_response_time / self.total_count if self.total_count else 0.0
        return {
            "pid": os.getpid(),
            "uptime_sec": time.monotonic() - self.started,
            "total_count": self.total_count,
            "total_status_code_count": dict(self.status_code_count),
            "total_response_time_sec": self.total_response_time,
            "average_response_time_sec": average,
        }
