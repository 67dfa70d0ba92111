"""
Rolling metrics for RDAP requests.

Tracks latency, timeouts and HTTP status codes of the requests issued
by one BatchFetcher so a batch can be summarized in the log.
"""

import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class MetricsSnapshot:
    """Point-in-time metrics snapshot."""
    avg_latency_ms: float
    p95_latency_ms: float
    timeout_rate: float  # 0.0 to 1.0
    throughput: float  # requests per second
    total_requests: int
    total_timeouts: int
    status_codes: dict[int, int] = field(default_factory=dict)


class RequestMetrics:
    """
    Rolling window tracker.

    Latencies are kept for the last N completed requests (timeouts are
    counted separately and excluded from latency figures).
    """

    def __init__(self, latency_window: int = 1000, throughput_window: float = 10.0):
        self.latencies: deque[float] = deque(maxlen=latency_window)
        self.timestamps: deque[float] = deque()
        self.throughput_window = throughput_window
        self.status_codes: Counter[int] = Counter()

        self.total_requests = 0
        self.total_timeouts = 0
        self.total_errors = 0

    def record(self, latency_ms: float, status: Optional[int] = None, is_timeout: bool = False):
        """
        Record one finished request.

        status is None for transport failures (no HTTP response).
        """
        now = time.monotonic()
        self.total_requests += 1

        if is_timeout:
            self.total_timeouts += 1
        elif status is None:
            self.total_errors += 1
        else:
            self.status_codes[status] += 1
            self.latencies.append(latency_ms)

        self.timestamps.append(now)
        cutoff = now - self.throughput_window
        while self.timestamps and self.timestamps[0] < cutoff:
            self.timestamps.popleft()

    def get_avg_latency(self) -> float:
        if not self.latencies:
            return 0.0
        return sum(self.latencies) / len(self.latencies)

    def get_p95_latency(self) -> float:
        if not self.latencies:
            return 0.0
        ordered = sorted(self.latencies)
        idx = int(len(ordered) * 0.95)
        return ordered[min(idx, len(ordered) - 1)]

    def get_timeout_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.total_timeouts / self.total_requests

    def get_throughput(self) -> float:
        """Requests per second over the recent window."""
        if len(self.timestamps) < 2:
            return 0.0
        span = self.timestamps[-1] - self.timestamps[0]
        if span <= 0:
            return 0.0
        return len(self.timestamps) / span

    def get_snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            avg_latency_ms=self.get_avg_latency(),
            p95_latency_ms=self.get_p95_latency(),
            timeout_rate=self.get_timeout_rate(),
            throughput=self.get_throughput(),
            total_requests=self.total_requests,
            total_timeouts=self.total_timeouts,
            status_codes=dict(self.status_codes),
        )

    def reset(self):
        self.latencies.clear()
        self.timestamps.clear()
        self.status_codes.clear()
        self.total_requests = 0
        self.total_timeouts = 0
        self.total_errors = 0

    def __str__(self) -> str:
        snapshot = self.get_snapshot()
        return (
            f"Metrics: avg={snapshot.avg_latency_ms:.0f}ms "
            f"p95={snapshot.p95_latency_ms:.0f}ms "
            f"timeout={snapshot.timeout_rate*100:.1f}% "
            f"errors={self.total_errors} "
            f"throughput={snapshot.throughput:.0f}/sec"
        )
