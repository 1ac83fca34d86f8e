from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.countdesk.core.config import settings

LATENCY_BUCKETS_MS = (5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000)

# name -> (help text, label names)
COUNTERS: dict[str, tuple[str, tuple[str, ...]]] = {
    "http_requests_total": ("HTTP requests by route/method/status.", ("route", "method", "status")),
    "idempotency_replay_total": ("Idempotent replay responses.", ()),
    "lock_wait_timeout_total": ("Lock wait timeout occurrences.", ()),
    "gateway_throttled_total": ("Inventory gateway calls rejected with a throttle signal.", ("operation",)),
    "inventory_commits_total": ("Inventory delta commits by source and outcome.", ("source", "result")),
    "task_numbers_allocated_total": ("Task numbers issued by the counter.", ()),
}


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    """Process-wide Prometheus registry; every recorder is a no-op when disabled."""

    def __init__(self) -> None:
        self.enabled = bool(settings.METRICS_ENABLED)
        self._registry: CollectorRegistry | None = None
        self._counters: dict[str, Counter] = {}
        self._latency: Histogram | None = None
        if self.enabled:
            self._build()

    def _build(self) -> None:
        self._registry = CollectorRegistry()
        self._counters = {
            name: Counter(name, help_text, list(labels), registry=self._registry)
            for name, (help_text, labels) in COUNTERS.items()
        }
        self._latency = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            ["route", "method", "status"],
            buckets=LATENCY_BUCKETS_MS,
            registry=self._registry,
        )

    def reset(self) -> None:
        if self.enabled:
            self._build()

    def _inc(self, name: str, amount: float = 1, **labels: str) -> None:
        if not self.enabled:
            return
        counter = self._counters[name]
        (counter.labels(**labels) if labels else counter).inc(amount)

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._inc("http_requests_total", **labels)
        self._latency.labels(**labels).observe(latency_ms)

    def increment_idempotency_replay(self) -> None:
        self._inc("idempotency_replay_total")

    def increment_lock_wait_timeout(self) -> None:
        self._inc("lock_wait_timeout_total")

    def increment_gateway_throttled(self, operation: str) -> None:
        self._inc("gateway_throttled_total", operation=operation)

    def record_inventory_commit(self, *, source: str, result: str) -> None:
        self._inc("inventory_commits_total", source=source, result=result)

    def increment_task_numbers_allocated(self, count: int = 1) -> None:
        self._inc("task_numbers_allocated_total", count)

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
