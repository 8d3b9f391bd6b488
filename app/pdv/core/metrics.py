from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.pdv.core.config import settings

# name -> (help text, label names)
COUNTERS: dict[str, tuple[str, tuple[str, ...]]] = {
    "http_requests_total": ("HTTP requests by route, method and status.", ("route", "method", "status")),
    "idempotency_replay_total": ("Responses served from a stored idempotency record.", ()),
    "concurrency_conflict_total": ("Atomic guards that detected a concurrent update.", ()),
    "sales_committed_total": ("Sales committed by the finalizer.", ()),
    "sale_attempts_aborted_total": ("Sale commit attempts rolled back, by error code.", ("reason",)),
}

LATENCY_BUCKETS_MS = (5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000)


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    """Process-local Prometheus registry. Every recorder is a no-op when metrics are disabled."""

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
            name: Counter(name, description, list(labels), registry=self._registry)
            for name, (description, labels) in COUNTERS.items()
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

    def _inc(self, name: str, **labels: str) -> None:
        if not self.enabled:
            return
        counter = self._counters[name]
        (counter.labels(**labels) if labels else counter).inc()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._inc("http_requests_total", **labels)
        self._latency.labels(**labels).observe(latency_ms)

    def increment_idempotency_replay(self) -> None:
        self._inc("idempotency_replay_total")

    def increment_concurrency_conflict(self) -> None:
        self._inc("concurrency_conflict_total")

    def increment_sale_committed(self) -> None:
        self._inc("sales_committed_total")

    def increment_sale_aborted(self, reason: str) -> None:
        self._inc("sale_attempts_aborted_total", reason=reason)

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
