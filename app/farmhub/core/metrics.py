from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.farmhub.core.config import settings


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    def __init__(self, enabled: bool | None = None) -> None:
        self.enabled = settings.METRICS_ENABLED if enabled is None else enabled
        self._registry = None
        self._http_requests_total = None
        self._http_request_duration_ms = None
        self._rbac_denied_total = None
        self._tenant_datasource_events_total = None
        self._tenant_datasources_cached = None
        self._audit_write_failures_total = None
        if self.enabled:
            self._initialize_registry()

    def _initialize_registry(self) -> None:
        self._registry = CollectorRegistry()
        self._http_requests_total = Counter(
            "http_requests_total",
            "HTTP requests by route/method/status.",
            ["route", "method", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            ["route", "method", "status"],
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
            registry=self._registry,
        )
        self._rbac_denied_total = Counter(
            "rbac_denied_total",
            "RBAC permission denied decisions.",
            ["resource", "action"],
            registry=self._registry,
        )
        self._tenant_datasource_events_total = Counter(
            "tenant_datasource_events_total",
            "Tenant data source registry events (hit, miss, init, failure, evict).",
            ["event"],
            registry=self._registry,
        )
        self._tenant_datasources_cached = Gauge(
            "tenant_datasources_cached",
            "Tenant data sources currently cached.",
            registry=self._registry,
        )
        self._audit_write_failures_total = Counter(
            "audit_write_failures_total",
            "Audit records that could not be written.",
            registry=self._registry,
        )

    def reset(self) -> None:
        if not self.enabled:
            return
        self._initialize_registry()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._http_requests_total.labels(**labels).inc()
        self._http_request_duration_ms.labels(**labels).observe(latency_ms)

    def increment_rbac_denied(self, resource: str, action: str) -> None:
        if not self.enabled:
            return
        self._rbac_denied_total.labels(resource=resource, action=action).inc()

    def record_tenant_event(self, event: str) -> None:
        if not self.enabled:
            return
        self._tenant_datasource_events_total.labels(event=event).inc()

    def set_tenant_cached(self, count: int) -> None:
        if not self.enabled:
            return
        self._tenant_datasources_cached.set(count)

    def increment_audit_write_failure(self) -> None:
        if not self.enabled:
            return
        self._audit_write_failures_total.inc()

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
