from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

router_requests_total = Counter(
    "router_requests_total",
    "Total calls dispatched through the model router",
    labelnames=["provider", "operation", "status"],
)

router_request_latency_seconds = Histogram(
    "router_request_latency_seconds",
    "Latency of routed calls until a response or stream handle is returned",
    buckets=[0.05, 0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60, 120, 300],
    labelnames=["provider", "operation"],
)

router_errors_total = Counter(
    "router_errors_total",
    "Classified errors surfaced by the model router",
    labelnames=["kind"],
)

catalog_refresh_attempts_total = Counter(
    "catalog_refresh_attempts_total",
    "Model catalog refresh attempts",
    labelnames=["status"],
)

stream_events_total = Counter(
    "stream_events_total",
    "Decoded streaming payloads by outcome",
    labelnames=["outcome"],
)


def maybe_start_metrics(*, enable: bool, bind: str, port: int) -> None:
    if not enable:
        return
    start_http_server(port, addr=bind)
