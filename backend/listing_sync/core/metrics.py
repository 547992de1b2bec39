from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests.",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds.",
    ["method", "path"],
)

provider_requests_total = Counter(
    "listing_provider_requests_total",
    "Outbound listing provider calls by operation and outcome.",
    ["operation", "outcome"],
)

provider_request_duration_seconds = Histogram(
    "listing_provider_request_duration_seconds",
    "Outbound listing provider call duration in seconds.",
    ["operation"],
)

rate_limiter_wait_seconds = Histogram(
    "listing_provider_rate_limiter_wait_seconds",
    "Time spent waiting for a provider rate limiter slot.",
    buckets=(0.0, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0),
)

sync_runs_total = Counter(
    "listing_sync_runs_total",
    "Reconciliation runs by entity family and outcome.",
    ["family", "outcome"],
)

publish_items_total = Counter(
    "listing_publish_items_total",
    "Publish attempts by entity kind and outcome.",
    ["kind", "outcome"],
)

celery_task_duration_seconds = Histogram(
    "celery_task_duration_seconds",
    "Celery task duration in seconds.",
    ["task_name", "queue_name"],
)

tasks_in_progress = Gauge(
    "tasks_in_progress",
    "Number of Celery tasks currently running.",
    ["queue_name"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
