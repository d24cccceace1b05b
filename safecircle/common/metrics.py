"""Prometheus metric definitions for the relay."""

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
relay_requests_total = Counter(
    "relay_requests_total",
    "Relay operations by outcome (success or failure kind)",
    ["service", "operation", "outcome"],
)
provider_request_duration_seconds = Histogram(
    "provider_request_duration_seconds",
    "Outbound provider call duration seconds",
    ["service", "endpoint"],
)


def metrics_response(registry: CollectorRegistry = REGISTRY) -> Response:
    """Scrape body in the Prometheus text exposition format."""

    return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
