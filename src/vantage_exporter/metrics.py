"""Prometheus metrics describing the exporter itself."""

import time

from fastapi import FastAPI, Request
from prometheus_client import Counter, Histogram


REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["endpoint", "method", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["endpoint", "method"],
)

# Upstream Vantage calls
upstream_requests_total = Counter(
    "vantage_upstream_requests_total",
    "Vantage API calls by endpoint and outcome",
    ["endpoint", "status"],
)

upstream_request_duration_seconds = Histogram(
    "vantage_upstream_request_duration_seconds",
    "Vantage API call duration",
    ["endpoint"],
)


def _route_template(request: Request) -> str:
    # unmatched paths share one label value
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def setup_metrics(app: FastAPI) -> None:
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        endpoint = _route_template(request)

        REQUEST_COUNT.labels(
            endpoint=endpoint,
            method=request.method,
            status_code=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(endpoint=endpoint, method=request.method).observe(
            duration
        )

        return response
