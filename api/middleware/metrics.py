"""
Prometheus metrics for the LeadFlow qualification API.

Exposes /metrics endpoint with request counters, latency histograms,
and qualification-engine business metrics.
"""

import logging
import time

from fastapi import Request, Response
from prometheus_client import (
    Counter, Histogram, Gauge,
    generate_latest, CONTENT_TYPE_LATEST,
)
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Request metrics
REQUEST_COUNT = Counter(
    "leadflow_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "leadflow_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)
ACTIVE_REQUESTS = Gauge(
    "leadflow_http_active_requests",
    "Currently active HTTP requests",
)

# Business metrics
PROVIDER_ATTEMPTS = Counter(
    "leadflow_provider_attempts_total",
    "Completion provider attempts",
    ["provider", "outcome"],
)
LLM_LATENCY = Histogram(
    "leadflow_llm_duration_seconds",
    "LLM generation latency",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)
ADMISSION_DECISIONS = Counter(
    "leadflow_admission_decisions_total",
    "Rate limit admission decisions",
    ["key_prefix", "outcome"],
)
LEAD_SCORE_HIST = Histogram(
    "leadflow_lead_score",
    "Lead score distribution",
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
)


def record_provider_attempt(provider: str, outcome: str):
    """Record one completion provider attempt (success, error, retryable_error)."""
    PROVIDER_ATTEMPTS.labels(provider=provider, outcome=outcome).inc()


def record_llm_latency(seconds: float):
    """Record LLM generation latency."""
    LLM_LATENCY.observe(seconds)


def record_admission(key_prefix: str, outcome: str):
    """Record an admission decision (admitted, denied, bypassed, blocked)."""
    ADMISSION_DECISIONS.labels(key_prefix=key_prefix, outcome=outcome).inc()


def record_lead_score(score: float):
    """Record a lead score."""
    LEAD_SCORE_HIST.observe(score)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware that records HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        ACTIVE_REQUESTS.inc()
        start = time.time()

        try:
            response = await call_next(request)
        except Exception:
            ACTIVE_REQUESTS.dec()
            raise

        duration = time.time() - start
        endpoint = request.url.path

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)
        ACTIVE_REQUESTS.dec()

        return response


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
