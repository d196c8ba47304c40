"""
Prometheus instrumentation for the registration engine and the listing cache.
Scraped from the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

registration_attempts = Counter(
    'registration_attempts_total',
    'Registration engine operations by outcome',
    ['operation', 'outcome']  # outcome: success or an error kind
)

registration_latency = Histogram(
    'registration_transaction_seconds',
    'Wall time of registration engine transactions',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0]
)

bulk_registrations_created = Counter(
    'bulk_registrations_created_total',
    'Rows inserted by bulk registration'
)

cache_operations = Counter(
    'cache_operations_total',
    'Event listing cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/error
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_registration(operation: str, outcome: str, duration_seconds: float):
    """Record one engine call. Outcome is "success" or the error kind."""
    registration_attempts.labels(operation=operation, outcome=outcome).inc()
    registration_latency.labels(operation=operation).observe(duration_seconds)


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()
