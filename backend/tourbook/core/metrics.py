"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Payment initialization metrics
payment_initializations = Counter(
    'payment_initializations_total',
    'Deposit payment initialization attempts',
    ['result']  # success, or the error class name
)

provider_latency = Histogram(
    'irembopay_request_latency_seconds',
    'Latency of IremboPay invoice creation calls',
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Webhook metrics
webhook_deliveries = Counter(
    'payment_webhook_deliveries_total',
    'Payment webhook deliveries',
    ['outcome']  # applied, duplicate, informational, rejected_signature, invalid_payload, not_found, error
)

booking_transitions = Counter(
    'booking_payment_transitions_total',
    'Booking payment status transitions',
    ['source', 'target']  # initialize/webhook/reset, PROCESSING/PAID/FAILED/PENDING
)

payment_resets = Counter(
    'payment_resets_total',
    'Payment reset requests',
    ['result']  # reset, conflict, lost_race
)

# Best-effort writes that were dropped after the core transition committed
observability_write_failures = Counter(
    'observability_write_failures_total',
    'Audit log / payment event / notification writes that failed',
    ['kind']  # audit_log, payment_event, email
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_payment_initialization(result: str):
    """Record initializer outcome."""
    payment_initializations.labels(result=result).inc()


def record_webhook(outcome: str):
    """Record webhook delivery outcome."""
    webhook_deliveries.labels(outcome=outcome).inc()


def record_transition(source: str, target: str):
    booking_transitions.labels(source=source, target=target).inc()


def record_reset(result: str):
    payment_resets.labels(result=result).inc()


def record_observability_failure(kind: str):
    observability_write_failures.labels(kind=kind).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
