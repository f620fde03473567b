"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
bookings_created = Counter(
    'bookings_created_total',
    'Bookings created',
    ['discounted']  # yes, no
)

# Payment metrics
payment_initiations = Counter(
    'payment_initiations_total',
    'Payment initiation attempts',
    ['result']  # initiated, already_paid
)

callback_outcomes = Counter(
    'payment_callback_outcomes_total',
    'Gateway callbacks by reconciliation outcome',
    ['outcome']  # completed, failed, duplicate, ignored_downgrade, hash_mismatch, booking_not_found, rejected
)

callback_latency = Histogram(
    'payment_callback_latency_seconds',
    'Gateway callback handling latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Discount metrics
referral_redemptions = Counter(
    'referral_redemptions_total',
    'Referral code redemption attempts',
    ['result']  # redeemed, invalid, over_cap
)

coupon_lookups = Counter(
    'coupon_lookups_total',
    'Coupon lookups',
    ['result']  # valid, invalid
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus scrape payload."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_callback_outcome(outcome: str):
    callback_outcomes.labels(outcome=outcome).inc()


def record_referral(result: str, count: int = 1):
    referral_redemptions.labels(result=result).inc(count)


def record_coupon_lookup(valid: bool):
    coupon_lookups.labels(result="valid" if valid else "invalid").inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
