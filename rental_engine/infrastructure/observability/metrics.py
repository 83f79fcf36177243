"""Prometheus metrics for booking admission, lifecycle transitions and payments"""

from prometheus_client import Counter, Histogram

# Rental lifecycle metrics
rental_transition_counter = Counter(
    "rental_transitions_total",
    "Rental request state transitions",
    ["event", "to_status"],  # CREATE/APPROVE/REJECT/WITHDRAW/RENEW/COMPLETE
)

booking_conflict_counter = Counter(
    "rental_booking_conflicts_total",
    "Booking admissions refused because of an overlapping reservation",
    ["operation"],  # create | approve | renew
)

# Payment metrics
payment_counter = Counter(
    "rental_payments_total",
    "Payment attempts by method and outcome",
    ["method", "outcome"],  # outcome: success | failed
)

payment_amount_bucket_counter = Counter(
    "rental_payment_amount_bucket",
    "Successful payment amounts by bucket",
    ["bucket"],
)

# Settlement provider metrics
settlement_latency_histogram = Histogram(
    "settlement_latency_seconds",
    "Settlement provider response time",
    ["method"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(event: str, to_status: str) -> None:
    rental_transition_counter.labels(event=event, to_status=to_status).inc()


def record_payment(method: str, succeeded: bool, amount=None) -> None:
    """Record payment outcome and, for successes, the amount distribution"""
    payment_counter.labels(method=method, outcome="success" if succeeded else "failed").inc()
    if not succeeded or amount is None:
        return

    if amount <= 1_000:
        bucket = "0-1k"
    elif amount <= 10_000:
        bucket = "1k-10k"
    elif amount <= 50_000:
        bucket = "10k-50k"
    else:
        bucket = "50k+"

    payment_amount_bucket_counter.labels(bucket=bucket).inc()
