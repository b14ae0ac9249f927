"""Prometheus metrics for cash transactions, agent search, USSD traffic and upstream health"""

from prometheus_client import Counter, Histogram

# Cash transaction metrics
cash_transaction_counter = Counter(
    "cashpoint_cash_transactions_total",
    "Cash transaction lifecycle events",
    ["type", "outcome"],  # cash_in | cash_out ; initiated | completed | cancelled | failed | rejected
)

cash_volume_counter = Counter(
    "cashpoint_cash_volume_cents_total",
    "Completed cash transaction volume in minor units",
    ["type"],
)

# Agent search
nearby_results_histogram = Histogram(
    "cashpoint_nearby_agents_found",
    "Qualifying agents per nearby search",
    buckets=[0, 1, 2, 5, 10, 20, 50],
)

# USSD
ussd_request_counter = Counter(
    "cashpoint_ussd_requests_total",
    "USSD hops handled",
    ["flow", "session"],  # session: con | end
)

# Collaborators
upstream_failures_counter = Counter(
    "cashpoint_upstream_failures_total",
    "Failed calls to external collaborators",
    ["service"],
)

delivery_failure_counter = Counter(
    "cashpoint_delivery_failures_total",
    "Dropped fire-and-forget deliveries",
    ["sink"],  # notifier | audit
)

notifier_latency_histogram = Histogram(
    "cashpoint_notifier_latency_seconds",
    "Agent notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_cash_transaction(transaction_type: str, outcome: str, amount_cents: int = 0) -> None:
    """Count a lifecycle event; completed transactions also add to volume"""
    cash_transaction_counter.labels(type=transaction_type, outcome=outcome).inc()
    if outcome == "completed" and amount_cents:
        cash_volume_counter.labels(type=transaction_type).inc(amount_cents)
