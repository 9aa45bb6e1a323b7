"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
wallet_operations_total = Counter(
    "wallet_operations_total",
    "Total wallet ledger operations",
    ["operation", "currency"],  # credit, debit
)

debit_rejected_total = Counter(
    "debit_rejected_total",
    "Total debits rejected for insufficient balance",
    ["currency"],
)

purchases_total = Counter(
    "purchases_total",
    "Total purchase records by type and status",
    ["purchase_type", "status"],
)

refunds_total = Counter(
    "refunds_total",
    "Total refunded purchases",
    ["purchase_type"],
)

subscriptions_total = Counter(
    "subscriptions_total",
    "Subscription lifecycle events",
    ["event", "purchase_method"],  # created, cancelled, refunded
)

access_decisions_total = Counter(
    "access_decisions_total",
    "Access evaluator outcomes",
    ["item_kind", "reason"],
)

rate_limited_total = Counter(
    "purchase_rate_limited_total",
    "Purchases rejected by the per-user rate limit",
)

# Histograms
request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5],
)


router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
