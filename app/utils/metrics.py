"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
verification_requests_total = Counter(
    "verification_requests_total",
    "Total /verifyOwnership POST requests by outcome",
    ["outcome"],  # verified, rejected, replay, invalid, misconfigured
)

verification_checks_total = Counter(
    "verification_checks_total",
    "Individual verification checks by result",
    ["check", "result"],  # payment/balance/transfer, ok/negative/error
)

facilitator_requests_total = Counter(
    "facilitator_requests_total",
    "Total x402 facilitator requests",
    ["status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
rpc_request_duration_seconds = Histogram(
    "rpc_request_duration_seconds",
    "Blockchain JSON-RPC read duration",
    ["method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10],
)

facilitator_request_duration_seconds = Histogram(
    "facilitator_request_duration_seconds",
    "x402 facilitator request duration",
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
