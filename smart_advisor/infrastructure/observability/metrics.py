"""Prometheus metrics for monitoring analyses, advisory calls and admission control"""

from prometheus_client import Counter, Histogram, Gauge

# Analysis metrics
analysis_counter = Counter(
    "smart_advisor_analysis_total",
    "Total financing analyses run",
    ["product", "outcome"],  # outcome: Finance | UseSavings | Undecided | error kind
)

final_cost_histogram = Histogram(
    "smart_advisor_final_cost_eur",
    "Total final cost of analysed financing",
    ["product"],
    buckets=[500, 1_000, 2_500, 5_000, 10_000, 25_000, 50_000, 100_000, 250_000],
)

# Advisory service metrics
advisory_latency_histogram = Histogram(
    "advisory_latency_seconds",
    "Advisory service response time per attempt",
    buckets=[0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0],
)

advisory_failure_counter = Counter(
    "advisory_failures_total",
    "Failed advisory attempts",
    ["kind"],  # transient | client | rate_limited | malformed
)

advisory_retry_counter = Counter(
    "advisory_retries_total",
    "Advisory attempts retried after a transient failure",
)

# Admission control
rate_limit_rejections_counter = Counter(
    "advisory_admission_rejections_total",
    "Advisory requests rejected before leaving the process",
    ["reason"],  # circuit open | rate limit | request too large
)

circuit_state_gauge = Gauge(
    "advisory_circuit_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["endpoint"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_analysis(product: str, outcome: str, final_cost: float | None = None) -> None:
    """Record analysis outcome and, when computed, the financing cost distribution"""
    analysis_counter.labels(product=product, outcome=outcome).inc()
    if final_cost is not None:
        final_cost_histogram.labels(product=product).observe(final_cost)
