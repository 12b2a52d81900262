"""
Prometheus metrics for request pipeline monitoring.

Provides instrumentation for:
- Request outcomes by method
- Request latency histograms
- Response volume
- In-flight request tracking
- Transport failures by code and transience
- Cache short-circuits
"""

from prometheus_client import Counter, Gauge, Histogram

requests_total = Counter(
    "request_pipeline_requests_total",
    "Total number of pipeline requests by terminal outcome",
    # outcome: success, http_error, transport_error, validation_error, decode_error
    ["method", "outcome"],
)

request_duration_seconds = Histogram(
    "request_pipeline_request_duration_seconds",
    "Time from dispatch to transport completion",
    ["method"],
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
        30.0,
        60.0,
    ),  # From 5ms to 60s
)

response_bytes_total = Counter(
    "request_pipeline_response_bytes_total",
    "Total bytes of response bodies received",
    ["method"],
)

requests_in_flight = Gauge(
    "request_pipeline_requests_in_flight",
    "Number of requests dispatched and awaiting transport completion",
)

transport_errors_total = Counter(
    "request_pipeline_transport_errors_total",
    "Total number of transport failures",
    ["code", "transient"],
)

cache_hits_total = Counter(
    "request_pipeline_cache_hits_total",
    "Total number of requests answered by a response cache",
)


def record_transport_error(code: str, transient: bool) -> None:
    """Count a transport failure."""
    transport_errors_total.labels(code=code, transient=str(transient).lower()).inc()


def record_outcome(method: str, outcome: str) -> None:
    """Count a request's terminal outcome."""
    requests_total.labels(method=method, outcome=outcome).inc()
