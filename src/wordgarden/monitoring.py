"""Monitoring configuration for Word Garden."""
from prometheus_client import Counter, Histogram, start_http_server

# Endpoint metrics
api_requests = Counter(
    "wordgarden_api_requests_total",
    "Total number of API requests handled",
    ["endpoint", "status"],
)

request_duration = Histogram(
    "wordgarden_request_duration_seconds",
    "Duration of API requests in seconds",
    ["endpoint"],
    buckets=[0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
)

rate_limited = Counter(
    "wordgarden_rate_limited_total",
    "Requests rejected by the per-client rate limiter",
    ["window"],
)

# Cache metrics
cache_hits = Counter(
    "wordgarden_cache_hits_total",
    "Responses served from an in-process cache",
    ["cache"],
)

# Generation metrics
words_generated = Counter(
    "wordgarden_words_generated_total",
    "Words accepted from the generation model and upserted",
)

words_discarded = Counter(
    "wordgarden_words_discarded_total",
    "Malformed entries dropped from the generation model output",
)

# Error metrics
upstream_errors = Counter(
    "wordgarden_upstream_errors_total",
    "Failures talking to the backing store or the generation API",
    ["upstream"],
)

error_count = Counter(
    "wordgarden_errors_total",
    "Total number of errors returned by the API",
    ["error_type"],
)

# Learning metrics
answers_recorded = Counter(
    "wordgarden_answers_recorded_total",
    "Answers recorded by learner sessions",
    ["session", "correct"],
)

sync_operations = Counter(
    "wordgarden_sync_operations_total",
    "Client progress sync attempts",
    ["outcome"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
