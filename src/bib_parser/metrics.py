"""Метрики Prometheus (локальный registry)."""

from prometheus_client import CollectorRegistry, Counter, Histogram

registry = CollectorRegistry()

requests_total = Counter(
    "requests_total",
    "Total number of requests",
    ["endpoint", "status"],
    registry=registry,
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    ["endpoint"],
    registry=registry,
)

llm_attempts_total = Counter(
    "llm_attempts_total",
    "LLM completion attempts by outcome (success/retry/failed)",
    ["provider", "outcome"],
    registry=registry,
)

tokens_total = Counter(
    "tokens_total",
    "Total tokens",
    ["provider", "model", "kind"],
    registry=registry,
)
