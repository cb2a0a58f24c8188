"""
Prometheus metrics for retry and circuit breaker instrumentation.

Metrics observe only; nothing in the resilience layer reads them back.
"""

from prometheus_client import Counter, Gauge

# Circuit breaker metrics
circuit_breaker_state = Gauge(
    "resilience_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half-open)",
    ["circuit"],
)

circuit_breaker_failures = Counter(
    "resilience_circuit_breaker_failures_total",
    "Total number of failures counted by a circuit breaker",
    ["circuit"],
)

circuit_breaker_rejections = Counter(
    "resilience_circuit_breaker_rejections_total",
    "Total number of calls rejected without being attempted",
    ["circuit"],
)

# Retry metrics
retry_attempts_total = Counter(
    "resilience_retry_attempts_total",
    "Individual attempts made inside retry sequences",
    ["operation", "outcome"],  # outcome: success, error category or reason
)

retry_operations_total = Counter(
    "resilience_retry_operations_total",
    "Completed retry sequences by final status",
    ["operation", "status"],  # status: success, exhausted, aborted, circuit_open
)

_STATE_VALUES = {"closed": 0, "open": 1, "half_open": 2}


def update_circuit_breaker_state(circuit: str, state: str) -> None:
    """Publish the current state of a named circuit breaker."""
    circuit_breaker_state.labels(circuit=circuit).set(_STATE_VALUES.get(state, -1))


def record_circuit_failure(circuit: str) -> None:
    circuit_breaker_failures.labels(circuit=circuit).inc()


def record_circuit_rejection(circuit: str) -> None:
    circuit_breaker_rejections.labels(circuit=circuit).inc()


def record_retry_attempt(operation: str, outcome: str) -> None:
    retry_attempts_total.labels(operation=operation, outcome=outcome).inc()


def record_retry_operation(operation: str, status: str) -> None:
    retry_operations_total.labels(operation=operation, status=status).inc()
