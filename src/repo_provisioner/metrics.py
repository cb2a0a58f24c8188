"""
Prometheus metrics for provisioning and deletion outcomes.

Retry and circuit breaker metrics live in core.resilience.metrics.
"""

from prometheus_client import Counter, Histogram

provisioning_outcomes_total = Counter(
    "provisioner_outcomes_total",
    "Provisioning invocations by final outcome",
    ["outcome"],  # outcome: success, not_created, created_unprotected
)

provisioning_duration_seconds = Histogram(
    "provisioner_duration_seconds",
    "Wall-clock time of a provisioning invocation",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

deletions_total = Counter(
    "provisioner_deletions_total",
    "Deletion invocations by outcome",
    ["outcome"],  # outcome: deleted, absent, permission_denied, delete_failed
)


def record_provisioning_outcome(outcome: str, duration_seconds: float) -> None:
    provisioning_outcomes_total.labels(outcome=outcome).inc()
    provisioning_duration_seconds.observe(duration_seconds)


def record_deletion(outcome: str) -> None:
    deletions_total.labels(outcome=outcome).inc()
