"""
Resilience patterns module.

Provides fault tolerance primitives for calls to flaky, rate-limited or
eventually consistent services:
    - BackoffConfig / compute_delay: Exponential backoff with jitter
    - CircuitBreaker: State machine (closed/open/half-open)
    - ResilientExecutor: Retry loop wrapped by a circuit breaker
"""

from core.resilience.backoff import BackoffConfig, compute_delay
from core.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    CircuitStats,
)
from core.resilience.executor import ResilientExecutor

__all__ = [
    "BackoffConfig",
    "compute_delay",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "CircuitStats",
    "ResilientExecutor",
]
