"""
Circuit breaker pattern for resilience against cascading failures.

Protects against scenarios like:
- Hosting API outages (sustained 5xx)
- Exhausted rate limits
- Network partitions

States:
- CLOSED: Normal operation, calls pass through
- OPEN: Failing, calls rejected immediately without being attempted
- HALF_OPEN: Testing recovery, exactly one probe call allowed

The breaker is an owned object: construct one per call site and pass it to
whatever needs it. There is no process-wide registry, so every test gets a
fresh breaker.

Usage:
    breaker = CircuitBreaker("github_api", CircuitBreakerConfig(failure_threshold=3))
    result = await breaker.call(lambda: client.protect_branch(...))
"""

import logging
import time
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from core.errors.exceptions import (
    CircuitOpenError,
    ConfigurationError,
    ErrorCategory,
    classify_exception,
    describe_error,
)
from core.logging.utilities import log_exception, log_with_context
from core.resilience import metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Rejecting calls
    HALF_OPEN = "half_open"  # Testing recovery


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""

    # Consecutive failures before opening circuit
    failure_threshold: int = 5

    # Seconds to wait in open state before allowing a probe
    reset_timeout_seconds: float = 60.0

    # Error categories that count as failures (None = all errors)
    failure_categories: Optional[Tuple[ErrorCategory, ...]] = None

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ConfigurationError(
                f"failure_threshold must be >= 1, got {self.failure_threshold}"
            )
        if self.reset_timeout_seconds < 0:
            raise ConfigurationError(
                f"reset_timeout_seconds must be >= 0, got {self.reset_timeout_seconds}"
            )


@dataclass
class CircuitStats:
    """Statistics for circuit breaker monitoring."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None
    last_state_change_time: Optional[float] = None
    current_state: str = "closed"


class CircuitBreaker:
    """
    Circuit breaker with category-aware failure tracking.

    State is only mutated inside call(), immediately before and after the
    guarded coroutine runs. Designed for single-threaded cooperative use:
    one event loop, no sharing across threads.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[Callable[[CircuitState, CircuitState], None]] = None,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.on_state_change = on_state_change
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._probe_in_flight = False

        self._stats = CircuitStats()
        metrics.update_circuit_breaker_state(self.name, self._state.value)

    @property
    def state(self) -> CircuitState:
        """Current circuit state as of the last call."""
        return self._state

    @property
    def failure_count(self) -> int:
        """Consecutive counted failures."""
        return self._failure_count

    @property
    def last_failure_time(self) -> Optional[float]:
        return self._last_failure_time

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def retry_after(self) -> float:
        """Seconds until an open circuit admits a probe (0 when not open)."""
        if self._state != CircuitState.OPEN:
            return 0.0
        return self._get_retry_after()

    def allows_request(self) -> bool:
        """
        Whether call() would currently admit a call.

        Read-only: does not move OPEN to HALF_OPEN or claim the probe slot,
        so callers can check before starting work the breaker will gate later.
        """
        if self._state == CircuitState.CLOSED:
            return True
        if self._state == CircuitState.OPEN:
            return self._get_retry_after() <= 0
        return not self._probe_in_flight

    @property
    def stats(self) -> CircuitStats:
        """Snapshot of the counters; mutating it does not affect the breaker."""
        return replace(self._stats, current_state=self._state.value)

    def _should_count_failure(self, exc: BaseException) -> bool:
        """Determine if exception should count toward failure threshold."""
        if self.config.failure_categories is None:
            return True

        category = classify_exception(exc)
        if category in self.config.failure_categories:
            return True

        log_with_context(
            logger,
            logging.DEBUG,
            "Circuit breaker failure not counted",
            circuit_name=self.name,
            circuit_state=self._state.value,
            error_category=category.value,
            error_type=type(exc).__name__,
        )
        return False

    def _check_state_transition(self) -> None:
        """Move OPEN to HALF_OPEN once the reset timeout has elapsed."""
        if self._state != CircuitState.OPEN or self._last_failure_time is None:
            return

        elapsed = self._clock() - self._last_failure_time
        if elapsed >= self.config.reset_timeout_seconds:
            log_with_context(
                logger,
                logging.DEBUG,
                "Circuit breaker timeout elapsed, transitioning to half-open",
                circuit_name=self.name,
                duration_ms=round(elapsed * 1000),
                failure_count=self._failure_count,
            )
            self._transition_to(CircuitState.HALF_OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        if old_state == new_state:
            return

        self._state = new_state
        self._stats.state_changes += 1
        self._stats.last_state_change_time = self._clock()
        self._stats.current_state = new_state.value
        metrics.update_circuit_breaker_state(self.name, new_state.value)

        if new_state == CircuitState.CLOSED:
            self._failure_count = 0
            log_with_context(
                logger,
                logging.INFO,
                "Circuit closed",
                circuit_name=self.name,
                circuit_state="closed",
            )
        elif new_state == CircuitState.HALF_OPEN:
            self._probe_in_flight = False
            log_with_context(
                logger,
                logging.INFO,
                "Circuit half-open",
                circuit_name=self.name,
                circuit_state="half_open",
            )
        elif new_state == CircuitState.OPEN:
            log_with_context(
                logger,
                logging.WARNING,
                "Circuit open",
                circuit_name=self.name,
                circuit_state="open",
                failure_count=self._failure_count,
                retry_after=self.config.reset_timeout_seconds,
            )

        if self.on_state_change:
            try:
                self.on_state_change(old_state, new_state)
            except Exception as e:
                log_exception(
                    logger,
                    e,
                    "Error in circuit state change callback",
                    circuit_name=self.name,
                    level=logging.WARNING,
                    include_traceback=False,
                )

    def _record_success(self) -> None:
        self._stats.successful_calls += 1
        self._stats.last_success_time = self._clock()

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.CLOSED)
        else:
            # Consecutive failure tracking
            self._failure_count = 0

    def _record_failure(self, exc: BaseException) -> None:
        now = self._clock()
        self._stats.failed_calls += 1
        self._stats.last_failure_time = now

        if not self._should_count_failure(exc):
            # Inconclusive probe: stay half-open, the next call probes again
            return

        self._failure_count += 1
        self._last_failure_time = now
        metrics.record_circuit_failure(self.name)

        log_with_context(
            logger,
            logging.DEBUG,
            "Circuit breaker failure recorded",
            circuit_name=self.name,
            circuit_state=self._state.value,
            error_type=type(exc).__name__,
            error_message=describe_error(exc)[:200],
            failure_count=self._failure_count,
            failure_threshold=self.config.failure_threshold,
        )

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
        elif self._failure_count >= self.config.failure_threshold:
            self._transition_to(CircuitState.OPEN)

    def _can_execute(self) -> bool:
        """Check if call can proceed, claiming the probe slot in half-open."""
        self._check_state_transition()

        if self._state == CircuitState.CLOSED:
            return True

        if self._state == CircuitState.OPEN:
            return False

        if self._probe_in_flight:
            return False
        self._probe_in_flight = True
        return True

    def _get_retry_after(self) -> float:
        """Get seconds until the circuit will admit a probe."""
        if self._last_failure_time is None:
            return 0.0
        elapsed = self._clock() - self._last_failure_time
        return max(0.0, self.config.reset_timeout_seconds - elapsed)

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Execute a coroutine function through the circuit breaker.

        Args:
            func: Zero-argument callable returning an awaitable

        Returns:
            Result of func

        Raises:
            CircuitOpenError: If circuit is open (func is not called)
            Exception: Any exception from func (also recorded as failure)
        """
        self._stats.total_calls += 1

        if not self._can_execute():
            self._stats.rejected_calls += 1
            metrics.record_circuit_rejection(self.name)
            retry_after = self._get_retry_after()
            log_with_context(
                logger,
                logging.WARNING,
                "Circuit breaker rejected call",
                circuit_name=self.name,
                circuit_state=self._state.value,
                retry_after=round(retry_after, 2),
            )
            raise CircuitOpenError(self.name, retry_after)

        try:
            result = await func()
        except Exception as e:
            self._record_failure(e)
            raise
        finally:
            self._probe_in_flight = False

        self._record_success()
        return result

    def reset(self) -> None:
        """Manually reset circuit to closed state."""
        self._transition_to(CircuitState.CLOSED)
        self._failure_count = 0
        self._last_failure_time = None
        self._probe_in_flight = False
        log_with_context(
            logger,
            logging.INFO,
            "Circuit manually reset",
            circuit_name=self.name,
        )

    def get_diagnostics(self) -> dict:
        """Get diagnostic info for health checks."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "retry_after": round(self.retry_after, 2),
            "config": {
                "failure_threshold": self.config.failure_threshold,
                "reset_timeout_seconds": self.config.reset_timeout_seconds,
            },
            "stats": asdict(self.stats),
        }
