"""
Resilient execution: retry with exponential backoff inside a circuit breaker.

Composition order matters. The breaker wraps the whole retry loop:

    breaker.call(
        retry loop:
            attempt 1 -> fail -> sleep(delay 0)
            attempt 2 -> fail -> sleep(delay 1)
            ...
    )

So while the breaker is open nothing is attempted and nothing sleeps, and the
breaker counts one success or failure per retry sequence, never per attempt.
A ThrottlingError with retry_after stretches the next delay up to max_delay.

Failures surface as:
    RetryError        - the loop ran and gave up (attempts >= 1)
    CircuitOpenError  - the breaker rejected the call, nothing ran
"""

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from core.errors.exceptions import (
    PipelineError,
    RetryError,
    ThrottlingError,
    classify_exception,
    describe_error,
    is_retryable_error,
)
from core.logging.utilities import log_with_context
from core.resilience import metrics
from core.resilience.backoff import BackoffConfig
from core.resilience.circuit_breaker import CircuitBreaker
from core.security.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]


class ResilientExecutor:
    """
    Runs async operations with backoff retries behind a circuit breaker.

    The breaker is injected so one breaker can gate several executions across
    a workflow, and so tests can hand each case a fresh one.

    Args:
        backoff: Retry budget and delay policy
        breaker: Circuit breaker guarding this call site
        name: Operation label used in logs and metrics
        sleep: Awaitable delay function (default: asyncio.sleep)
        clock: Monotonic clock used for elapsed time and deadlines
        rng: Random source for jitter
    """

    def __init__(
        self,
        backoff: BackoffConfig,
        breaker: CircuitBreaker,
        name: str = "operation",
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.backoff = backoff
        self.breaker = breaker
        self.name = name
        self._sleep = sleep
        self._clock = clock
        self._rng = rng

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        context: Optional[Mapping[str, Any]] = None,
    ) -> T:
        """
        Run operation until it succeeds or the retry budget is spent.

        Args:
            operation: Zero-argument callable returning an awaitable
            context: Descriptive key/value pairs attached to log records only

        Returns:
            The operation's result

        Raises:
            RetryError: All permitted attempts failed, or a non-retryable
                error stopped the sequence
            CircuitOpenError: The breaker rejected the call before any attempt
        """
        log_context = dict(context or {})
        started = self._clock()

        try:
            result = await self.breaker.call(
                lambda: self._run_with_retries(operation, log_context, started)
            )
        except RetryError as e:
            status = "exhausted" if e.exhausted else "aborted"
            metrics.record_retry_operation(self.name, status)
            raise
        except Exception as e:
            # Only CircuitOpenError gets here: the loop wraps everything else
            metrics.record_retry_operation(self.name, classify_exception(e).value)
            raise

        metrics.record_retry_operation(self.name, "success")
        return result

    async def _run_with_retries(
        self,
        operation: Callable[[], Awaitable[T]],
        context: dict,
        started: float,
    ) -> T:
        max_attempts = self.backoff.max_attempts
        attempt = 0

        while True:
            attempt += 1
            try:
                result = await operation()
            except Exception as e:
                retryable = is_retryable_error(e)
                elapsed = self._clock() - started

                delay: Optional[float] = None
                if retryable and attempt < max_attempts:
                    delay = self._retry_delay(attempt, e)
                    deadline = self.backoff.deadline_seconds
                    if deadline is not None and elapsed + delay > deadline:
                        delay = None

                self._log_failure(context, attempt, max_attempts, e, delay)

                if delay is None:
                    raise RetryError(
                        e,
                        attempts=attempt,
                        elapsed_seconds=elapsed,
                        exhausted=retryable,
                    ) from e

                await self._sleep(delay)
                continue

            self._log_success(context, attempt, started)
            return result

    def _retry_delay(self, attempt: int, exc: BaseException) -> float:
        """Backoff delay, raised to a server-requested wait but never above max_delay."""
        delay = self.backoff.compute_delay(attempt - 1, self._rng)
        if isinstance(exc, ThrottlingError) and exc.retry_after:
            delay = min(self.backoff.max_delay, max(delay, exc.retry_after))
        return delay

    def _log_success(self, context: dict, attempts: int, started: float) -> None:
        metrics.record_retry_attempt(self.name, "success")
        log_with_context(
            logger,
            logging.INFO,
            f"{self.name} succeeded after {attempts} attempt(s)",
            event="retry_success",
            operation=self.name,
            attempts=attempts,
            duration_ms=round((self._clock() - started) * 1000),
            context=context,
        )

    def _log_failure(
        self,
        context: dict,
        attempt: int,
        max_attempts: int,
        exc: BaseException,
        delay: Optional[float],
    ) -> None:
        category = classify_exception(exc)
        reason = getattr(exc, "reason", None) if isinstance(exc, PipelineError) else None
        metrics.record_retry_attempt(self.name, reason or category.value)

        if delay is not None:
            msg = f"{self.name} attempt {attempt}/{max_attempts} failed, retrying in {delay:.2f}s"
        else:
            msg = f"{self.name} attempt {attempt}/{max_attempts} failed, giving up"

        log_with_context(
            logger,
            logging.WARNING if delay is not None else logging.ERROR,
            msg,
            event="retry_failure",
            operation=self.name,
            attempt=attempt,
            max_attempts=max_attempts,
            delay_seconds=round(delay, 3) if delay is not None else None,
            error_category=category.value,
            error_type=type(exc).__name__,
            error_message=sanitize_error_message(describe_error(exc)),
            reason=reason,
            context=context,
        )
