"""Tests for the circuit breaker state machine."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.errors.exceptions import (
    AuthError,
    CircuitOpenError,
    ConfigurationError,
    ConnectionError,
    ErrorCategory,
)
from core.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)


def failing(exc=None):
    return AsyncMock(side_effect=exc or ConnectionError("boom"))


async def trip(breaker, times):
    for _ in range(times):
        with pytest.raises(ConnectionError):
            await breaker.call(failing())


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(
        "test",
        CircuitBreakerConfig(failure_threshold=3, reset_timeout_seconds=60.0),
        clock=clock,
    )


class TestCircuitBreakerConfig:
    def test_defaults(self):
        config = CircuitBreakerConfig()
        assert config.failure_threshold == 5
        assert config.reset_timeout_seconds == 60.0
        assert config.failure_categories is None

    def test_rejects_zero_threshold(self):
        with pytest.raises(ConfigurationError):
            CircuitBreakerConfig(failure_threshold=0)

    def test_rejects_negative_timeout(self):
        with pytest.raises(ConfigurationError):
            CircuitBreakerConfig(reset_timeout_seconds=-1)


class TestClosedState:
    @pytest.mark.asyncio
    async def test_success_passes_through(self, breaker):
        op = AsyncMock(return_value="ok")

        assert await breaker.call(op) == "ok"
        assert breaker.state == CircuitState.CLOSED
        op.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_propagates_and_counts(self, breaker, clock):
        await trip(breaker, 1)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 1
        assert breaker.last_failure_time == clock.now

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        await trip(breaker, 2)
        await breaker.call(AsyncMock(return_value=None))

        assert breaker.failure_count == 0
        await trip(breaker, 2)
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, breaker):
        await trip(breaker, 3)

        assert breaker.state == CircuitState.OPEN
        assert breaker.is_open


class TestOpenState:
    @pytest.mark.asyncio
    async def test_rejects_without_calling_operation(self, breaker, clock):
        await trip(breaker, 3)
        clock.advance(10)
        op = AsyncMock(return_value="ok")

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.call(op)

        op.assert_not_called()
        assert exc_info.value.circuit_name == "test"
        assert exc_info.value.retry_after == pytest.approx(50.0)
        assert exc_info.value.category == ErrorCategory.CIRCUIT_OPEN
        assert breaker.stats.rejected_calls == 1

    @pytest.mark.asyncio
    async def test_stays_open_before_timeout(self, breaker, clock):
        await trip(breaker, 3)
        clock.advance(59.9)

        with pytest.raises(CircuitOpenError):
            await breaker.call(AsyncMock())
        assert breaker.state == CircuitState.OPEN


class TestHalfOpenState:
    @pytest.mark.asyncio
    async def test_probe_success_closes(self, breaker, clock):
        await trip(breaker, 3)
        clock.advance(60)
        op = AsyncMock(return_value="recovered")

        assert await breaker.call(op) == "recovered"

        op.assert_awaited_once()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_probe_failure_reopens_with_fresh_timestamp(self, breaker, clock):
        await trip(breaker, 3)
        clock.advance(61)

        await trip(breaker, 1)

        assert breaker.state == CircuitState.OPEN
        assert breaker.last_failure_time == clock.now
        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.call(AsyncMock())
        assert exc_info.value.retry_after == pytest.approx(60.0)

    @pytest.mark.asyncio
    async def test_only_one_probe_in_flight(self, breaker, clock):
        await trip(breaker, 3)
        clock.advance(60)
        second = AsyncMock(return_value="second")

        async def probe():
            # A second caller arrives while the probe is still running
            with pytest.raises(CircuitOpenError):
                await breaker.call(second)
            return "probe"

        assert await breaker.call(probe) == "probe"
        second.assert_not_called()
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_uncounted_probe_failure_stays_half_open(self, clock):
        breaker = CircuitBreaker(
            "test",
            CircuitBreakerConfig(
                failure_threshold=1,
                reset_timeout_seconds=5,
                failure_categories=(ErrorCategory.TRANSIENT,),
            ),
            clock=clock,
        )
        await trip(breaker, 1)
        clock.advance(5)

        with pytest.raises(AuthError):
            await breaker.call(failing(AuthError("bad token")))

        assert breaker.state == CircuitState.HALF_OPEN
        assert await breaker.call(AsyncMock(return_value=1)) == 1
        assert breaker.state == CircuitState.CLOSED


class TestAdmissionCheck:
    @pytest.mark.asyncio
    async def test_closed_allows(self, breaker):
        await trip(breaker, 2)

        assert breaker.allows_request()
        assert breaker.retry_after == 0.0

    @pytest.mark.asyncio
    async def test_open_refuses_until_timeout(self, breaker, clock):
        await trip(breaker, 3)
        clock.advance(20)

        assert not breaker.allows_request()
        assert breaker.retry_after == pytest.approx(40.0)

        clock.advance(40)
        assert breaker.allows_request()
        # Checking does not move the breaker out of OPEN
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_does_not_claim_probe_slot(self, breaker, clock):
        await trip(breaker, 3)
        clock.advance(60)

        assert breaker.allows_request()
        assert breaker.allows_request()
        assert await breaker.call(AsyncMock(return_value="probe")) == "probe"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_refuses_while_probe_in_flight(self, breaker, clock):
        await trip(breaker, 3)
        clock.advance(60)
        seen = []

        async def probe():
            seen.append(breaker.allows_request())

        await breaker.call(probe)

        assert seen == [False]


class TestThresholdScenario:
    @pytest.mark.asyncio
    async def test_fourth_call_rejected_then_recovers(self, breaker, clock):
        await trip(breaker, 3)

        fourth = AsyncMock()
        with pytest.raises(CircuitOpenError):
            await breaker.call(fourth)
        fourth.assert_not_called()

        clock.advance(60)
        probe = AsyncMock(return_value="ok")
        assert await breaker.call(probe) == "ok"
        probe.assert_awaited_once()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0


class TestFailureCategories:
    @pytest.mark.asyncio
    async def test_uncounted_category_does_not_trip(self, clock):
        breaker = CircuitBreaker(
            "test",
            CircuitBreakerConfig(
                failure_threshold=2, failure_categories=(ErrorCategory.TRANSIENT,)
            ),
            clock=clock,
        )

        for _ in range(5):
            with pytest.raises(AuthError):
                await breaker.call(failing(AuthError("bad token")))

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.stats.failed_calls == 5


class TestObservability:
    @pytest.mark.asyncio
    async def test_state_change_callback(self, breaker, clock):
        callback = MagicMock()
        breaker.on_state_change = callback

        await trip(breaker, 3)
        clock.advance(60)
        await breaker.call(AsyncMock())

        assert [c.args for c in callback.call_args_list] == [
            (CircuitState.CLOSED, CircuitState.OPEN),
            (CircuitState.OPEN, CircuitState.HALF_OPEN),
            (CircuitState.HALF_OPEN, CircuitState.CLOSED),
        ]

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_break_breaker(self, breaker):
        breaker.on_state_change = MagicMock(side_effect=RuntimeError("oops"))

        await trip(breaker, 3)

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_diagnostics(self, breaker, clock):
        await trip(breaker, 3)
        clock.advance(20)

        diagnostics = breaker.get_diagnostics()

        assert diagnostics["name"] == "test"
        assert diagnostics["state"] == "open"
        assert diagnostics["failure_count"] == 3
        assert diagnostics["retry_after"] == pytest.approx(40.0)
        assert diagnostics["stats"]["failed_calls"] == 3

    @pytest.mark.asyncio
    async def test_reset(self, breaker):
        await trip(breaker, 3)

        breaker.reset()

        assert breaker.is_closed
        assert breaker.failure_count == 0
        assert breaker.last_failure_time is None
