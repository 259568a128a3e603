"""
Unit tests for the outbound-call circuit breaker.
"""
import pytest

from backend.app.core.resilience import (
    CircuitBreaker,
    CircuitBreakerOpenException,
    CircuitState,
    get_circuit_breaker,
    reset_circuit_breakers,
)


async def _fail():
    raise ConnectionError("upstream down")


async def _ok():
    return "ok"


@pytest.mark.asyncio
async def test_opens_after_threshold():
    breaker = CircuitBreaker("slack", failure_threshold=2, recovery_timeout=60)
    for _ in range(2):
        with pytest.raises(ConnectionError):
            await breaker.call(_fail)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitBreakerOpenException):
        await breaker.call(_ok)


@pytest.mark.asyncio
async def test_success_resets_failures():
    breaker = CircuitBreaker("twilio", failure_threshold=3)
    with pytest.raises(ConnectionError):
        await breaker.call(_fail)
    assert await breaker.call(_ok) == "ok"
    assert breaker.failure_count == 0
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_trial_call_after_recovery_timeout():
    breaker = CircuitBreaker("push_gateway", failure_threshold=1, recovery_timeout=0)
    with pytest.raises(ConnectionError):
        await breaker.call(_fail)
    assert breaker.state == CircuitState.OPEN

    assert await breaker.call(_ok) == "ok"
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_failed_trial_reopens():
    breaker = CircuitBreaker("webhook:1", failure_threshold=5, recovery_timeout=0)
    breaker.state = CircuitState.OPEN
    with pytest.raises(ConnectionError):
        await breaker.call(_fail)
    assert breaker.state == CircuitState.OPEN


@pytest.mark.asyncio
async def test_uncounted_errors_pass_through():
    breaker = CircuitBreaker("slack", failure_threshold=1, counted_errors=(ConnectionError,))

    async def bad_input():
        raise ValueError("bad payload")

    with pytest.raises(ValueError):
        await breaker.call(bad_input)
    assert breaker.failure_count == 0


def test_registry_returns_one_breaker_per_name():
    first = get_circuit_breaker("provider:unifonic")
    assert get_circuit_breaker("provider:unifonic") is first
    first.failure_count = 3
    reset_circuit_breakers()
    assert first.failure_count == 0
