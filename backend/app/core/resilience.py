"""
Circuit breakers for outbound calls.

One breaker per upstream (``provider:slack``, ``push_gateway``,
``webhook:<id>``, ...). After ``failure_threshold`` consecutive failures the
breaker opens and calls fail fast until ``recovery_timeout`` has passed; the
next call is then a trial that closes it again on success.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, Tuple, Type

from backend.app.core.config import get_settings
from backend.app.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenException(Exception):
    """Raised when the circuit is open and calls are blocked."""


class CircuitBreaker:
    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        recovery_timeout: float = 30,
        counted_errors: Tuple[Type[BaseException], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.counted_errors = counted_errors
        self.reset()

    def reset(self) -> None:
        self.failure_count = 0
        self.opened_at = 0.0
        self.state = CircuitState.CLOSED

    def _check_open(self) -> None:
        if self.state != CircuitState.OPEN:
            return
        if time.monotonic() - self.opened_at >= self.recovery_timeout:
            self.state = CircuitState.HALF_OPEN
            logger.info(f"Circuit '{self.name}' half-open, allowing a trial call")
            return
        raise CircuitBreakerOpenException(
            f"Circuit '{self.name}' is open after {self.failure_count} failures"
        )

    def _record_failure(self, error: BaseException) -> None:
        self.failure_count += 1
        logger.warning(f"Circuit '{self.name}' failure {self.failure_count}/{self.failure_threshold}: {error}")
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            self.opened_at = time.monotonic()
            logger.error(f"Circuit '{self.name}' opened for {self.recovery_timeout}s")

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        self._check_open()
        try:
            result = await func(*args, **kwargs)
        except self.counted_errors as e:
            self._record_failure(e)
            raise

        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"Circuit '{self.name}' closed, upstream recovered")
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        return result


_breakers: Dict[str, CircuitBreaker] = {}


def get_circuit_breaker(name: str) -> CircuitBreaker:
    """One breaker per upstream, created on first use."""
    breaker = _breakers.get(name)
    if breaker is None:
        settings = get_settings()
        breaker = CircuitBreaker(
            name=name,
            failure_threshold=settings.provider_failure_threshold,
            recovery_timeout=settings.provider_recovery_timeout_seconds,
        )
        _breakers[name] = breaker
    return breaker


def reset_circuit_breakers() -> None:
    for breaker in _breakers.values():
        breaker.reset()
