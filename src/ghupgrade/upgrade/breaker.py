"""
Circuit breaker guarding calls to the GitHub API.

A breaker decides whether the primary call is attempted at all. While it is
open, calls go straight to the caller's fallback. Breakers are tracked per
upstream identifier by a registry owned by the UpgradeManager, so one
failing repository never short-circuits another.
"""

import time
from typing import Any, Callable, Dict, Mapping, TypeVar

from ghupgrade.constants import ALLOWED_FAILURES, THRESHOLD_SECONDS, TIMEOUT_IN_SECONDS
from ghupgrade.exceptions import TransportError
from ghupgrade.log_utils import logger

from .interfaces import BreakerState, CircuitState

T = TypeVar("T")

# primary(identifier, context, timeout) -> response; raises TransportError on failure
PrimaryCall = Callable[[str, Mapping[str, str], float], Any]


class CircuitBreaker:
    """
    Failure-counting gate for a single upstream identifier.

    Closed: the primary call is attempted. After `allowed_failures`
    consecutive TransportErrors the breaker opens and every call returns the
    fallback without attempting the primary. Once `threshold` seconds have
    passed since opening, the next call is a half-open retry of the primary:
    success closes the breaker, failure reopens it with a fresh timestamp.
    """

    def __init__(
        self,
        primary: PrimaryCall,
        allowed_failures: int = ALLOWED_FAILURES,
        timeout: float = TIMEOUT_IN_SECONDS,
        threshold: float = THRESHOLD_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._primary = primary
        self.allowed_failures = allowed_failures
        self.timeout = timeout
        self.threshold = threshold
        self._clock = clock
        self.state = CircuitState()

    def is_open(self) -> bool:
        """True while calls are being short-circuited to the fallback."""
        if self.state.state is not BreakerState.OPEN or self.state.opened_at is None:
            return False
        return self._clock() - self.state.opened_at < self.threshold

    def call(
        self,
        identifier: str,
        context: Mapping[str, str],
        fallback: Callable[[], T],
    ) -> Any:
        """
        Attempt the primary call unless the breaker is open.

        Parameters:
            identifier (str): Upstream identifier passed to the primary call (the request URL).
            context (Mapping[str, str]): Request context for the primary call (HTTP headers).
            fallback (Callable[[], T]): No-argument callable returning the same shape as the primary.

        Returns:
            The primary result on success, otherwise the fallback result.
        """
        if self.is_open():
            logger.debug(f"Circuit open for {identifier}; using fallback")
            return fallback()

        if self.state.state is BreakerState.OPEN:
            logger.info(f"Retrying {identifier} after circuit open period elapsed")

        try:
            result = self._primary(identifier, context, self.timeout)
        except TransportError as e:
            self._record_failure(identifier, e)
            return fallback()

        self._record_success()
        return result

    def _record_success(self) -> None:
        self.state.failure_count = 0
        self.state.state = BreakerState.CLOSED
        self.state.opened_at = None

    def _record_failure(self, identifier: str, error: TransportError) -> None:
        half_open_retry = self.state.state is BreakerState.OPEN
        self.state.failure_count += 1
        logger.debug(
            f"Call to {identifier} failed ({self.state.failure_count}/{self.allowed_failures}): {error}"
        )
        if half_open_retry or self.state.failure_count >= self.allowed_failures:
            self.state.state = BreakerState.OPEN
            self.state.opened_at = self._clock()
            logger.warning(
                f"Circuit opened for {identifier} after {self.state.failure_count} failures; "
                f"skipping it for {int(self.threshold)}s"
            )


class CircuitBreakerRegistry:
    """
    One CircuitBreaker per upstream identifier, created on first use.

    Exposes the same `call(identifier, context, fallback)` contract as a
    single breaker and routes to the identifier's own breaker. State is kept
    in memory for the lifetime of the registry only.
    """

    def __init__(
        self,
        primary: PrimaryCall,
        allowed_failures: int = ALLOWED_FAILURES,
        timeout: float = TIMEOUT_IN_SECONDS,
        threshold: float = THRESHOLD_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._primary = primary
        self.allowed_failures = allowed_failures
        self.timeout = timeout
        self.threshold = threshold
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, identifier: str) -> CircuitBreaker:
        breaker = self._breakers.get(identifier)
        if breaker is None:
            breaker = CircuitBreaker(
                self._primary,
                allowed_failures=self.allowed_failures,
                timeout=self.timeout,
                threshold=self.threshold,
                clock=self._clock,
            )
            self._breakers[identifier] = breaker
        return breaker

    def call(
        self,
        identifier: str,
        context: Mapping[str, str],
        fallback: Callable[[], T],
    ) -> Any:
        return self.get(identifier).call(identifier, context, fallback)

    def state(self, identifier: str) -> CircuitState:
        return self.get(identifier).state

    def reset(self) -> None:
        self._breakers.clear()
