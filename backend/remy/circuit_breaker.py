"""
Circuit breakers for the upstreams a turn leans on: Nominatim, Overpass and
the optional LLM.

One breaker per service, shared process-wide. After ``failure_threshold``
consecutive upstream failures the breaker opens and calls fail fast with
:class:`CircuitOpenError` until the cooldown passes; the next call is then a
trial (half-open) that either closes the breaker or re-opens it.

Only exceptions listed in ``trips_on`` count as upstream failures. Anything
else propagates without touching the breaker, so a bug in response handling
does not cut a healthy service off.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, TypeVar

import httpx

from .metrics import (
    circuit_breaker_failures_total,
    circuit_breaker_opened_total,
    circuit_breaker_rejected_total,
    circuit_breaker_state,
    circuit_breaker_successes_total,
)
from .settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transport errors, HTTP error statuses and unusable payloads from the OSM services
UPSTREAM_ERRORS: tuple[type[Exception], ...] = (httpx.HTTPError, ValueError)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


_STATE_GAUGE = {CircuitState.CLOSED: 0, CircuitState.OPEN: 1, CircuitState.HALF_OPEN: 2}


class CircuitOpenError(Exception):
    """Raised instead of calling an upstream whose breaker is open."""


@dataclass
class CircuitBreakerStats:
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    consecutive_failures: int = 0
    circuit_opened_count: int = 0


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        failure_threshold: int | None = None,
        cooldown_seconds: float | None = None,
        trips_on: tuple[type[BaseException], ...] = (Exception,),
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = (
            failure_threshold if failure_threshold is not None else settings.CIRCUIT_FAILURE_THRESHOLD
        )
        self.cooldown_seconds = (
            cooldown_seconds if cooldown_seconds is not None else settings.CIRCUIT_COOLDOWN_SECONDS
        )
        self.trips_on = trips_on
        self.enabled = enabled
        self.stats = CircuitBreakerStats()
        self._clock = clock
        self._lock = Lock()
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._current_state()

    def _current_state(self) -> CircuitState:
        # Caller holds the lock. An open breaker turns half-open once cooled down.
        if self._state is CircuitState.OPEN and self._clock() - self._opened_at >= self.cooldown_seconds:
            self._set_state(CircuitState.HALF_OPEN)
        return self._state

    def _set_state(self, new_state: CircuitState) -> None:
        previous, self._state = self._state, new_state
        circuit_breaker_state.labels(circuit_name=self.name).set(_STATE_GAUGE[new_state])
        if new_state is CircuitState.OPEN:
            self._opened_at = self._clock()
            self.stats.circuit_opened_count += 1
            circuit_breaker_opened_total.labels(circuit_name=self.name).inc()
            logger.warning(
                "%s breaker opened after %d consecutive failures; failing fast for %.0fs",
                self.name,
                self.stats.consecutive_failures,
                self.cooldown_seconds,
            )
        elif new_state is CircuitState.HALF_OPEN:
            logger.info("%s breaker half-open, next call is a trial", self.name)
        elif previous is CircuitState.HALF_OPEN:
            logger.info("%s breaker closed, upstream recovered", self.name)

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` unless the breaker is open; record the outcome."""
        if not self.enabled:
            return func(*args, **kwargs)

        with self._lock:
            if self._current_state() is CircuitState.OPEN:
                self.stats.rejected_calls += 1
                circuit_breaker_rejected_total.labels(circuit_name=self.name).inc()
                raise CircuitOpenError(
                    f"Circuit breaker '{self.name}' is open; retry in {self.cooldown_seconds:.0f}s"
                )

        try:
            result = func(*args, **kwargs)
        except self.trips_on:
            self._record_failure()
            raise
        self._record_success()
        return result

    def _record_success(self) -> None:
        with self._lock:
            self.stats.successful_calls += 1
            self.stats.consecutive_failures = 0
            circuit_breaker_successes_total.labels(circuit_name=self.name).inc()
            if self._state is CircuitState.HALF_OPEN:
                self._set_state(CircuitState.CLOSED)

    def _record_failure(self) -> None:
        with self._lock:
            self.stats.failed_calls += 1
            self.stats.consecutive_failures += 1
            circuit_breaker_failures_total.labels(circuit_name=self.name).inc()
            if self._state is CircuitState.HALF_OPEN or (
                self._state is CircuitState.CLOSED
                and self.stats.consecutive_failures >= self.failure_threshold
            ):
                self._set_state(CircuitState.OPEN)

    def reset(self) -> None:
        with self._lock:
            self.stats.consecutive_failures = 0
            self._state = CircuitState.CLOSED
            circuit_breaker_state.labels(circuit_name=self.name).set(0)

    def is_open(self) -> bool:
        return self.state is CircuitState.OPEN

    def is_closed(self) -> bool:
        return self.state is CircuitState.CLOSED

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "consecutive_failures": self.stats.consecutive_failures,
            "opened_count": self.stats.circuit_opened_count,
        }


_circuit_breakers: dict[str, CircuitBreaker] = {}
_breakers_lock = Lock()


def get_circuit_breaker(name: str, trips_on: tuple[type[BaseException], ...] = (Exception,)) -> CircuitBreaker:
    """Shared breaker for ``name``; ``trips_on`` applies when it is first created."""
    with _breakers_lock:
        if name not in _circuit_breakers:
            _circuit_breakers[name] = CircuitBreaker(name, trips_on=trips_on)
        return _circuit_breakers[name]


def all_circuit_breakers() -> dict[str, CircuitBreaker]:
    with _breakers_lock:
        return dict(_circuit_breakers)


def reset_all_circuit_breakers() -> None:
    for breaker in all_circuit_breakers().values():
        breaker.reset()


__all__ = [
    "UPSTREAM_ERRORS",
    "CircuitBreaker",
    "CircuitBreakerStats",
    "CircuitOpenError",
    "CircuitState",
    "all_circuit_breakers",
    "get_circuit_breaker",
    "reset_all_circuit_breakers",
]
