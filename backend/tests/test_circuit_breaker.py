"""Circuit breakers guarding the geocoder, map-data and LLM calls."""

from unittest.mock import Mock

import httpx
import pytest
from backend.remy.circuit_breaker import (
    UPSTREAM_ERRORS,
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    all_circuit_breakers,
    get_circuit_breaker,
    reset_all_circuit_breakers,
)
from prometheus_client import REGISTRY


class UpstreamDown(RuntimeError):
    """Stand-in failure for an external service."""


class Clock:
    def __init__(self) -> None:
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


def open_breaker(breaker: CircuitBreaker, error: Exception | None = None) -> None:
    error = error or UpstreamDown("down")
    failing = Mock(side_effect=error)
    for _ in range(breaker.failure_threshold):
        with pytest.raises(type(error)):
            breaker.call(failing)


def test_breaker_passes_calls_while_closed():
    breaker = CircuitBreaker("geo-test", failure_threshold=3)
    func = Mock(return_value="ok")
    assert breaker.call(func, "q", limit=1) == "ok"
    func.assert_called_once_with("q", limit=1)
    assert breaker.is_closed()
    assert breaker.stats.successful_calls == 1


def test_breaker_opens_after_consecutive_failures():
    breaker = CircuitBreaker("geo-test", failure_threshold=2, cooldown_seconds=10)
    open_breaker(breaker)
    assert breaker.state == CircuitState.OPEN
    assert breaker.stats.circuit_opened_count == 1


def test_open_breaker_rejects_without_calling():
    breaker = CircuitBreaker("geo-test", failure_threshold=1, cooldown_seconds=10)
    open_breaker(breaker)
    func = Mock(return_value="ok")
    with pytest.raises(CircuitOpenError, match="'geo-test' is open"):
        breaker.call(func)
    func.assert_not_called()
    assert breaker.stats.rejected_calls == 1


def test_success_resets_consecutive_failures():
    breaker = CircuitBreaker("geo-test", failure_threshold=2)
    with pytest.raises(UpstreamDown):
        breaker.call(Mock(side_effect=UpstreamDown("down")))
    breaker.call(Mock(return_value="ok"))
    with pytest.raises(UpstreamDown):
        breaker.call(Mock(side_effect=UpstreamDown("down")))
    assert breaker.is_closed()


def test_half_open_after_cooldown_then_recovers():
    clock = Clock()
    breaker = CircuitBreaker("geo-test", failure_threshold=1, cooldown_seconds=60, clock=clock)
    open_breaker(breaker)
    clock.now += 59
    assert breaker.state == CircuitState.OPEN
    clock.now += 1
    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.call(Mock(return_value="ok")) == "ok"
    assert breaker.state == CircuitState.CLOSED


def test_half_open_failure_reopens():
    clock = Clock()
    breaker = CircuitBreaker("geo-test", failure_threshold=2, cooldown_seconds=60, clock=clock)
    open_breaker(breaker)
    clock.now += 60
    assert breaker.state == CircuitState.HALF_OPEN
    with pytest.raises(UpstreamDown):
        breaker.call(Mock(side_effect=UpstreamDown("still down")))
    assert breaker.state == CircuitState.OPEN
    assert breaker.stats.circuit_opened_count == 2


def test_only_listed_errors_trip_the_breaker():
    breaker = CircuitBreaker("osm-test", failure_threshold=1, trips_on=UPSTREAM_ERRORS)
    with pytest.raises(KeyError):
        breaker.call(Mock(side_effect=KeyError("lat")))
    assert breaker.is_closed()
    assert breaker.stats.failed_calls == 0

    with pytest.raises(httpx.ConnectError):
        breaker.call(Mock(side_effect=httpx.ConnectError("refused")))
    assert breaker.is_open()


def test_disabled_breaker_passes_everything_through():
    breaker = CircuitBreaker("geo-test", failure_threshold=1, enabled=False)
    for _ in range(3):
        with pytest.raises(UpstreamDown):
            breaker.call(Mock(side_effect=UpstreamDown("down")))
    assert breaker.is_closed()
    assert breaker.stats.failed_calls == 0


def test_named_breakers_are_shared_and_resettable():
    first = get_circuit_breaker("nominatim")
    assert get_circuit_breaker("nominatim") is first
    assert get_circuit_breaker("overpass") is not first
    assert "nominatim" in all_circuit_breakers()

    open_breaker(first, httpx.ConnectError("refused"))
    assert first.snapshot()["state"] == "open"
    reset_all_circuit_breakers()
    snapshot = first.snapshot()
    assert snapshot["state"] == "closed"
    assert snapshot["consecutive_failures"] == 0
    assert snapshot["opened_count"] >= 1


def test_breaker_publishes_metrics():
    breaker = CircuitBreaker("metrics-test", failure_threshold=1, cooldown_seconds=10)
    open_breaker(breaker)
    labels = {"circuit_name": "metrics-test"}
    assert REGISTRY.get_sample_value("circuit_breaker_state", labels) == 1.0
    assert REGISTRY.get_sample_value("circuit_breaker_opened_total", labels) >= 1.0
    assert REGISTRY.get_sample_value("circuit_breaker_failures_total", labels) >= 1.0


def test_defaults_come_from_settings():
    breaker = CircuitBreaker("defaults")
    assert breaker.failure_threshold == 3
    assert breaker.cooldown_seconds == 60
    assert breaker.enabled is True
