"""Health check module: curated dataset, upstream circuit breakers, sessions."""

from __future__ import annotations

import time
from typing import Any

from .circuit_breaker import CircuitState, all_circuit_breakers
from .settings import settings


def _is_configured(value: str | None) -> bool:
    """Return True when a config string is non-empty after trimming."""
    if value is None:
        return False
    return bool(value.strip())


class HealthChecker:
    """Health checker for the concierge and the services it leans on."""

    def check_all(self, controller) -> dict[str, Any]:
        """
        Check health of all dependencies.

        Returns:
            Dict with overall status and individual component checks
        """
        checks = {
            "dataset": self._check_dataset(controller),
            "upstreams": self._check_breakers(),
            "conversations": {"status": "ok", "active": len(controller.store)},
            "sentry": self._check_sentry(),
            "nlu": {"status": "ok", "mode": "llm"} if settings.llm_enabled else {"status": "disabled"},
        }

        # An open breaker degrades the service but the curated tier still answers
        all_ok = all(
            check.get("status") in {"ok", "disabled"} for check in checks.values()
        )
        return {
            "status": "healthy" if all_ok else "degraded",
            "timestamp": time.time(),
            "checks": checks,
        }

    def _check_dataset(self, controller) -> dict[str, Any]:
        size = len(controller.engine.dataset)
        if not size:
            # no curated tier; live search still answers
            return {"status": "disabled", "reason": "live search only", "path": str(settings.dataset_path)}
        return {"status": "ok", "records": size}

    def _check_breakers(self) -> dict[str, Any]:
        breakers = {name: b.snapshot() for name, b in all_circuit_breakers().items()}
        open_ones = [n for n, snap in breakers.items() if snap["state"] == CircuitState.OPEN.value]
        return {
            "status": "degraded" if open_ones else "ok",
            "breakers": breakers,
        }

    def _check_sentry(self) -> dict[str, Any]:
        """Check if Sentry is configured (doesn't actually test connectivity)."""
        if not _is_configured(settings.SENTRY_DSN):
            return {"status": "disabled", "reason": "SENTRY_DSN not configured"}
        dsn = settings.SENTRY_DSN or ""
        if "@" in dsn and "//" in dsn:
            return {
                "status": "ok",
                "environment": settings.SENTRY_ENVIRONMENT,
                "release": settings.SENTRY_RELEASE or "unset",
            }
        return {"status": "error", "error": "Invalid SENTRY_DSN format"}


# Global health checker instance
health_checker = HealthChecker()


__all__ = ["HealthChecker", "health_checker"]
