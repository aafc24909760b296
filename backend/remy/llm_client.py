from __future__ import annotations

from threading import Lock
from typing import Any

import httpx

from .errors import NLUUnavailable
from .settings import settings

_client: httpx.Client | None = None
_client_lock = Lock()


def _headers() -> dict[str, str]:
    if not settings.OPENAI_API_KEY:
        raise NLUUnavailable("OPENAI_API_KEY not configured")
    return {
        "Authorization": f"Bearer {settings.OPENAI_API_KEY}",
        "Content-Type": "application/json",
    }


def _get_client() -> httpx.Client:
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                timeout = httpx.Timeout(
                    settings.OPENAI_TIMEOUT_SECONDS,
                    connect=settings.OPENAI_CONNECT_TIMEOUT_SECONDS,
                )
                base_url = settings.OPENAI_API_BASE.rstrip("/") or "https://api.openai.com/v1"
                _client = httpx.Client(base_url=base_url, timeout=timeout)
    return _client


def post_json(path: str, payload: dict[str, Any], *, timeout: float | None = None) -> dict[str, Any]:
    headers = _headers()
    client = _get_client()
    try:
        response = client.post(path, json=payload, headers=headers, timeout=timeout)
    except httpx.HTTPError as exc:
        raise NLUUnavailable(f"Request failed: {exc}") from exc
    if response.status_code >= 400:
        raise NLUUnavailable(f"OpenAI error {response.status_code}: {response.text[:200]}")
    try:
        return response.json()
    except ValueError as exc:
        raise NLUUnavailable("Invalid JSON from OpenAI") from exc
