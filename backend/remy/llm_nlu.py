"""
Optional LLM slot extraction.

The completion service proposes slot updates as JSON; the rule-based
extractor fills every field the model leaves empty. Any failure falls back
to the rules alone, so a turn never depends on the model being reachable.
"""

from __future__ import annotations

import json
import logging
from hashlib import sha256

from .circuit_breaker import CircuitOpenError, get_circuit_breaker
from .errors import NLUUnavailable
from .extract import canonicalize_cuisine, extract
from .llm_client import post_json
from .settings import settings
from .slots import Slots, normalize_budget

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Devuelve SOLO JSON:
{"updates":{"city":"","zone":"","cuisine":"","budget":""}}
- "estoy en/en X" => city
- "zona/colonia X" => zone
- "tengo antojo de/quiero/se me antoja X" => cuisine
- "$300 / 300 pesos" => budget (solo número)
- Deja vacío ("") todo lo que el mensaje no diga."""


def _prompt_fingerprint(prompt: str) -> str:
    return sha256(prompt.encode("utf-8")).hexdigest()[:10]


def _message_content(response) -> str:
    """Pull the first choice's text out of a chat completion, or raise."""
    choices = response.get("choices") if isinstance(response, dict) else None
    first = choices[0] if isinstance(choices, list) and choices else None
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content:
        raise NLUUnavailable("Empty or malformed LLM response")
    return content


def _request_updates(message: str, previous: Slots) -> dict[str, str]:
    payload = {
        "model": settings.NLU_MODEL,
        "temperature": 0,
        "response_format": {"type": "json_object"},
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f'msg: """{message}"""\nprev: {json.dumps(previous.as_dict(), ensure_ascii=False)}',
            },
        ],
    }
    response = post_json("/chat/completions", payload, timeout=settings.OPENAI_TIMEOUT_SECONDS)
    content = _message_content(response)
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        raise NLUUnavailable("Invalid slot JSON") from exc
    updates = parsed.get("updates") if isinstance(parsed, dict) else None
    if not isinstance(updates, dict):
        raise NLUUnavailable("Slot JSON without updates")
    return updates


def extract_with_llm(message: str, previous: Slots) -> Slots:
    rules = extract(message)
    if not settings.llm_enabled or not (message or "").strip():
        return rules

    breaker = get_circuit_breaker("openai", trips_on=(NLUUnavailable,))
    digest = _prompt_fingerprint(message)
    try:
        updates = breaker.call(_request_updates, message, previous)
    except (NLUUnavailable, CircuitOpenError) as exc:
        logger.warning("LLM slot extraction unavailable (%s): %s", digest, exc)
        return rules

    proposed = Slots.from_mapping(updates)
    result = Slots(
        locality=proposed.locality or rules.locality,
        sub_area=proposed.sub_area or rules.sub_area,
        cuisine=canonicalize_cuisine(proposed.cuisine) or rules.cuisine,
        budget=normalize_budget(proposed.budget) or rules.budget,
    )
    logger.debug("LLM slots %s -> %s", digest, result.as_dict())
    return result


__all__ = ["extract_with_llm"]
