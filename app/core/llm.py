from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping, Sequence

import httpx

from app.core.config import Settings, get_settings
from app.core.errors import ModelUnavailableError

logger = logging.getLogger(__name__)

_ROLES = {"user", "assistant", "system"}


def _extract_content(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices") or []
    if not choices:
        return ""
    choice = choices[0] if isinstance(choices, list) else None
    if not isinstance(choice, dict):
        return ""
    message = choice.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if content:
        return str(content)
    text = choice.get("text")
    if text:
        return str(text)
    delta = choice.get("delta")
    return str(delta.get("content") or "") if isinstance(delta, dict) else ""


class ChatCompletionClient:
    """Client for an OpenAI-compatible chat completion endpoint (Groq by default)."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        base_url = (self.settings.chat_api_base_url or "").rstrip("/")
        endpoint = self.settings.chat_endpoint or "/chat/completions"
        self.url = f"{base_url}{endpoint if endpoint.startswith('/') else '/' + endpoint}"
        self.api_key = self.settings.groq_api_key
        self.models = list(self.settings.chat_models)
        self.max_tokens = int(self.settings.chat_max_tokens)
        self.temperature = float(self.settings.chat_temperature)
        self.timeout = float(self.settings.chat_candidate_timeout_sec)

    async def complete(
        self,
        model: str,
        messages: Sequence[Mapping[str, str]],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        """Send one completion request to one model; raise on any failure."""
        payload: dict[str, Any] = {
            "model": model,
            "messages": [dict(m) for m in messages],
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            resp = await client.post(self.url, json=payload, headers=headers)
            if resp.status_code >= 400:
                detail = (resp.text or "").strip()[:500] or resp.reason_phrase
                raise RuntimeError(f"{model} answered {resp.status_code}: {detail}")
            data = resp.json()
        return {"text": _extract_content(data), "model": model, "raw": data}

    async def chat_with_fallback(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        models: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        """Try each candidate model in order and return the first success.

        Attempts are sequential; a candidate is only tried once the previous
        one has failed, errored or exceeded ``chat_candidate_timeout_sec``.
        """
        if not messages:
            raise ValueError("empty messages")
        if not self.api_key:
            raise ModelUnavailableError("GROQ_API_KEY is not configured")
        candidates = list(models if models is not None else self.models)
        attempts: list[dict[str, Any]] = []
        for model in candidates:
            logger.info("Trying chat model %s", model)
            try:
                result = await asyncio.wait_for(self.complete(model, messages), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("Chat model %s timed out after %.1fs", model, self.timeout)
                attempts.append({"model": model, "error": "timeout"})
                continue
            except (httpx.HTTPError, RuntimeError, ValueError) as exc:
                logger.warning("Chat model %s failed: %s", model, exc)
                attempts.append({"model": model, "error": str(exc)})
                continue
            result["attempts"] = attempts
            return result
        raise ModelUnavailableError("All chat models failed to respond", attempts=attempts)


def build_chat_messages(
    *,
    system: str | None = None,
    history: Iterable[Mapping[str, Any]] | None = None,
    prompt: str,
    max_history: int | None = None,
) -> list[dict[str, str]]:
    turns: list[dict[str, str]] = []
    for entry in history or []:
        content = entry.get("content")
        if not isinstance(content, str) or not content:
            continue
        role = entry.get("role")
        turns.append({"role": role if role in _ROLES else "user", "content": content})
    if max_history is not None:
        turns = turns[-max_history:] if max_history > 0 else []

    messages: list[dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.extend(turns)
    messages.append({"role": "user", "content": prompt})
    return messages
