"""HTTP client used to talk to the MedAssist backend."""

from __future__ import annotations

from typing import Any, Iterable

import httpx

from ..config.settings import AppSettings
from .schemas import ChatMessage, EmbeddedService


class AssistantAPI:
    """Async client for the backend JSON API."""

    def __init__(self, settings: AppSettings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        timeout = httpx.Timeout(
            connect=10.0,
            read=settings.server.timeout_sec,
            write=10.0,
            pool=None,
        )
        self._client = httpx.AsyncClient(
            base_url=settings.server.base_url,
            verify=settings.server.verify_ssl,
            timeout=timeout,
            transport=transport,
        )

    async def send_chat(self, message: str, history: Iterable[ChatMessage] = ()) -> ChatMessage:
        """POST one user message; return the assistant reply as a ``ChatMessage``."""
        response = await self._client.post(
            "/api/chat",
            json={
                "message": message,
                "messageHistory": [entry.to_history() for entry in history],
            },
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected chat reply: {type(data).__name__}")
        return ChatMessage(
            role="assistant",
            content=str(data.get("message") or ""),
            service=EmbeddedService.from_payload(data.get("service")),
        )

    async def search(self, query: str) -> dict[str, Any]:
        response = await self._client.get("/api/search", params={"query": query})
        response.raise_for_status()
        return response.json()

    async def videos(self, query: str) -> list[dict[str, Any]]:
        response = await self._client.get("/api/videos", params={"query": query})
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected videos reply: {type(data).__name__}")
        return list(data.get("videos") or [])

    async def health(self) -> dict[str, Any]:
        response = await self._client.get("/api/health")
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()
