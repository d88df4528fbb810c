from __future__ import annotations

import time
from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional

from app.core.classifier import ServiceType, classify_intent, extract_appointment_details, extract_query
from app.core.config import Settings, get_settings
from app.core.llm import ChatCompletionClient, build_chat_messages
from app.core.logger import get_logger
from app.core.services import prepare_appointment_data, prepare_video_data
from app.core.websearch import search_medical_information

logger = get_logger("chat")

EMPTY_COMPLETION_REPLY = "I'm sorry, I couldn't process your request."
DEGRADED_REPLY = (
    "I apologize, but I'm having trouble processing your request right now. Please try again later."
)


def _trim_text(value: str | None, limit: int = 160) -> str:
    if not value:
        return ""
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


async def _build_service(
    service_type: ServiceType,
    message: str,
    settings: Settings,
    today: date | None,
) -> Optional[Dict[str, Any]]:
    if service_type is ServiceType.APPOINTMENT:
        details = extract_appointment_details(message, today=today)
        return {"type": service_type.value, "data": prepare_appointment_data(details)}
    if service_type in (ServiceType.SEARCH, ServiceType.VIDEO):
        query = extract_query(message)
        if not query:
            return None
        if service_type is ServiceType.SEARCH:
            data = await search_medical_information(query, settings)
        else:
            data = prepare_video_data(query)
        return {"type": service_type.value, "query": query, "data": data}
    return None


async def generate_chat_response(
    message: str,
    history: Iterable[Mapping[str, Any]] | None = None,
    *,
    settings: Settings | None = None,
    client: ChatCompletionClient | None = None,
    today: date | None = None,
) -> Dict[str, Any]:
    """Answer one chat turn with an assistant reply and an optional embedded service.

    Failures never escape: the caller always receives ``{"message", "service"}``,
    degraded to a fixed apology with no service when anything goes wrong.
    """
    started = time.perf_counter()
    try:
        settings = settings or get_settings()
        service_type = classify_intent(message)
        client = client or ChatCompletionClient(settings)
        messages = build_chat_messages(
            system=settings.chat_system_prompt,
            history=history,
            prompt=message,
            max_history=settings.chat_history_max_messages,
        )
        result = await client.chat_with_fallback(messages)
        reply = (result.get("text") or "").strip() or EMPTY_COMPLETION_REPLY
        service = await _build_service(service_type, message, settings, today)
    except Exception as exc:
        logger.error(
            "Chat response failed: %s",
            exc,
            extra={"question": _trim_text(message), "error_type": exc.__class__.__name__},
        )
        return {"message": DEGRADED_REPLY, "service": None}

    logger.info(
        "Chat response generated",
        extra={
            "question": _trim_text(message),
            "model": result.get("model"),
            "attempts": len(result.get("attempts") or []) + 1,
            "service_type": service["type"] if service else None,
            "duration_ms": round((time.perf_counter() - started) * 1000, 1),
        },
    )
    return {"message": reply, "service": service}
