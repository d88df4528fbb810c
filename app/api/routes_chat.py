from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from app.core.chat_engine import generate_chat_response
from app.core.errors import ValidationError, error_response
from app.core.logger import get_logger
from app.core.trace import get_trace_id

router = APIRouter(prefix="/api", tags=["chat"])
logger = get_logger("server")

CHAT_FAILURE_MESSAGE = "An error occurred while processing your message"


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message: str
    message_history: list[Any] = Field(default_factory=list, alias="messageHistory")

    def history(self) -> list[dict[str, Any]]:
        """Prior turns as ``{role, content}``; malformed entries are skipped."""
        turns: list[dict[str, Any]] = []
        for item in self.message_history:
            if isinstance(item, dict) and isinstance(item.get("content"), str):
                turns.append({"role": str(item.get("role") or "user"), "content": item["content"]})
        return turns


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


@router.post("/chat")
async def chat(request: Request) -> Any:
    raw = await _read_json(request)
    if not isinstance(raw, dict) or not isinstance(raw.get("message"), str) or not raw["message"].strip():
        raise ValidationError("No message provided")
    if raw.get("messageHistory") is None:
        raw = {**raw, "messageHistory": []}
    try:
        payload = ChatRequest.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid message history") from exc
    try:
        return await generate_chat_response(payload.message, payload.history())
    except Exception as exc:
        logger.error("Chat request failed: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_response("internal_error", CHAT_FAILURE_MESSAGE, trace_id=get_trace_id()),
        )
