from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from app.core.errors import ValidationError, error_response
from app.core.logger import get_logger
from app.core.services import search_videos
from app.core.trace import get_trace_id

router = APIRouter(prefix="/api", tags=["videos"])
logger = get_logger("server")

VIDEO_FAILURE_MESSAGE = "An error occurred while searching videos"


@router.get("/videos")
async def videos(query: Optional[str] = Query(default=None)) -> Any:
    if not query or not query.strip():
        raise ValidationError("No video search query provided")
    try:
        return search_videos(query.strip())
    except Exception as exc:
        logger.error("Video search failed: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_response("internal_error", VIDEO_FAILURE_MESSAGE, trace_id=get_trace_id()),
        )
