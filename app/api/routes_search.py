from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from app.core.errors import ValidationError, error_response
from app.core.logger import get_logger
from app.core.trace import get_trace_id
from app.core.websearch import search_medical_information

router = APIRouter(prefix="/api", tags=["search"])
logger = get_logger("search")

SEARCH_FAILURE_MESSAGE = "An error occurred while searching"


@router.get("/search")
async def search(query: Optional[str] = Query(default=None)) -> Any:
    if not query or not query.strip():
        raise ValidationError("No search query provided")
    try:
        return await search_medical_information(query.strip())
    except Exception as exc:
        logger.error("Search request failed: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_response("internal_error", SEARCH_FAILURE_MESSAGE, trace_id=get_trace_id()),
        )
