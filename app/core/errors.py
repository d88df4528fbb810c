from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.logger import get_logger
from app.core.trace import get_trace_id

logger = get_logger("server")

GENERIC_ERROR_MESSAGE = "An error occurred while processing your request"


class AssistantError(Exception):
    """Base class for errors raised by the assistant backend."""

    code = "assistant_error"


class ValidationError(AssistantError):
    """A required request field is missing or blank."""

    code = "invalid_request"


class ModelUnavailableError(AssistantError):
    """Every chat completion candidate failed."""

    code = "model_unavailable"

    def __init__(self, message: str, *, attempts: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts or []


class ProviderError(AssistantError):
    """An upstream provider (search, speech) failed or answered with an error."""

    code = "provider_error"

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


def error_response(code: str, message: str, *, details: Any | None = None, trace_id: str | None = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "message": message,
        "error": {
            "code": code,
            "message": message,
        },
    }
    if details is not None:
        payload["error"]["details"] = details
    if trace_id is not None:
        payload["error"]["trace_id"] = trace_id
    return payload


async def _validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_response(ValidationError.code, str(exc), trace_id=get_trace_id()),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=500,
        content=error_response("internal_error", GENERIC_ERROR_MESSAGE, trace_id=get_trace_id()),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
