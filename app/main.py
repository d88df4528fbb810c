from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api import chat_router, health_router, search_router, videos_router
from app.core.config import get_settings
from app.core.errors import install_error_handlers
from app.core.logger import get_logger
from app.core.trace import TRACE_HEADER, trace_id_from_headers

config = get_settings()

app = FastAPI(title="MedAssist")

# Server logger
logger = get_logger("server")


@app.middleware("http")
async def _trace_middleware(request: Request, call_next):
    tid = trace_id_from_headers(request.headers)
    response = await call_next(request)
    response.headers[TRACE_HEADER] = tid
    return response


# Credentials are only allowed with an explicit origin list
_allow_credentials = config.cors_origins != ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[TRACE_HEADER],
)

install_error_handlers(app)

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(search_router)
app.include_router(videos_router)


async def _startup_logging() -> None:
    """Log server start with the configured providers."""
    logger.info("Server started", extra={"providers": config.capability_flags()})


app.add_event_handler("startup", _startup_logging)
