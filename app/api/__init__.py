from __future__ import annotations

from .routes_chat import router as chat_router
from .routes_health import router as health_router
from .routes_search import router as search_router
from .routes_videos import router as videos_router

__all__ = [
    "chat_router",
    "health_router",
    "search_router",
    "videos_router",
]
