from __future__ import annotations

import time
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version

from fastapi import APIRouter

from app.core.config import get_settings

router = APIRouter(prefix="/api", tags=["health"])

STARTED_AT = time.monotonic()


@router.get("/health")
async def get_health() -> dict[str, object]:
    """Report liveness, build version and which providers are configured."""
    try:
        pkg_version = version("medassist")
    except PackageNotFoundError:  # pragma: no cover - depends on installation
        pkg_version = "unknown"

    return {
        "status": "ok",
        "version": pkg_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "env": get_settings().capability_flags(),
    }
