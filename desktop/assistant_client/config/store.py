"""Persistence helpers for assistant client settings."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

from ..services.schemas import VoicePreference
from .paths import config_dir
from .settings import AppSettings, AudioSettings, ServerSettings, VoiceSettings

LOGGER = logging.getLogger(__name__)


def settings_path() -> Path:
    return config_dir() / "assistant_settings.json"


def _known(cls: type, payload: Any) -> dict[str, Any]:
    """Keep only the fields ``cls`` declares."""
    if not isinstance(payload, dict):
        return {}
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in payload.items() if key in names}


def load_settings(path: Path | None = None) -> AppSettings:
    """Load settings from disk (defaults when missing)."""
    path = path or settings_path()
    if not path.exists():
        return AppSettings()

    raw_text = path.read_text(encoding="utf-8").lstrip("\ufeff")
    try:
        data = json.loads(raw_text)
    except ValueError:
        LOGGER.warning("Ignoring unreadable settings file %s", path)
        return AppSettings()

    return AppSettings(
        server=ServerSettings(**_known(ServerSettings, data.get("server"))),
        voice=VoiceSettings(**_known(VoiceSettings, data.get("voice"))),
        audio=AudioSettings(**_known(AudioSettings, data.get("audio"))),
        preference=VoicePreference(**_known(VoicePreference, data.get("preference"))),
    )


def save_settings(settings: AppSettings, path: Path | None = None) -> None:
    """Persist settings to disk."""
    path = path or settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(settings), indent=2), encoding="utf-8")
