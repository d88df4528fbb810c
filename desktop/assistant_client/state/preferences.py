"""Process-wide voice preference shared by the speech engines."""

from __future__ import annotations

import logging
import threading
from dataclasses import fields, replace
from typing import Any, Callable

from ..services.schemas import VoicePreference

LOGGER = logging.getLogger(__name__)

PreferenceCallback = Callable[[VoicePreference], None]

_FIELDS = {f.name for f in fields(VoicePreference)}
_UNIT_FIELDS = ("stability", "similarity_boost", "style")


class VoicePreferenceStore:
    """Holds the current ``VoicePreference``; the last ``update`` wins."""

    def __init__(self, initial: VoicePreference | None = None) -> None:
        self._value = initial or VoicePreference()
        self._lock = threading.Lock()
        self._callbacks: list[PreferenceCallback] = []

    def get(self) -> VoicePreference:
        with self._lock:
            return self._value

    def update(self, **changes: Any) -> VoicePreference:
        """Merge ``changes`` into the preference.

        Raises ``ValueError`` for unknown fields, a gender other than
        male/female, an empty accent or a 0-1 parameter out of range; the
        stored preference is left untouched in that case.
        """
        unknown = set(changes) - _FIELDS
        if unknown:
            raise ValueError(f"Unknown voice preference fields: {', '.join(sorted(unknown))}")
        if "gender" in changes and changes["gender"] not in ("male", "female"):
            raise ValueError("gender must be 'male' or 'female'")
        if "accent" in changes:
            accent = changes["accent"]
            if not isinstance(accent, str) or not accent.strip():
                raise ValueError("accent must be a non-empty string")
            changes["accent"] = accent.strip()
        for name in _UNIT_FIELDS:
            if name in changes:
                value = float(changes[name])
                if not 0.0 <= value <= 1.0:
                    raise ValueError(f"{name} must be between 0 and 1")
                changes[name] = value
        with self._lock:
            self._value = replace(self._value, **changes)
            value = self._value
        LOGGER.debug("Voice preference set: %s", value)
        for callback in list(self._callbacks):
            callback(value)
        return value

    def subscribe(self, callback: PreferenceCallback) -> None:
        self._callbacks.append(callback)

    def unsubscribe(self, callback: PreferenceCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)
