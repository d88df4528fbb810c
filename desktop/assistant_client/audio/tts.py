"""Text-to-speech through the platform speech driver (pyttsx3)."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import pyttsx3

from ..errors import UnsupportedCapabilityError
from ..services.schemas import Utterance
from .voices import VoiceInfo, normalize_locale

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Pyttsx3Config:
    """Driver configuration."""

    driver_name: str | None = None
    base_rate: int = 180  # words per minute at rate 1.0


def _decode_language(value: Any) -> str | None:
    if isinstance(value, bytes):
        # espeak prefixes the language with a priority byte
        value = value.lstrip(b"\x00\x01\x02\x03\x04\x05\x06\x07\x08\x09").decode("ascii", "ignore")
    return normalize_locale(str(value)) if value else None


def _decode_gender(value: Any) -> str | None:
    lowered = str(value or "").lower()
    if "female" in lowered:
        return "female"
    if "male" in lowered:
        return "male"
    return None


class Pyttsx3Synthesizer:
    """Thread-confined pyttsx3 engine.

    pyttsx3 engines are not thread safe, so every call runs on one worker
    thread and the event loop only awaits it.
    """

    def __init__(self, config: Pyttsx3Config | None = None) -> None:
        self.config = config or Pyttsx3Config()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tts")
        try:
            self._engine = self._executor.submit(pyttsx3.init, self.config.driver_name).result()
        except (ImportError, OSError, RuntimeError) as exc:
            self._executor.shutdown(wait=False)
            raise UnsupportedCapabilityError(f"Speech synthesis not supported: {exc}") from exc

    async def get_voices(self) -> list[VoiceInfo]:
        loop = asyncio.get_running_loop()
        raw = await loop.run_in_executor(self._executor, self._engine.getProperty, "voices")
        voices: list[VoiceInfo] = []
        for voice in raw or []:
            languages = list(getattr(voice, "languages", None) or [])
            voices.append(
                VoiceInfo(
                    identifier=str(voice.id),
                    name=str(voice.name or voice.id),
                    gender=_decode_gender(getattr(voice, "gender", None)),
                    locale=_decode_language(languages[0]) if languages else None,
                )
            )
        return voices

    async def speak(self, utterance: Utterance) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._say, utterance)

    def cancel(self) -> None:
        self._engine.stop()

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _say(self, utterance: Utterance) -> None:
        engine = self._engine
        if utterance.voice_id:
            engine.setProperty("voice", utterance.voice_id)
        # pyttsx3 drivers expose rate and volume but not pitch.
        engine.setProperty("rate", int(self.config.base_rate * utterance.rate))
        engine.setProperty("volume", max(0.0, min(1.0, utterance.volume)))
        engine.say(utterance.text)
        engine.runAndWait()
