"""ASR utilities powered by faster-whisper."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from faster_whisper import WhisperModel

from ..errors import UnsupportedCapabilityError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class WhisperConfig:
    """Configuration for the faster-whisper engine."""

    model: str = "base.en"
    device: str = "cpu"
    compute_type: str = "int8"
    language: str = "en"


class FasterWhisperEngine:
    """Thin wrapper around WhisperModel."""

    def __init__(self, config: WhisperConfig | None = None) -> None:
        self.config = config or WhisperConfig()
        try:
            self.model = WhisperModel(
                self.config.model,
                device=self.config.device,
                compute_type=self.config.compute_type,
            )
        except (OSError, RuntimeError, ValueError) as exc:
            raise UnsupportedCapabilityError(f"Whisper model unavailable: {exc}") from exc

    def transcribe(self, pcm: bytes) -> str:
        """Transcribe 16 kHz mono int16 PCM."""
        audio = np.frombuffer(pcm, dtype=np.int16).astype(np.float32) / 32768.0
        segments, _ = self.model.transcribe(audio, language=self.config.language)
        return " ".join(segment.text.strip() for segment in segments).strip()

