"""Microphone capture producing speech segments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Protocol

import sounddevice as sd

from .vad import SpeechSegmenter, VADConfig, VoiceActivityDetector

LOGGER = logging.getLogger(__name__)


class SegmentConsumer(Protocol):
    """Receives one utterance of 16-bit mono PCM."""

    def __call__(self, segment: bytes) -> None: ...


@dataclass(slots=True)
class CaptureConfig:
    """Microphone capture configuration."""

    sample_rate: int = 16_000
    channels: int = 1
    frame_duration_ms: int = 30
    device_name: str | None = None


class MicrophoneCapture:
    """Stream the microphone through VAD and hand finished segments to a consumer.

    The consumer runs on the audio callback thread.
    """

    def __init__(
        self,
        config: CaptureConfig | None = None,
        vad_config: VADConfig | None = None,
        vad: VoiceActivityDetector | None = None,
    ) -> None:
        self.config = config or CaptureConfig()
        vad_config = vad_config or VADConfig()
        self.segmenter = SpeechSegmenter(
            vad or VoiceActivityDetector(vad_config),
            sample_rate=self.config.sample_rate,
            frame_duration_ms=self.config.frame_duration_ms,
            silence_ms=vad_config.silence_ms,
            max_segment_ms=vad_config.max_segment_ms,
        )
        self._consumer: Callable[[bytes], None] | None = None
        self._stream: sd.RawInputStream | None = None
        self._lock = Lock()
        self._running = False

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def bind(self, consumer: SegmentConsumer) -> None:
        self._consumer = consumer

    def start(self) -> None:
        """Start microphone capture."""
        if self._consumer is None:
            raise RuntimeError("No audio consumer registered.")
        with self._lock:
            if self._running:
                return
            frame_size = int(self.config.sample_rate * self.config.frame_duration_ms / 1000)
            self._stream = sd.RawInputStream(
                samplerate=self.config.sample_rate,
                channels=self.config.channels,
                dtype="int16",
                blocksize=frame_size,
                callback=self._on_frame,
                device=self.config.device_name,
            )
            self._stream.start()
            self._running = True
            LOGGER.debug("Microphone capture started.")

    def stop(self) -> None:
        """Stop capture and deliver any speech still buffered."""
        with self._lock:
            if not self._running:
                return
            assert self._stream is not None
            self._stream.stop()
            self._stream.close()
            self._stream = None
            self._running = False
            LOGGER.debug("Microphone capture stopped.")
            segment = self.segmenter.flush()
        if segment and self._consumer is not None:
            self._consumer(segment)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _on_frame(self, indata: bytes, frames: int, time, status) -> None:  # type: ignore[override]  # noqa: ANN401
        if status:  # pragma: no cover
            LOGGER.warning("Microphone status: %s", status)
        segment = self.segmenter.push(bytes(indata))
        if segment and self._consumer is not None:
            self._consumer(segment)
