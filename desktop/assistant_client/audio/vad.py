"""Voice activity detection utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import webrtcvad


_VALID_SAMPLE_RATES = (8000, 16_000, 32_000, 48_000)
_VALID_FRAME_DURATIONS_MS = (10, 20, 30)


@dataclass(slots=True)
class VADConfig:
    """WebRTC VAD configuration."""

    aggressiveness: int = 2  # 0 (sensitive) to 3 (strict)
    silence_ms: int = 600
    max_segment_ms: int = 15_000


class SpeechDetector(Protocol):
    def is_speech(self, frame: bytes, sample_rate: int) -> bool: ...


class VoiceActivityDetector:
    """Wrapper around the WebRTC VAD implementation."""

    def __init__(self, config: VADConfig | None = None) -> None:
        self.config = config or VADConfig()
        self._vad = webrtcvad.Vad(self.config.aggressiveness)

    def is_speech(self, frame: bytes, sample_rate: int) -> bool:
        """Return True when the frame contains speech."""
        normalized = self._normalize_frame(frame, sample_rate)
        return self._vad.is_speech(normalized, sample_rate)

    def update_aggressiveness(self, value: int) -> None:
        self.config.aggressiveness = max(0, min(3, value))
        self._vad.set_mode(self.config.aggressiveness)

    @classmethod
    def _normalize_frame(cls, frame: bytes, sample_rate: int) -> bytes:
        """Pad or trim frames so that WebRTC VAD accepts them."""
        if not frame or sample_rate not in _VALID_SAMPLE_RATES:
            return frame

        frame_samples = len(frame) // 2  # mono int16
        if frame_samples == 0:
            return frame

        expected_samples = [
            sample_rate * duration // 1000 for duration in _VALID_FRAME_DURATIONS_MS
        ]
        target_samples = min(expected_samples, key=lambda expected: abs(expected - frame_samples))
        target_bytes = max(target_samples, 1) * 2

        if len(frame) == target_bytes:
            return frame
        if len(frame) > target_bytes:
            return frame[:target_bytes]
        return frame + bytes(target_bytes - len(frame))


class SpeechSegmenter:
    """Group voiced frames into utterances ended by a run of silence."""

    def __init__(
        self,
        detector: SpeechDetector,
        *,
        sample_rate: int = 16_000,
        frame_duration_ms: int = 30,
        silence_ms: int = 600,
        max_segment_ms: int = 15_000,
    ) -> None:
        self.detector = detector
        self.sample_rate = sample_rate
        self._silence_limit = max(1, silence_ms // frame_duration_ms)
        self._max_frames = max(1, max_segment_ms // frame_duration_ms)
        self._frames: list[bytes] = []
        self._silent_frames = 0

    def push(self, frame: bytes) -> bytes | None:
        """Feed one frame; return a finished segment when one just ended."""
        if self.detector.is_speech(frame, self.sample_rate):
            self._frames.append(frame)
            self._silent_frames = 0
        elif self._frames:
            self._frames.append(frame)
            self._silent_frames += 1
            if self._silent_frames >= self._silence_limit:
                return self.flush()
        if len(self._frames) >= self._max_frames:
            return self.flush()
        return None

    def flush(self) -> bytes | None:
        """Return buffered speech (trailing silence dropped) and reset."""
        frames = self._frames[: len(self._frames) - self._silent_frames]
        self._frames = []
        self._silent_frames = 0
        if not frames:
            return None
        return b"".join(frames)
