"""PCM playback for synthesized speech."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass

import sounddevice as sd

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PlaybackConfig:
    """Playback configuration."""

    channels: int = 1
    device_name: str | None = None


class SpeechPlayback:
    """Play 16-bit PCM buffers and report when they have drained."""

    def __init__(self, config: PlaybackConfig | None = None) -> None:
        self.config = config or PlaybackConfig()
        self._buffer = deque[bytes]()
        self._lock = threading.RLock()
        self._stream: sd.RawOutputStream | None = None
        self._sample_rate: int | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._drained: asyncio.Future[None] | None = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def play(self, pcm: bytes, sample_rate: int) -> None:
        """Queue ``pcm`` and wait until it has been played or ``stop`` is called."""
        if not pcm:
            return
        loop = asyncio.get_running_loop()
        drained: asyncio.Future[None] = loop.create_future()
        with self._lock:
            self._resolve_drained()
            self._loop = loop
            self._drained = drained
            self._ensure_stream(sample_rate)
            self._buffer.append(pcm)
        try:
            await drained
        except asyncio.CancelledError:
            self.stop()
            raise

    def stop(self) -> None:
        """Stop playback and clear the buffer."""
        with self._lock:
            self._buffer.clear()
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None
                self._sample_rate = None
            self._resolve_drained()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _resolve_drained(self) -> None:
        drained, loop = self._drained, self._loop
        self._drained = None
        if drained is None or loop is None or drained.done():
            return
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(lambda: drained.done() or drained.set_result(None))

    def _ensure_stream(self, sample_rate: int) -> None:
        if self._stream is not None and self._sample_rate != sample_rate:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        if self._stream is not None:
            if not self._stream.active:
                self._stream.start()
            return
        self._stream = sd.RawOutputStream(
            samplerate=sample_rate,
            channels=self.config.channels,
            dtype="int16",
            callback=self._on_write,
            device=self.config.device_name,
        )
        self._sample_rate = sample_rate
        self._stream.start()

    def _on_write(self, outdata: bytearray, frames: int, time, status) -> None:  # type: ignore[override]  # noqa: ANN401
        if status:  # pragma: no cover
            LOGGER.warning("Audio output status: %s", status)
        with self._lock:
            if not self._buffer:
                outdata[:] = b"\x00" * len(outdata)
                self._resolve_drained()
                return
            chunk = self._buffer.popleft()
            if len(chunk) >= len(outdata):
                outdata[:] = chunk[: len(outdata)]
                remainder = chunk[len(outdata) :]
                if remainder:
                    self._buffer.appendleft(remainder)
            else:
                outdata[: len(chunk)] = chunk
                outdata[len(chunk) :] = b"\x00" * (len(outdata) - len(chunk))
