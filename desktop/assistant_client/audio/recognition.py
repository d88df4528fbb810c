"""Dictation state machine on top of a speech recognizer."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Protocol

from ..services.schemas import RecognitionResult

LOGGER = logging.getLogger(__name__)

ResultCallback = Callable[[RecognitionResult], None]
EndCallback = Callable[[], None]
ErrorCallback = Callable[[Exception], None]
TranscriptCallback = Callable[[str], None]
StateCallback = Callable[["CaptureState"], None]


class CaptureState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    UNSUPPORTED = "unsupported"


class SpeechRecognizer(Protocol):
    """Continuous recognizer; callbacks are delivered on the event loop thread."""

    def is_available(self) -> bool: ...

    def start(self, on_result: ResultCallback, on_end: EndCallback, on_error: ErrorCallback) -> None: ...

    def stop(self) -> None: ...


class SpeechInputCapture:
    """Turns recognizer events into a running transcript.

    ``IDLE -> LISTENING -> IDLE``; ``UNSUPPORTED`` when no recognizer is
    available, decided once at construction. Only final results are kept.
    """

    def __init__(self, recognizer: SpeechRecognizer | None) -> None:
        self._recognizer = recognizer
        available = recognizer is not None and recognizer.is_available()
        self._state = CaptureState.IDLE if available else CaptureState.UNSUPPORTED
        self._transcript = ""
        self._transcript_callbacks: list[TranscriptCallback] = []
        self._state_callbacks: list[StateCallback] = []

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def supported(self) -> bool:
        return self._state is not CaptureState.UNSUPPORTED

    def is_listening(self) -> bool:
        return self._state is CaptureState.LISTENING

    def start_listening(self) -> bool:
        """Begin a session; ignored unless idle."""
        if self._state is not CaptureState.IDLE or self._recognizer is None:
            return False
        self._set_state(CaptureState.LISTENING)
        try:
            self._recognizer.start(self._on_result, self._on_end, self._on_error)
        except Exception as exc:
            LOGGER.warning("Speech recognition failed to start: %s", exc)
            self._set_state(CaptureState.IDLE)
            return False
        return True

    def stop_listening(self) -> bool:
        """End the session; ignored unless listening."""
        if self._state is not CaptureState.LISTENING or self._recognizer is None:
            return False
        self._set_state(CaptureState.IDLE)
        self._recognizer.stop()
        return True

    def toggle_listening(self) -> bool:
        if self.is_listening():
            self.stop_listening()
        else:
            self.start_listening()
        return self.is_listening()

    def reset_transcript(self) -> None:
        if self._transcript:
            self._transcript = ""
            self._notify_transcript()

    def on_transcript_change(self, callback: TranscriptCallback) -> None:
        self._transcript_callbacks.append(callback)

    def on_state_change(self, callback: StateCallback) -> None:
        self._state_callbacks.append(callback)

    # ------------------------------------------------------------------ #
    # Recognizer callbacks
    # ------------------------------------------------------------------ #
    def _on_result(self, result: RecognitionResult) -> None:
        text = result.text.strip()
        if not result.final or not text:
            return
        self._transcript = f"{self._transcript} {text}" if self._transcript else text
        self._notify_transcript()

    def _on_end(self) -> None:
        if self._state is CaptureState.LISTENING:
            self._set_state(CaptureState.IDLE)

    def _on_error(self, exc: Exception) -> None:
        LOGGER.warning("Speech recognition error: %s", exc)
        if self._state is CaptureState.LISTENING:
            self._set_state(CaptureState.IDLE)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _set_state(self, state: CaptureState) -> None:
        if state is self._state:
            return
        self._state = state
        for callback in list(self._state_callbacks):
            callback(state)

    def _notify_transcript(self) -> None:
        for callback in list(self._transcript_callbacks):
            callback(self._transcript)


class Transcriber(Protocol):
    def transcribe(self, pcm: bytes) -> str: ...


class SegmentSource(Protocol):
    """Microphone that hands finished speech segments to a bound consumer."""

    def bind(self, consumer: Callable[[bytes], None]) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


class WhisperRecognizer:
    """Speech segments transcribed on one worker thread.

    Every callback is tagged with the session that produced it; callbacks
    from a session older than the latest ``start`` are dropped on the loop.
    """

    def __init__(self, engine: Transcriber, source: SegmentSource) -> None:
        self.engine = engine
        self.source = source
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="asr")
        self._loop: asyncio.AbstractEventLoop | None = None
        self._session = 0
        self._on_result: ResultCallback | None = None
        self._on_end: EndCallback | None = None
        self._on_error: ErrorCallback | None = None
        self.source.bind(self._on_segment)

    def is_available(self) -> bool:
        return True

    def start(self, on_result: ResultCallback, on_end: EndCallback, on_error: ErrorCallback) -> None:
        self._loop = asyncio.get_running_loop()
        self._session += 1
        self._on_result, self._on_end, self._on_error = on_result, on_end, on_error
        self.source.start()

    def stop(self) -> None:
        session = self._session
        self.source.stop()
        # Queued after any pending transcription.
        self._executor.submit(self._post, session, self._on_end)

    def close(self) -> None:
        self.source.stop()
        self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _on_segment(self, segment: bytes) -> None:
        self._executor.submit(self._transcribe, self._session, segment)

    def _transcribe(self, session: int, segment: bytes) -> None:
        try:
            text = self.engine.transcribe(segment)
        except Exception as exc:
            LOGGER.exception("Transcription failed")
            self._post(session, self._on_error, exc)
            return
        if text:
            self._post(session, self._on_result, RecognitionResult(text=text, final=True))

    def _post(self, session: int, callback: Callable[..., None] | None, *args: Any) -> None:
        loop = self._loop
        if callback is None or loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._deliver, session, callback, *args)

    def _deliver(self, session: int, callback: Callable[..., None], *args: Any) -> None:
        if session != self._session:
            LOGGER.debug("Dropping callback from stale recognition session %d", session)
            return
        callback(*args)
