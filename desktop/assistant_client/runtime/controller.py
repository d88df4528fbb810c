"""Coordinates chat state, spoken replies and dictation for the client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..audio.recognition import CaptureState, SpeechInputCapture
from ..audio.voice_engine import VoiceOutputEngine
from ..services.schemas import ChatMessage
from ..state.chat_store import ChatStateStore

LOGGER = logging.getLogger(__name__)

InputCallback = Callable[[str], None]


class AssistantController:
    """High-level coordinator for the assistant client."""

    def __init__(
        self,
        store: ChatStateStore,
        voice: VoiceOutputEngine,
        capture: SpeechInputCapture,
        *,
        auto_speak: bool = True,
        closers: list[Callable[[], Awaitable[Any] | None]] | None = None,
    ) -> None:
        self.store = store
        self.voice = voice
        self.capture = capture
        self.auto_speak = auto_speak
        self.input_text = ""
        self._input_callbacks: list[InputCallback] = []
        self._speech_tasks: set[asyncio.Task[None]] = set()
        self._closers = list(closers or [])
        self.capture.on_transcript_change(self._on_transcript)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def on_input_change(self, callback: InputCallback) -> None:
        self._input_callbacks.append(callback)

    def set_input_text(self, text: str) -> None:
        self.input_text = text
        for callback in list(self._input_callbacks):
            callback(text)

    async def submit(self, text: Optional[str] = None) -> ChatMessage | None:
        """Send ``text`` (or the current input) and speak the reply."""
        content = self.input_text if text is None else text
        if not content.strip() or self.store.is_loading:
            return None
        if self.capture.is_listening():
            self.capture.stop_listening()
        self.capture.reset_transcript()
        self.set_input_text("")
        reply = await self.store.send_message(content)
        if reply is not None and self.auto_speak and reply.content.strip():
            self._schedule_speech(reply.content)
        return reply

    def toggle_listening(self) -> CaptureState:
        if self.capture.is_listening():
            self.capture.stop_listening()
        else:
            self.capture.reset_transcript()
            self.capture.start_listening()
        return self.capture.state

    async def toggle_speech(self, text: str) -> None:
        await self.voice.toggle_speech(text)

    def stop_speaking(self) -> None:
        self.voice.stop()

    async def aclose(self) -> None:
        """Stop audio, wait for pending speech and release clients."""
        if self.capture.is_listening():
            self.capture.stop_listening()
        self.voice.stop()
        if self._speech_tasks:
            await asyncio.gather(*self._speech_tasks, return_exceptions=True)
        for closer in self._closers:
            result = closer()
            if asyncio.iscoroutine(result):
                await result

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _on_transcript(self, transcript: str) -> None:
        self.set_input_text(transcript)

    def _schedule_speech(self, text: str) -> None:
        task = asyncio.create_task(self.voice.speak(text))
        self._speech_tasks.add(task)
        task.add_done_callback(self._speech_tasks.discard)
