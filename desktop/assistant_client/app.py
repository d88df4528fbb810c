"""Entry point for the terminal assistant client."""

from __future__ import annotations

import asyncio
import logging

from .audio.capture import CaptureConfig, MicrophoneCapture
from .audio.playback import PlaybackConfig, SpeechPlayback
from .audio.recognition import SpeechInputCapture, WhisperRecognizer
from .audio.transcriber import FasterWhisperEngine, WhisperConfig
from .audio.tts import Pyttsx3Synthesizer
from .audio.vad import VADConfig
from .audio.voice_engine import LocalVoiceEngine, RemoteVoiceEngine, VoiceOutputEngine
from .config.settings import AppSettings
from .config.store import load_settings, save_settings
from .errors import UnsupportedCapabilityError
from .runtime.controller import AssistantController
from .services.api import AssistantAPI
from .state.chat_store import ChatStateStore
from .state.preferences import VoicePreferenceStore

LOGGER = logging.getLogger(__name__)

_HELP = "Commands: /listen  /speak  /stop  /clear  /quit"


def _build_voice(settings: AppSettings, preferences: VoicePreferenceStore, closers: list) -> VoiceOutputEngine:
    if settings.voice.backend == "remote":
        sink = SpeechPlayback(PlaybackConfig(device_name=settings.audio.output_device))
        engine = RemoteVoiceEngine(preferences, settings.voice.elevenlabs_api_key, sink)
        closers.append(engine.aclose)
        return engine
    try:
        synthesizer = Pyttsx3Synthesizer()
    except UnsupportedCapabilityError as exc:
        LOGGER.warning("%s", exc)
        return LocalVoiceEngine(preferences, None)
    closers.append(synthesizer.close)
    return LocalVoiceEngine(preferences, synthesizer)


def _build_capture(settings: AppSettings, closers: list) -> SpeechInputCapture:
    audio = settings.audio
    try:
        engine = FasterWhisperEngine(
            WhisperConfig(model=audio.asr_model, device=audio.asr_device, compute_type=audio.asr_compute_type)
        )
        microphone = MicrophoneCapture(
            CaptureConfig(device_name=audio.input_device),
            VADConfig(aggressiveness=max(0, min(3, audio.vad_aggressiveness)), silence_ms=audio.silence_ms),
        )
    except UnsupportedCapabilityError as exc:
        LOGGER.warning("%s", exc)
        return SpeechInputCapture(None)
    recognizer = WhisperRecognizer(engine, microphone)
    closers.append(recognizer.close)
    return SpeechInputCapture(recognizer)


def build_controller(settings: AppSettings | None = None) -> AssistantController:
    """Wire the concrete audio stack, backend client and state together."""
    settings = settings or load_settings()
    preferences = VoicePreferenceStore(settings.preference)

    def _persist(preference) -> None:  # noqa: ANN001
        settings.preference = preference
        save_settings(settings)

    preferences.subscribe(_persist)

    api = AssistantAPI(settings)
    closers: list = [api.aclose]
    voice = _build_voice(settings, preferences, closers)
    capture = _build_capture(settings, closers)
    return AssistantController(
        ChatStateStore(api),
        voice,
        capture,
        auto_speak=settings.voice.auto_speak,
        closers=closers,
    )


async def _read_line(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, prompt)


async def _main() -> None:
    controller = build_controller()
    store = controller.store
    store.on_error(lambda message: print(f"! {message}"))
    controller.capture.on_transcript_change(lambda text: print(f"(dictated) {text}"))
    print(store.messages[0].content)
    print(_HELP)
    try:
        while True:
            try:
                line = (await _read_line("> ")).strip()
            except EOFError:
                break
            if line == "/quit":
                break
            if line == "/listen":
                print(f"[{controller.toggle_listening().value}]")
                continue
            if line == "/stop":
                controller.stop_speaking()
                continue
            if line == "/clear":
                store.clear_messages()
                print(store.messages[0].content)
                continue
            if line == "/speak":
                last = next((m for m in reversed(store.messages) if m.role == "assistant"), None)
                if last is not None:
                    await controller.toggle_speech(last.content)
                continue
            reply = await controller.submit(line or None)
            if reply is None:
                continue
            print(reply.content)
            if reply.service is not None:
                print(f"[{reply.service.type.value}] {reply.service.query or ''}".rstrip())
    finally:
        await controller.aclose()


def run() -> None:
    """Start the assistant client."""
    asyncio.run(_main())
