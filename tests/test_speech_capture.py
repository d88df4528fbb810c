import asyncio
import threading
from typing import Callable

import pytest

from desktop.assistant_client.audio.recognition import CaptureState, SpeechInputCapture, WhisperRecognizer
from desktop.assistant_client.services.schemas import RecognitionResult


class FakeRecognizer:
    def __init__(self, available: bool = True, fail_start: bool = False) -> None:
        self.available = available
        self.fail_start = fail_start
        self.starts = 0
        self.stops = 0
        self.on_result = self.on_end = self.on_error = None

    def is_available(self) -> bool:
        return self.available

    def start(self, on_result, on_end, on_error) -> None:
        if self.fail_start:
            raise RuntimeError("microphone busy")
        self.starts += 1
        self.on_result, self.on_end, self.on_error = on_result, on_end, on_error

    def stop(self) -> None:
        self.stops += 1


def test_unsupported_without_recognizer() -> None:
    for capture in (SpeechInputCapture(None), SpeechInputCapture(FakeRecognizer(available=False))):
        assert capture.state is CaptureState.UNSUPPORTED
        assert capture.supported is False
        assert capture.start_listening() is False
        assert capture.toggle_listening() is False


def test_final_results_are_joined() -> None:
    recognizer = FakeRecognizer()
    capture = SpeechInputCapture(recognizer)
    transcripts: list[str] = []
    capture.on_transcript_change(transcripts.append)

    assert capture.start_listening() is True
    recognizer.on_result(RecognitionResult(text="book an", final=False))
    recognizer.on_result(RecognitionResult(text="book an", final=True))
    recognizer.on_result(RecognitionResult(text="  ", final=True))
    recognizer.on_result(RecognitionResult(text="appointment", final=True))

    assert capture.transcript == "book an appointment"
    assert transcripts == ["book an", "book an appointment"]


def test_state_transitions() -> None:
    recognizer = FakeRecognizer()
    capture = SpeechInputCapture(recognizer)
    states: list[CaptureState] = []
    capture.on_state_change(states.append)

    assert capture.start_listening() is True
    assert capture.start_listening() is False
    assert capture.stop_listening() is True
    assert capture.stop_listening() is False

    assert states == [CaptureState.LISTENING, CaptureState.IDLE]
    assert (recognizer.starts, recognizer.stops) == (1, 1)


def test_late_final_result_is_kept_after_stop() -> None:
    recognizer = FakeRecognizer()
    capture = SpeechInputCapture(recognizer)
    capture.start_listening()
    capture.stop_listening()

    recognizer.on_result(RecognitionResult(text="tomorrow", final=True))

    assert capture.transcript == "tomorrow"


def test_recognizer_end_and_error_return_to_idle() -> None:
    recognizer = FakeRecognizer()
    capture = SpeechInputCapture(recognizer)

    capture.start_listening()
    recognizer.on_end()
    assert capture.state is CaptureState.IDLE

    capture.start_listening()
    recognizer.on_error(RuntimeError("no-speech"))
    assert capture.state is CaptureState.IDLE


def test_failed_start_stays_idle() -> None:
    capture = SpeechInputCapture(FakeRecognizer(fail_start=True))
    assert capture.start_listening() is False
    assert capture.state is CaptureState.IDLE


def test_reset_transcript() -> None:
    recognizer = FakeRecognizer()
    capture = SpeechInputCapture(recognizer)
    transcripts: list[str] = []
    capture.on_transcript_change(transcripts.append)

    capture.reset_transcript()
    capture.start_listening()
    recognizer.on_result(RecognitionResult(text="hello", final=True))
    capture.reset_transcript()

    assert capture.transcript == ""
    assert transcripts == ["hello", ""]


# ---------------------------------------------------------------------- #
# Segment transcription
# ---------------------------------------------------------------------- #
class FakeEngine:
    """Transcribes known segments; ``b"slow"`` blocks until released."""

    def __init__(self, texts: dict[bytes, str]) -> None:
        self.texts = texts
        self.entered = threading.Event()
        self.release = threading.Event()

    def transcribe(self, pcm: bytes) -> str:
        if pcm == b"slow":
            self.entered.set()
            self.release.wait(timeout=5)
        if pcm == b"broken":
            raise RuntimeError("decoder failed")
        return self.texts.get(pcm, "")


class FakeMicrophone:
    def __init__(self) -> None:
        self.consumer = None
        self.running = False

    def bind(self, consumer) -> None:
        self.consumer = consumer

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def emit(self, segment: bytes) -> None:
        self.consumer(segment)


async def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


def _whisper(texts: dict[bytes, str]) -> tuple[SpeechInputCapture, WhisperRecognizer, FakeEngine, FakeMicrophone]:
    engine = FakeEngine(texts)
    microphone = FakeMicrophone()
    recognizer = WhisperRecognizer(engine, microphone)
    return SpeechInputCapture(recognizer), recognizer, engine, microphone


@pytest.mark.asyncio
async def test_segments_become_final_results() -> None:
    capture, recognizer, _, microphone = _whisper({b"one": "book an", b"two": "appointment"})

    assert capture.start_listening() is True
    assert microphone.running is True
    microphone.emit(b"one")
    microphone.emit(b"silence")
    microphone.emit(b"two")
    await _wait_for(lambda: capture.transcript == "book an appointment")

    assert capture.stop_listening() is True
    assert microphone.running is False
    recognizer.close()


@pytest.mark.asyncio
async def test_transcription_error_returns_to_idle() -> None:
    capture, recognizer, _, microphone = _whisper({})

    capture.start_listening()
    microphone.emit(b"broken")
    await _wait_for(lambda: capture.state is CaptureState.IDLE)

    assert capture.transcript == ""
    recognizer.close()


@pytest.mark.asyncio
async def test_restart_ignores_callbacks_from_previous_session() -> None:
    capture, recognizer, engine, microphone = _whisper({b"slow": "old words", b"fast": "new words"})

    capture.start_listening()
    microphone.emit(b"slow")
    await _wait_for(engine.entered.is_set)
    capture.stop_listening()
    assert capture.start_listening() is True

    engine.release.set()
    microphone.emit(b"fast")
    await _wait_for(lambda: capture.transcript != "")

    assert capture.transcript == "new words"
    assert capture.state is CaptureState.LISTENING
    assert microphone.running is True
    assert capture.stop_listening() is True
    recognizer.close()


@pytest.mark.asyncio
async def test_result_after_stop_is_kept_without_restart() -> None:
    capture, recognizer, engine, microphone = _whisper({b"slow": "late words"})

    capture.start_listening()
    microphone.emit(b"slow")
    await _wait_for(engine.entered.is_set)
    capture.stop_listening()
    engine.release.set()
    await _wait_for(lambda: capture.transcript != "")

    assert capture.transcript == "late words"
    assert capture.state is CaptureState.IDLE
    recognizer.close()
