import asyncio
import json
import random
from typing import Callable

import httpx
import pytest

from desktop.assistant_client.audio.voice_engine import (
    DEFAULT_REMOTE_VOICE_ID,
    LocalVoiceEngine,
    RemoteVoiceEngine,
)
from desktop.assistant_client.audio.voices import VoiceInfo
from desktop.assistant_client.errors import UnsupportedCapabilityError
from desktop.assistant_client.services.schemas import Utterance, VoicePreference
from desktop.assistant_client.state.preferences import VoicePreferenceStore

HEERA = VoiceInfo("heera", "Microsoft Heera - English (India)", locale="en-IN")
ZIRA = VoiceInfo("zira", "Microsoft Zira - English (United States)", locale="en-US")
DAVID = VoiceInfo("david", "Microsoft David - English (United States)", locale="en-US")
GOOGLE_HINDI = VoiceInfo("google-hi", "Google Hindi", locale="hi-IN")


class FakeSynthesizer:
    def __init__(self, voices=()) -> None:
        self.voices = list(voices)
        self.spoken: list[Utterance] = []
        self.cancelled = 0
        self.active = 0
        self.max_active = 0
        self.catalog_calls = 0
        self.release = asyncio.Event()

    async def get_voices(self):
        self.catalog_calls += 1
        return self.voices

    async def speak(self, utterance: Utterance) -> None:
        self.spoken.append(utterance)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.release.wait()
        finally:
            self.active -= 1

    def cancel(self) -> None:
        self.cancelled += 1


class FakeSink:
    def __init__(self) -> None:
        self.played: list[tuple[bytes, int]] = []
        self.stopped = 0

    async def play(self, pcm: bytes, sample_rate: int) -> None:
        self.played.append((pcm, sample_rate))

    def stop(self) -> None:
        self.stopped += 1


async def _until(predicate: Callable[[], bool]) -> None:
    for _ in range(200):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _local(voices=(), **prefs) -> tuple[LocalVoiceEngine, FakeSynthesizer, list[bool]]:
    synth = FakeSynthesizer(voices)
    engine = LocalVoiceEngine(VoicePreferenceStore(VoicePreference(**prefs)), synth, rng=random.Random(7))
    states: list[bool] = []
    engine.on_speaking_change(states.append)
    return engine, synth, states


@pytest.mark.asyncio
async def test_subscriber_receives_current_state_immediately() -> None:
    _, _, states = _local()
    assert states == [False]


@pytest.mark.asyncio
async def test_speak_notifies_start_and_end() -> None:
    engine, synth, states = _local([HEERA])
    synth.release.set()

    await engine.speak("Hello there")

    assert states == [False, True, False]
    assert synth.spoken[0].text == "Hello there"
    assert synth.spoken[0].voice_id == "heera"
    assert engine.is_speaking() is False


@pytest.mark.asyncio
async def test_new_speak_preempts_current_utterance() -> None:
    engine, synth, states = _local([HEERA])

    first = asyncio.create_task(engine.speak("first reply"))
    await _until(lambda: states == [False, True])
    second = asyncio.create_task(engine.speak("second reply"))
    await _until(lambda: len(synth.spoken) == 2)
    synth.release.set()
    await asyncio.gather(first, second)

    assert states == [False, True, False, True, False]
    assert [u.text for u in synth.spoken] == ["first reply", "second reply"]
    assert synth.max_active == 1
    assert synth.cancelled == 1


@pytest.mark.asyncio
async def test_stop_is_idempotent() -> None:
    engine, synth, states = _local([HEERA])

    engine.stop()
    engine.stop()

    assert states == [False, False, False]
    assert synth.cancelled == 0


@pytest.mark.asyncio
async def test_stop_cancels_active_speech() -> None:
    engine, synth, states = _local([HEERA])

    task = asyncio.create_task(engine.speak("a long answer"))
    await _until(engine.is_speaking)
    engine.stop()
    await task

    assert states == [False, True, False]
    assert synth.cancelled == 1


@pytest.mark.asyncio
async def test_toggle_stops_when_speaking() -> None:
    engine, synth, states = _local([HEERA])

    task = asyncio.create_task(engine.toggle_speech("some text"))
    await _until(engine.is_speaking)
    await engine.toggle_speech("some text")
    await task

    assert states[-1] is False
    assert len(synth.spoken) == 1


@pytest.mark.asyncio
async def test_blank_text_is_not_spoken() -> None:
    engine, synth, states = _local([HEERA])
    await engine.speak("   ")
    assert synth.spoken == []
    assert states == [False]


@pytest.mark.asyncio
async def test_missing_synthesizer_is_a_silent_no_op() -> None:
    engine = LocalVoiceEngine(VoicePreferenceStore(), None)
    states: list[bool] = []
    engine.on_speaking_change(states.append)

    await engine.speak("hello")

    assert engine.supported is False
    assert await engine.get_voices() == []
    assert states == [False]


@pytest.mark.asyncio
async def test_voice_override_and_catalog_cache() -> None:
    engine, synth, _ = _local([HEERA, ZIRA])
    synth.release.set()

    await engine.speak("one", voice_override="zira")
    await engine.speak("two")

    assert [u.voice_id for u in synth.spoken] == ["zira", "heera"]
    assert synth.catalog_calls == 1


def test_known_indian_voice_wins_for_default_preference() -> None:
    engine = LocalVoiceEngine(VoicePreferenceStore(), None)
    choice = engine.select_voice([ZIRA, GOOGLE_HINDI, HEERA], VoicePreference())
    assert choice == HEERA


def test_gender_and_locale_match_beats_known_name() -> None:
    priya = VoiceInfo("priya", "Priya", gender="female", locale="en-IN")
    engine = LocalVoiceEngine(VoicePreferenceStore(), None)
    assert engine.select_voice([HEERA, priya], VoicePreference()) == priya


def test_male_american_preference() -> None:
    engine = LocalVoiceEngine(VoicePreferenceStore(), None)
    preference = VoicePreference(gender="male", accent="American")
    assert engine.select_voice([ZIRA, DAVID], preference) == DAVID


def test_ties_keep_catalog_order() -> None:
    a = VoiceInfo("a", "Voice A", locale="fr-FR")
    b = VoiceInfo("b", "Voice B", locale="fr-FR")
    engine = LocalVoiceEngine(VoicePreferenceStore(), None)
    assert engine.select_voice([a, b], VoicePreference()) == a
    assert engine.select_voice([], VoicePreference()) is None


def test_prosody_profile_applies_when_accent_is_missing() -> None:
    engine = LocalVoiceEngine(VoicePreferenceStore(), None)
    preference = VoicePreference(variation=False)

    assert engine.prosody("hi", ZIRA, preference) == (1.1, 0.9)
    assert engine.prosody("hi", HEERA, preference) == (1.0, 1.0)
    assert engine.prosody("hi", ZIRA, VoicePreference(accent="British", variation=False)) == (1.0, 1.0)


def test_prosody_variation_stays_in_range() -> None:
    engine = LocalVoiceEngine(VoicePreferenceStore(), None, rng=random.Random(3))
    text = "word " * 100
    for _ in range(50):
        pitch, rate = engine.prosody(text, ZIRA, VoicePreference())
        assert 0.95 <= pitch <= 1.2
        assert 0.8 <= rate <= 1.05


# ---------------------------------------------------------------------- #
# Remote synthesis
# ---------------------------------------------------------------------- #
REMOTE_CATALOG = {
    "voices": [
        {"voice_id": "rachel", "name": "Rachel", "labels": {"gender": "female", "accent": "american"}},
        {"voice_id": "priya", "name": "Priya", "labels": {"gender": "female", "accent": "indian"}},
        {"voice_id": "arjun", "name": "Arjun", "labels": {"gender": "male", "accent": "indian"}},
    ]
}


class RemoteBackend:
    def __init__(self, catalog=REMOTE_CATALOG, tts_status: int = 200) -> None:
        self.catalog = catalog
        self.tts_status = tts_status
        self.voice_requests = 0
        self.tts_requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/voices"):
            self.voice_requests += 1
            return httpx.Response(200, json=self.catalog)
        self.tts_requests.append(request)
        if self.tts_status >= 400:
            return httpx.Response(self.tts_status, json={"detail": "quota exceeded"})
        return httpx.Response(200, content=b"\x01\x00" * 64)


def _remote(backend: RemoteBackend, **prefs) -> tuple[RemoteVoiceEngine, FakeSink, list[bool]]:
    client = httpx.AsyncClient(
        base_url="https://api.elevenlabs.io/v1",
        transport=httpx.MockTransport(backend),
    )
    sink = FakeSink()
    engine = RemoteVoiceEngine(
        VoicePreferenceStore(VoicePreference(**prefs)),
        "xi-key",
        sink,
        client=client,
        rng=random.Random(1),
    )
    states: list[bool] = []
    engine.on_speaking_change(states.append)
    return engine, sink, states


@pytest.mark.asyncio
async def test_remote_selects_matching_voice_and_plays_pcm() -> None:
    backend = RemoteBackend()
    engine, sink, states = _remote(backend, variation=False)

    await engine.speak("Your appointment is confirmed.")
    await engine.speak("Anything else?")
    await engine.aclose()

    assert backend.voice_requests == 1
    request = backend.tts_requests[0]
    assert request.url.path == "/v1/text-to-speech/priya"
    assert request.url.params["output_format"] == "pcm_22050"
    assert request.headers["xi-api-key"] == "xi-key"
    body = json.loads(request.content)
    assert body["model_id"] == "eleven_multilingual_v2"
    assert body["voice_settings"] == {
        "stability": 0.5,
        "similarity_boost": 0.75,
        "style": 0.5,
        "use_speaker_boost": True,
    }
    assert sink.played[0][1] == 22_050
    assert states == [False, True, False, True, False]


@pytest.mark.asyncio
async def test_remote_preference_voice_id_skips_catalog() -> None:
    backend = RemoteBackend()
    engine, _, _ = _remote(backend, voice_id="custom-voice")

    await engine.speak("hello")

    assert backend.voice_requests == 0
    assert backend.tts_requests[0].url.path == "/v1/text-to-speech/custom-voice"


@pytest.mark.asyncio
async def test_remote_falls_back_to_default_voice() -> None:
    backend = RemoteBackend(catalog={"voices": []})
    engine, _, _ = _remote(backend)

    await engine.speak("hello")

    assert backend.tts_requests[0].url.path == f"/v1/text-to-speech/{DEFAULT_REMOTE_VOICE_ID}"


@pytest.mark.asyncio
async def test_remote_error_reports_not_speaking() -> None:
    backend = RemoteBackend(tts_status=500)
    engine, sink, states = _remote(backend)

    await engine.speak("hello")

    assert states == [False, False]
    assert sink.played == []
    assert engine.is_speaking() is False


@pytest.mark.asyncio
async def test_remote_variation_stays_near_preference() -> None:
    engine, _, _ = _remote(RemoteBackend())
    for _ in range(20):
        settings = engine.voice_settings(VoicePreference())
        assert abs(settings["stability"] - 0.5) <= 0.051
        assert abs(settings["similarity_boost"] - 0.75) <= 0.051
        assert settings["style"] == 0.5


@pytest.mark.asyncio
async def test_remote_without_key_is_unsupported() -> None:
    backend = RemoteBackend()
    client = httpx.AsyncClient(base_url="https://api.elevenlabs.io/v1", transport=httpx.MockTransport(backend))
    engine = RemoteVoiceEngine(VoicePreferenceStore(), None, FakeSink(), client=client)

    with pytest.raises(UnsupportedCapabilityError):
        await engine.load_voices()
    assert await engine.get_voices() == []
    assert backend.voice_requests == 0
    await engine.aclose()
