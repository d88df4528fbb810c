"""Spoken output for assistant replies.

Two backends share one playback contract: a single utterance at a time,
``speak`` preempting whatever is playing, and synchronous speaking-state
notifications to subscribers in registration order.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable, Iterable, Protocol, Sequence

import httpx

from ..errors import SpeechProviderError, UnsupportedCapabilityError
from ..services.schemas import Utterance, VoicePreference
from ..state.preferences import VoicePreferenceStore
from .voices import (
    ACCENT_LOCALES,
    PROSODY_PROFILES,
    VoiceInfo,
    infer_accent,
    infer_gender,
    is_known_good_voice,
    jitter,
    voice_matches_accent,
    voice_matches_gender,
)

LOGGER = logging.getLogger(__name__)

SpeakingCallback = Callable[[bool], None]

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1"
DEFAULT_REMOTE_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"  # Rachel
REMOTE_MODEL_ID = "eleven_multilingual_v2"
REMOTE_SAMPLE_RATE = 22_050
REMOTE_VARIATION = 0.05


class SpeechSynthesizer(Protocol):
    """Platform speech synthesis (see ``audio.tts``)."""

    async def get_voices(self) -> Sequence[VoiceInfo]: ...

    async def speak(self, utterance: Utterance) -> None: ...

    def cancel(self) -> None: ...


class AudioSink(Protocol):
    """PCM output device (see ``audio.playback``)."""

    async def play(self, pcm: bytes, sample_rate: int) -> None: ...

    def stop(self) -> None: ...


class SpeakingNotifier:
    """Observer registry for the speaking state."""

    def __init__(self) -> None:
        self._callbacks: list[SpeakingCallback] = []
        self._speaking = False

    @property
    def speaking(self) -> bool:
        return self._speaking

    def subscribe(self, callback: SpeakingCallback) -> None:
        self._callbacks.append(callback)
        callback(self._speaking)

    def unsubscribe(self, callback: SpeakingCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def notify(self, speaking: bool) -> None:
        self._speaking = speaking
        for callback in list(self._callbacks):
            try:
                callback(speaking)
            except Exception:
                LOGGER.exception("Speaking callback failed")


class _Playback:
    """Bookkeeping for one ``speak`` call."""

    __slots__ = ("cancelled", "failed", "finished", "started", "task")

    def __init__(self) -> None:
        self.cancelled = False
        self.failed = False
        self.started = False
        self.finished = asyncio.Event()
        self.task: asyncio.Task[None] | None = None


class VoiceOutputEngine:
    """Base class handling exclusivity and notifications; subclasses synthesize."""

    def __init__(self, preferences: VoicePreferenceStore, *, rng: random.Random | None = None) -> None:
        self.preferences = preferences
        self._notifier = SpeakingNotifier()
        self._rng = rng or random.Random()
        self._current: _Playback | None = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def speak(self, text: str, voice_override: str | None = None) -> None:
        """Speak ``text``, first stopping and awaiting any utterance in progress.

        Always returns, whether playback ends, fails or is preempted.
        """
        handle = _Playback()
        previous, self._current = self._current, handle
        try:
            if previous is not None:
                self._halt(previous)
                if self._notifier.speaking:
                    self._notifier.notify(False)
                await previous.finished.wait()
            if handle.cancelled or not (text or "").strip():
                return
            handle.task = asyncio.ensure_future(
                self._play(text, voice_override, lambda: self._on_started(handle))
            )
            try:
                await handle.task
            except asyncio.CancelledError:
                if not handle.cancelled:
                    self._halt(handle)
                    raise
            except Exception as exc:
                handle.failed = True
                LOGGER.warning("Speech output failed: %s", exc)
        finally:
            handle.finished.set()
            if self._current is handle:
                self._current = None
                if self._notifier.speaking or handle.failed:
                    self._notifier.notify(False)

    def stop(self) -> None:
        """Cancel any active utterance; safe to call at any time."""
        if self._current is not None:
            self._halt(self._current)
        self._notifier.notify(False)

    async def toggle_speech(self, text: str) -> None:
        if self.is_speaking():
            self.stop()
            return
        await self.speak(text)

    def is_speaking(self) -> bool:
        return self._notifier.speaking

    def on_speaking_change(self, callback: SpeakingCallback) -> None:
        """Subscribe; ``callback`` is called right away with the current state."""
        self._notifier.subscribe(callback)

    def remove_speaking_callback(self, callback: SpeakingCallback) -> None:
        self._notifier.unsubscribe(callback)

    async def get_voices(self) -> list[VoiceInfo]:
        raise NotImplementedError

    # ------------------------------------------------------------------ #
    # Subclass hooks
    # ------------------------------------------------------------------ #
    async def _play(self, text: str, voice_override: str | None, started: Callable[[], None]) -> None:
        """Synthesize and play; call ``started`` when audio begins."""
        raise NotImplementedError

    def _cancel_output(self) -> None:
        """Silence the output device or synthesizer."""

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _on_started(self, handle: _Playback) -> None:
        if handle.cancelled or self._current is not handle:
            return
        handle.started = True
        self._notifier.notify(True)

    def _halt(self, handle: _Playback) -> None:
        if handle.cancelled:
            return
        handle.cancelled = True
        if handle.task is not None and not handle.task.done():
            handle.task.cancel()
        if handle.started:
            self._cancel_output()


class LocalVoiceEngine(VoiceOutputEngine):
    """Speech through the platform synthesizer; a no-op when there is none."""

    def __init__(
        self,
        preferences: VoicePreferenceStore,
        synthesizer: SpeechSynthesizer | None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(preferences, rng=rng)
        self._synthesizer = synthesizer
        self._voices: list[VoiceInfo] = []

    @property
    def supported(self) -> bool:
        return self._synthesizer is not None

    async def get_voices(self) -> list[VoiceInfo]:
        if self._synthesizer is None:
            return []
        if not self._voices:
            self._voices = list(await self._synthesizer.get_voices())
            LOGGER.info("Available voices: %s", [f"{v.name} ({v.locale})" for v in self._voices])
        return list(self._voices)

    @staticmethod
    def score_voice(voice: VoiceInfo, preference: VoicePreference) -> int:
        gender, accent = preference.gender, preference.accent
        matches_gender = voice_matches_gender(voice, gender)
        score = 0
        if matches_gender and voice_matches_accent(voice, accent):
            score += 150
        if is_known_good_voice(voice, gender, accent):
            score += 100
        if matches_gender:
            score += 50
        if voice.locale and voice.locale in ACCENT_LOCALES.get(accent, ()):
            score += 30
        if voice.locale in ("en-US", "en-GB"):
            score += 10
        if "Google" in voice.name:
            score += 5
        return score

    def select_voice(self, voices: Sequence[VoiceInfo], preference: VoicePreference) -> VoiceInfo | None:
        """Highest-scoring voice; the first in catalog order wins ties."""
        best: VoiceInfo | None = None
        best_score = -1
        for voice in voices:
            score = self.score_voice(voice, preference)
            if score > best_score:
                best, best_score = voice, score
        return best

    def prosody(self, text: str, voice: VoiceInfo | None, preference: VoicePreference) -> tuple[float, float]:
        """Return ``(pitch, rate)`` for ``text``."""
        base_pitch = base_rate = 1.0
        profile = PROSODY_PROFILES.get(preference.accent)
        if profile is not None and not (voice is not None and voice_matches_accent(voice, preference.accent)):
            base_pitch, base_rate = profile
        if not preference.variation:
            return base_pitch, base_rate
        # Longer text gets more variety.
        amount = min(0.15, 0.05 + len(text.split()) / 200)
        return (
            jitter(base_pitch, amount, 0.8, 1.2, self._rng),
            jitter(base_rate, amount, 0.8, 1.2, self._rng),
        )

    async def _play(self, text: str, voice_override: str | None, started: Callable[[], None]) -> None:
        if self._synthesizer is None:
            return
        voices = await self.get_voices()
        preference = self.preferences.get()
        voice = next((v for v in voices if voice_override and v.identifier == voice_override), None)
        if voice is None:
            voice = self.select_voice(voices, preference)
        pitch, rate = self.prosody(text, voice, preference)
        LOGGER.debug("Using voice: %s", voice.name if voice else "default")
        utterance = Utterance(
            text=text,
            voice_id=voice.identifier if voice else None,
            pitch=pitch,
            rate=rate,
        )
        started()
        await self._synthesizer.speak(utterance)

    def _cancel_output(self) -> None:
        if self._synthesizer is not None:
            self._synthesizer.cancel()


def _parse_remote_voices(items: Iterable[Any]) -> list[VoiceInfo]:
    voices: list[VoiceInfo] = []
    for item in items:
        if not isinstance(item, dict) or not item.get("voice_id"):
            continue
        name = str(item.get("name") or item["voice_id"])
        labels = item.get("labels") if isinstance(item.get("labels"), dict) else {}
        description = item.get("description")
        voices.append(
            VoiceInfo(
                identifier=str(item["voice_id"]),
                name=name,
                gender=infer_gender(name, labels),
                accent=infer_accent(name, description, labels),
                category=item.get("category"),
                description=description,
            )
        )
    return voices


class RemoteVoiceEngine(VoiceOutputEngine):
    """ElevenLabs text-to-speech played through a local ``AudioSink``.

    Failures are reported as a not-speaking notification; there is no
    fallback to local synthesis so two voices never overlap.
    """

    def __init__(
        self,
        preferences: VoicePreferenceStore,
        api_key: str | None,
        sink: AudioSink | None,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = ELEVENLABS_API_URL,
        timeout: float = 30.0,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(preferences, rng=rng)
        self.api_key = api_key
        self._sink = sink
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(timeout))
        self._voices: list[VoiceInfo] = []

    async def load_voices(self) -> list[VoiceInfo]:
        """Fetch the provider catalog; cached once it is non-empty."""
        if self._voices:
            return list(self._voices)
        if not self.api_key:
            raise UnsupportedCapabilityError("ELEVENLABS_API_KEY is not configured")
        response = await self._client.get(
            "/voices",
            headers={"Accept": "application/json", "xi-api-key": self.api_key},
        )
        if response.status_code >= 400:
            raise SpeechProviderError(f"Failed to fetch voices: {response.status_code} {response.reason_phrase}")
        self._voices = _parse_remote_voices(response.json().get("voices") or [])
        LOGGER.info("Loaded %d remote voices", len(self._voices))
        return list(self._voices)

    async def get_voices(self) -> list[VoiceInfo]:
        try:
            return await self.load_voices()
        except (httpx.HTTPError, SpeechProviderError, UnsupportedCapabilityError, ValueError) as exc:
            LOGGER.warning("Unable to load remote voices: %s", exc)
            return []

    @staticmethod
    def score_voice(voice: VoiceInfo, preference: VoicePreference) -> int:
        score = 0
        if voice.gender == preference.gender:
            score += 100
        if voice.accent == preference.accent:
            score += 100
        elif voice.description and preference.accent.lower() in voice.description.lower():
            score += 50
        if voice.category == "premium":
            score += 10
        return score

    def select_voice_id(self, voices: Sequence[VoiceInfo], preference: VoicePreference) -> str:
        if preference.voice_id:
            return preference.voice_id
        best: VoiceInfo | None = None
        best_score = -1
        for voice in voices:
            score = self.score_voice(voice, preference)
            if score > best_score:
                best, best_score = voice, score
        return best.identifier if best is not None else DEFAULT_REMOTE_VOICE_ID

    def voice_settings(self, preference: VoicePreference) -> dict[str, Any]:
        stability = preference.stability
        similarity = preference.similarity_boost
        if preference.variation:
            stability = jitter(stability, REMOTE_VARIATION, 0.0, 1.0, self._rng)
            similarity = jitter(similarity, REMOTE_VARIATION, 0.0, 1.0, self._rng)
        return {
            "stability": stability,
            "similarity_boost": similarity,
            "style": preference.style,
            "use_speaker_boost": preference.use_speaker_boost,
        }

    async def synthesize(self, text: str, voice_id: str, voice_settings: dict[str, Any]) -> bytes:
        """Return 16-bit mono PCM at ``REMOTE_SAMPLE_RATE``."""
        if not self.api_key:
            raise UnsupportedCapabilityError("ELEVENLABS_API_KEY is not configured")
        response = await self._client.post(
            f"/text-to-speech/{voice_id}",
            params={"output_format": f"pcm_{REMOTE_SAMPLE_RATE}"},
            headers={"xi-api-key": self.api_key, "Content-Type": "application/json"},
            json={"text": text, "model_id": REMOTE_MODEL_ID, "voice_settings": voice_settings},
        )
        if response.status_code >= 400:
            raise SpeechProviderError(f"ElevenLabs API error: {response.status_code} {response.reason_phrase}")
        return response.content

    async def _play(self, text: str, voice_override: str | None, started: Callable[[], None]) -> None:
        preference = self.preferences.get()
        if voice_override:
            voice_id = voice_override
        elif preference.voice_id:
            voice_id = preference.voice_id
        else:
            voice_id = self.select_voice_id(await self.get_voices(), preference)
        pcm = await self.synthesize(text, voice_id, self.voice_settings(preference))
        if self._sink is None:
            raise UnsupportedCapabilityError("No audio output device")
        if not pcm:
            return
        started()
        await self._sink.play(pcm, REMOTE_SAMPLE_RATE)

    def _cancel_output(self) -> None:
        if self._sink is not None:
            self._sink.stop()

    async def aclose(self) -> None:
        await self._client.aclose()
