"""Local configuration models for the assistant client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from ..services.schemas import VoicePreference


SpeechBackend = Literal["local", "remote"]


@dataclass(slots=True)
class ServerSettings:
    """Connection settings for the MedAssist backend."""

    base_url: str = "http://127.0.0.1:5000"
    verify_ssl: bool = True
    timeout_sec: float = 60.0


@dataclass(slots=True)
class VoiceSettings:
    """Spoken output settings."""

    backend: SpeechBackend = "local"
    auto_speak: bool = True
    elevenlabs_api_key: str | None = None


@dataclass(slots=True)
class AudioSettings:
    """Audio capture and recognition settings."""

    input_device: str | None = None
    output_device: str | None = None
    asr_model: str = "base.en"
    asr_device: str = "cpu"
    asr_compute_type: str = "int8"
    vad_aggressiveness: int = 2
    silence_ms: int = 600


@dataclass(slots=True)
class AppSettings:
    """Full set of settings for the assistant client."""

    server: ServerSettings = field(default_factory=ServerSettings)
    voice: VoiceSettings = field(default_factory=VoiceSettings)
    audio: AudioSettings = field(default_factory=AudioSettings)
    preference: VoicePreference = field(default_factory=VoicePreference)
