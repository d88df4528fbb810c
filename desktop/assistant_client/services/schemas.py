"""Data schemas exchanged with the MedAssist backend."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional


Role = Literal["user", "assistant", "system"]
Gender = Literal["male", "female"]


class ServiceType(str, Enum):
    """Kind of service embedded in an assistant reply."""

    APPOINTMENT = "appointment"
    SEARCH = "search"
    VIDEO = "video"
    NONE = "none"


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class EmbeddedService:
    """Structured payload attached to one assistant message."""

    type: ServiceType
    data: dict[str, Any] = field(default_factory=dict)
    query: Optional[str] = None
    id: str = field(default_factory=new_id)

    @classmethod
    def from_payload(cls, payload: Any) -> "EmbeddedService | None":
        """Build from the ``service`` field of a chat reply; ``None`` when absent."""
        if not isinstance(payload, dict):
            return None
        raw_type = payload.get("type") or ServiceType.NONE
        try:
            service_type = ServiceType(raw_type)
        except ValueError:
            service_type = ServiceType.NONE
        if service_type is ServiceType.NONE:
            return None
        data = payload.get("data")
        return cls(
            type=service_type,
            data=dict(data) if isinstance(data, dict) else {},
            query=payload.get("query") or None,
        )


@dataclass(slots=True, frozen=True)
class ChatMessage:
    """Conversation message."""

    role: Role
    content: str
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utc_now)
    service: Optional[EmbeddedService] = None

    def to_history(self) -> dict[str, str]:
        """Shape sent back to the server as conversation history."""
        return {"role": self.role, "content": self.content}


@dataclass(slots=True, frozen=True)
class VoicePreference:
    """How replies should sound; shared by both speech backends."""

    gender: Gender = "female"
    accent: str = "Indian"
    voice_id: Optional[str] = None
    variation: bool = True
    stability: float = 0.5
    similarity_boost: float = 0.75
    style: float = 0.5
    use_speaker_boost: bool = True


@dataclass(slots=True, frozen=True)
class Utterance:
    """One request to a local speech synthesizer."""

    text: str
    voice_id: Optional[str] = None
    pitch: float = 1.0
    rate: float = 1.0
    volume: float = 1.0


@dataclass(slots=True, frozen=True)
class RecognitionResult:
    """Transcription event produced by a speech recognizer."""

    text: str
    final: bool = False
    confidence: Optional[float] = None
