"""Voice catalog entries and the heuristics used to match them to a preference."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(slots=True, frozen=True)
class VoiceInfo:
    """One synthesizer voice, local or remote."""

    identifier: str
    name: str
    gender: str | None = None
    accent: str | None = None
    locale: str | None = None
    category: str | None = None
    description: str | None = None


ACCENT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Indian": ("indian", "india"),
    "British": ("british", "england", "uk", "london", "english accent"),
    "American": ("american", "us ", "usa", "united states"),
    "Australian": ("australian", "australia", "aussie"),
    "Irish": ("irish", "ireland"),
    "Scottish": ("scottish", "scotland"),
    "South African": ("south africa", "south african"),
    "Nigerian": ("nigerian", "nigeria"),
}

ACCENT_LOCALES: dict[str, tuple[str, ...]] = {
    "Indian": ("en-IN", "hi-IN"),
    "British": ("en-GB",),
    "American": ("en-US",),
    "Australian": ("en-AU",),
    "Irish": ("en-IE",),
    "South African": ("en-ZA",),
    "Nigerian": ("en-NG",),
}

_ACCENT_ALIASES = {
    "us": "American",
    "usa": "American",
    "american": "American",
    "united states": "American",
    "uk": "British",
    "british": "British",
    "england": "British",
    "india": "Indian",
    "indian": "Indian",
    "australia": "Australian",
    "australian": "Australian",
    "ireland": "Irish",
    "irish": "Irish",
}

# Platform voices known to sound right for a gender/accent pair.
KNOWN_GOOD_VOICES: dict[tuple[str, str], tuple[str, ...]] = {
    ("female", "Indian"): ("Microsoft Heera", "Kalpana", "Veena", "Tara", "Lekha"),
    ("male", "Indian"): ("Microsoft Ravi", "Rishi"),
    ("female", "British"): ("Microsoft Hazel", "Kate", "Serena"),
    ("male", "British"): ("Microsoft George", "Daniel"),
    ("female", "American"): ("Microsoft Zira", "Samantha"),
    ("male", "American"): ("Microsoft David", "Alex"),
    ("female", "Australian"): ("Karen",),
}

# (pitch, rate) bases for accents whose voices are often missing on a platform.
PROSODY_PROFILES: dict[str, tuple[float, float]] = {
    "Indian": (1.1, 0.9),
}

_FEMALE_NAME_HINTS = ("female", "woman", "girl", "actress")
_MALE_NAME_HINTS = ("male", "man", "boy", "actor")
_FEMALE_VOICE_NAMES = ("rachel", "domi", "bella", "elli", "anna", "freya", "grace", "matilda")
_MALE_VOICE_NAMES = ("adam", "antoni", "josh", "sam", "thomas", "charlie", "harry", "liam")

_FEMALE_RE = re.compile(r"\bfemale\b", re.IGNORECASE)
_MALE_RE = re.compile(r"\bmale\b", re.IGNORECASE)


def normalize_accent(accent: str) -> str:
    return _ACCENT_ALIASES.get(accent.strip().lower(), accent.strip())


def normalize_locale(value: str | None) -> str | None:
    """``en_us`` / ``EN-us`` -> ``en-US``."""
    if not value:
        return None
    parts = re.split(r"[-_]", value.strip())
    if len(parts) < 2 or not parts[0]:
        return parts[0].lower() or None
    return f"{parts[0].lower()}-{parts[1].upper()}"


def infer_gender(name: str, labels: Mapping[str, Any] | None = None) -> str:
    """Guess a remote voice's gender from its labels, then its name; female by default."""
    labels = labels or {}
    if labels.get("gender"):
        return "male" if str(labels["gender"]).lower() == "male" else "female"
    lowered = name.lower()
    # "female" contains "male", so the female hints are checked first.
    if any(hint in lowered for hint in _FEMALE_NAME_HINTS):
        return "female"
    if any(hint in lowered for hint in _MALE_NAME_HINTS):
        return "male"
    if any(known in lowered for known in _FEMALE_VOICE_NAMES):
        return "female"
    if any(known in lowered for known in _MALE_VOICE_NAMES):
        return "male"
    return "female"


def infer_accent(name: str, description: str | None = None, labels: Mapping[str, Any] | None = None) -> str:
    labels = labels or {}
    if labels.get("accent"):
        return normalize_accent(str(labels["accent"]))
    lowered_name = name.lower()
    lowered_description = (description or "").lower()
    for accent, keywords in ACCENT_KEYWORDS.items():
        for keyword in keywords:
            if keyword in lowered_description or keyword in lowered_name:
                return accent
    return "American"


def voice_matches_gender(voice: VoiceInfo, gender: str) -> bool:
    if voice.gender:
        return voice.gender == gender
    pattern = _FEMALE_RE if gender == "female" else _MALE_RE
    return bool(pattern.search(voice.name))


def voice_matches_accent(voice: VoiceInfo, accent: str) -> bool:
    """True when the voice's accent, locale or name carries ``accent``."""
    if voice.accent and voice.accent == accent:
        return True
    if voice.locale and voice.locale in ACCENT_LOCALES.get(accent, ()):
        return True
    lowered = voice.name.lower()
    return any(keyword in lowered for keyword in ACCENT_KEYWORDS.get(accent, ()))


def is_known_good_voice(voice: VoiceInfo, gender: str, accent: str) -> bool:
    return any(known in voice.name for known in KNOWN_GOOD_VOICES.get((gender, accent), ()))


def jitter(value: float, amount: float, low: float, high: float, rng: random.Random) -> float:
    """Perturb ``value`` uniformly by up to ``amount`` and clamp to ``[low, high]``."""
    return max(low, min(high, value + rng.uniform(-amount, amount)))
