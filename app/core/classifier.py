"""Heuristic intent detection and parameter extraction for chat messages.

Matching is English-only and keyword based. When a message carries several
intents ("book a video about diabetes") the fixed priority order
appointment > search > video decides.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Optional


class ServiceType(str, Enum):
    APPOINTMENT = "appointment"
    SEARCH = "search"
    VIDEO = "video"
    NONE = "none"


# Tested in order, first hit wins.
_INTENT_KEYWORDS: tuple[tuple[ServiceType, tuple[str, ...]], ...] = (
    (ServiceType.APPOINTMENT, ("appointment", "schedule", "book")),
    (ServiceType.SEARCH, ("search", "find information", "look up")),
    (ServiceType.VIDEO, ("video", "youtube", "watch")),
)

_LEAD_IN_PHRASES = (
    "search for",
    "find information about",
    "look up",
    "tell me about",
    "information on",
    "video about",
    "play a video on",
    "show me",
)

_STOP_WORDS = {
    "what",
    "where",
    "when",
    "how",
    "why",
    "can",
    "could",
    "would",
    "should",
    "is",
    "are",
    "was",
    "were",
    "you",
    "i",
    "me",
    "my",
    "mine",
    "help",
}

_TRAILING_PUNCTUATION = "?!.,;: "

_MONTHS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_TODAY_RE = re.compile(r"\btoday\b", re.IGNORECASE)
_TOMORROW_RE = re.compile(r"\btomorrow\b", re.IGNORECASE)
_MONTH_DAY_RE = re.compile(r"\b(" + "|".join(_MONTHS) + r")\s+(\d{1,2})(?:st|nd|rd|th)?\b", re.IGNORECASE)
_WEEKDAY_RE = re.compile(r"\b(" + "|".join(_WEEKDAYS) + r")\b", re.IGNORECASE)

_TIME_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE)
_AT_HOUR_RE = re.compile(r"(?:\bat|@)\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b", re.IGNORECASE)

_CATEGORY_PATTERNS = [
    (re.compile(pattern, re.IGNORECASE), label)
    for pattern, label in [
        (r"\b(general|check[-\s]?up|physical|routine|annual)\b", "General Check-up"),
        (r"\b(specialist|consult|consultation|refer|referral)\b", "Specialist Consultation"),
        (r"\b(follow[-\s]?up|checking|monitoring)\b", "Follow-up"),
        (r"\b(vaccine|vaccination|shot|immunization|booster|flu)\b", "Vaccination"),
    ]
]


@dataclass(frozen=True)
class AppointmentDetails:
    """Appointment parameters found in a single message; every part is optional."""

    date: Optional[str] = None
    time: Optional[str] = None
    type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def is_empty(self) -> bool:
        return self.date is None and self.time is None and self.type is None


def classify_intent(message: str) -> ServiceType:
    lowered = (message or "").lower()
    for service_type, keywords in _INTENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return service_type
    return ServiceType.NONE


def extract_query(message: str) -> str:
    """Pull the subject of a search or video request out of a message.

    The text following the first known lead-in phrase ("tell me about ...")
    is used as is. Without one, question words and pronouns are dropped and
    the remaining words kept. The result can be empty.
    """
    text = (message or "").strip()
    lowered = text.lower()
    # str.lower() can change the length of some non-ASCII text; slice the
    # lowered copy in that case so offsets stay valid.
    source = text if len(lowered) == len(text) else lowered
    for phrase in _LEAD_IN_PHRASES:
        index = lowered.find(phrase)
        if index != -1:
            return source[index + len(phrase):].strip().rstrip(_TRAILING_PUNCTUATION).strip()

    kept = [
        token
        for token in text.split()
        if token.lower().strip(_TRAILING_PUNCTUATION) not in _STOP_WORDS
    ]
    return " ".join(kept).strip().rstrip(_TRAILING_PUNCTUATION).strip()


def _extract_date(message: str, today: date) -> Optional[str]:
    if _TODAY_RE.search(message):
        return today.isoformat()
    if _TOMORROW_RE.search(message):
        return (today + timedelta(days=1)).isoformat()

    match = _MONTH_DAY_RE.search(message)
    if match:
        month = _MONTHS.index(match.group(1).lower()) + 1
        day = int(match.group(2))
        try:
            candidate = date(today.year, month, day)
        except ValueError:
            return None
        if candidate < today:
            try:
                candidate = candidate.replace(year=today.year + 1)
            except ValueError:  # Feb 29 rolled into a non-leap year
                return None
        return candidate.isoformat()

    match = _WEEKDAY_RE.search(message)
    if match:
        target = _WEEKDAYS.index(match.group(1).lower())
        days_ahead = (target - today.weekday()) % 7 or 7
        return (today + timedelta(days=days_ahead)).isoformat()
    return None


def _format_time(hour: int, minute: str, meridiem: str) -> str:
    return f"{hour % 12 or 12}:{minute} {meridiem.upper()}"


def _extract_time(message: str) -> Optional[str]:
    match = _TIME_RE.search(message)
    if match:
        hour = int(match.group(1))
        minute = match.group(2) or "00"
        if hour > 23 or int(minute) > 59:
            return None
        meridiem = match.group(3).lower()
        # "15pm" is read as 3 PM, "13am" has no sensible reading.
        if hour > 12 and meridiem == "am":
            return None
        return _format_time(hour, minute, meridiem)

    match = _AT_HOUR_RE.search(message)
    if match:
        hour = int(match.group(1))
        minute = match.group(2) or "00"
        if hour > 23 or int(minute) > 59:
            return None
        meridiem = (match.group(3) or ("am" if hour < 12 else "pm")).lower()
        return _format_time(hour, minute, meridiem)
    return None


def _extract_category(message: str) -> Optional[str]:
    for pattern, label in _CATEGORY_PATTERNS:
        if pattern.search(message):
            return label
    return None


def extract_appointment_details(message: str, *, today: date | None = None) -> AppointmentDetails:
    text = message or ""
    reference = today or date.today()
    return AppointmentDetails(
        date=_extract_date(text, reference),
        time=_extract_time(text),
        type=_extract_category(text),
    )
