"""Errors raised by the MedAssist desktop client."""

from __future__ import annotations


class UnsupportedCapabilityError(RuntimeError):
    """The platform lacks a capability (speech driver, audio device, recognizer)."""


class SpeechProviderError(RuntimeError):
    """The remote speech provider failed or answered with an error."""
