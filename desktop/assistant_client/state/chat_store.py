"""Conversation state for the client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol

import httpx

from ..services.schemas import ChatMessage, new_id

LOGGER = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hello! I'm your Medical Assistant. I can help with appointments, answer medical questions, "
    "access services, and more—all without leaving this chat. How can I help you today?"
)
SEND_FAILED_MESSAGE = "Failed to send message. Please try again."
QUICK_ACTION_TEXTS = ("Schedule appointment", "Check insurance", "Find a doctor", "Medical advice")

ChangeCallback = Callable[[], None]
ErrorCallback = Callable[[str], None]


class ChatBackend(Protocol):
    async def send_chat(self, message: str, history: Iterable[ChatMessage] = ()) -> ChatMessage: ...


@dataclass(slots=True, frozen=True)
class QuickAction:
    """Canned prompt offered next to the input field."""

    text: str
    id: str = field(default_factory=new_id)


class ChatStateStore:
    """Message history and loading flag, shared by the UI and the controller."""

    def __init__(self, backend: ChatBackend) -> None:
        self._backend = backend
        self._messages: list[ChatMessage] = [self._welcome()]
        self._loading = False
        self.quick_actions: tuple[QuickAction, ...] = tuple(QuickAction(text) for text in QUICK_ACTION_TEXTS)
        self._change_callbacks: list[ChangeCallback] = []
        self._error_callbacks: list[ErrorCallback] = []

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def is_loading(self) -> bool:
        return self._loading

    def on_change(self, callback: ChangeCallback) -> None:
        self._change_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callbacks.append(callback)

    async def send_message(self, content: str) -> ChatMessage | None:
        """Append ``content`` as a user message and fetch the reply.

        Blank input and sends made while a reply is pending are ignored.
        Returns the assistant message, or ``None`` when nothing was received.
        """
        if not content.strip() or self._loading:
            return None
        history = list(self._messages)
        self._messages.append(ChatMessage(role="user", content=content))
        self._loading = True
        self._notify_change()
        try:
            reply = await self._backend.send_chat(content, history)
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.error("Error sending message: %s", exc)
            self._notify_error(SEND_FAILED_MESSAGE)
            return None
        finally:
            self._loading = False
            self._notify_change()
        self._messages.append(reply)
        self._notify_change()
        return reply

    def clear_messages(self) -> None:
        self._messages = [self._welcome()]
        self._notify_change()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    @staticmethod
    def _welcome() -> ChatMessage:
        return ChatMessage(role="assistant", content=WELCOME_MESSAGE)

    def _notify_change(self) -> None:
        for callback in list(self._change_callbacks):
            callback()

    def _notify_error(self, message: str) -> None:
        for callback in list(self._error_callbacks):
            callback(message)
