"""Conversation state for one chat client."""
from __future__ import annotations

import threading
from typing import Any, Iterable

from .chat_relay import ChatRelay, RelayError
from .navigation import InterpretedReply, interpret_reply
from .observability import get_logger

logger = get_logger(__name__)

GREETING = (
    "Hello! I'm your technical interview assistant. Ask me anything about coding, algorithms, "
    "system design, or any tech interview topic! You can also ask me to show you practice "
    "categories or navigate to a specific category."
)
ERROR_PLACEHOLDER = (
    "Sorry, I encountered an error. Please try again or check if the GROQ_API_KEY is configured."
)


class ChatBusyError(RuntimeError):
    """A reply is still pending for this session."""


class ChatSession:
    """
    Append-only transcript plus the relay round-trip for each user turn.

    Only one send may be outstanding at a time. A failed relay call keeps the
    user's turn and appends an error placeholder in place of the reply.
    """

    def __init__(self, relay: ChatRelay, categories: Iterable[Any] | None = None):
        self.relay = relay
        self.categories = list(categories or [])
        self.messages: list[dict[str, str]] = [{"role": "assistant", "content": GREETING}]
        self._busy = threading.Lock()

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    def update_categories(self, categories: Iterable[Any]):
        self.categories = list(categories)

    def send(self, text: str) -> InterpretedReply | None:
        content = str(text or "").strip()
        if not content:
            return None
        if not self._busy.acquire(blocking=False):
            raise ChatBusyError("Wait for the assistant to reply before sending another message.")
        try:
            self.messages.append({"role": "user", "content": content})
            try:
                raw = self.relay.relay([dict(m) for m in self.messages], self.categories)
            except RelayError as exc:
                logger.warning("chat_session_reply_failed", error=str(exc), status=exc.status_code)
                self.messages.append({"role": "assistant", "content": ERROR_PLACEHOLDER})
                return InterpretedReply(display_text=ERROR_PLACEHOLDER)
            reply = interpret_reply(raw)
            self.messages.append({"role": "assistant", "content": reply.display_text})
            return reply
        finally:
            self._busy.release()
