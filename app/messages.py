"""Auto-expiring user-facing message shown in the page's message region."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Literal

MESSAGE_TTL_SECONDS = 5.0

Severity = Literal["info", "success", "warning", "error"]


@dataclass(frozen=True)
class Message:
    text: str
    severity: Severity = "info"

    def as_dict(self) -> dict:
        return {"text": self.text, "severity": self.severity}


class TransientMessage:
    """Holds at most one message and clears it after a fixed delay.

    Showing a new message replaces the current one and cancels its pending clear.
    """

    def __init__(self, ttl: float = MESSAGE_TTL_SECONDS) -> None:
        self.ttl = ttl
        self._current: Message | None = None
        self._expiry: asyncio.TimerHandle | None = None

    @property
    def current(self) -> Message | None:
        return self._current

    def show(self, text: str, severity: Severity = "info") -> Message:
        """Display a message and schedule its removal on the running loop."""
        self._cancel_expiry()
        self._current = Message(text, severity)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (plain sync caller): the message stays until replaced or cleared.
            return self._current
        self._expiry = loop.call_later(self.ttl, self._expire)
        return self._current

    def clear(self) -> None:
        """Remove the message now and drop its pending expiry."""
        self._cancel_expiry()
        self._current = None

    def _expire(self) -> None:
        self._expiry = None
        self._current = None

    def _cancel_expiry(self) -> None:
        if self._expiry is not None:
            self._expiry.cancel()
            self._expiry = None
