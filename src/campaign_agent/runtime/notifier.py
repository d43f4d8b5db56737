"""Fire-and-forget narration channel for observers of a runtime."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ChatRole = Literal["user", "agent", "system"]


class ChatMessage(BaseModel):
    timestamp: datetime
    role: ChatRole
    content: str


Subscriber = Callable[[ChatMessage], None]


class Notifier:
    """Deliver messages to subscribers in emission order and keep a bounded history."""

    def __init__(self, *, history_size: int = 500) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        self._history: deque[ChatMessage] = deque(maxlen=history_size)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; the returned function removes it again."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def notify(self, role: ChatRole, content: str) -> ChatMessage:
        message = ChatMessage(timestamp=datetime.now(UTC), role=role, content=content)
        with self._lock:
            self._history.append(message)
            subscribers = list(self._subscribers)
        logger.info("chat role=%s content=%s", role, content)
        for callback in subscribers:
            try:
                callback(message)
            except Exception:  # noqa: BLE001
                logger.exception("chat event=subscriber_failed role=%s", role)
        return message

    def history(self, limit: int | None = None) -> list[ChatMessage]:
        with self._lock:
            items = list(self._history)
        if limit is not None:
            return items[-limit:] if limit > 0 else []
        return items
