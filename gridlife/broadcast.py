"""Process-wide registry of live observers."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

Subscriber = Callable[[bytes], None]


class BroadcastRegistry:
    """Thread-safe set of subscribers fed the encoded world after each tick.

    A subscriber that raises is dropped; `broadcast` never raises. The most
    recent payload is kept so new observers can be primed with it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        self._latest: bytes | None = None

    def add(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber not in self._subscribers:
                self._subscribers.append(subscriber)

    def remove(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    @property
    def latest(self) -> bytes | None:
        with self._lock:
            return self._latest

    def broadcast(self, payload: bytes) -> int:
        """Send to every subscriber, returning how many accepted the payload."""
        with self._lock:
            self._latest = payload
            subscribers = list(self._subscribers)
        delivered = 0
        for subscriber in subscribers:
            try:
                subscriber(payload)
            except Exception:
                logger.debug("Dropping unreachable subscriber", exc_info=True)
                self.remove(subscriber)
            else:
                delivered += 1
        return delivered

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
