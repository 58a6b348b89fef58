"""Replay protection for webhook message ids.

Meta retries webhook deliveries, so the same message id can arrive more than
once. The dispatcher consults a MessageDeduplicator before running the
onboarding dialogue.

The in-memory implementation is best effort: its window lives in one process
and is lost on restart. Deployments with several instances should use the
Postgres-backed store (urdigest.infra.repositories.processed_messages_repository).
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict

DEFAULT_WINDOW = 1000


class MessageDeduplicator(ABC):
    @abstractmethod
    def seen(self, message_id: str) -> bool:
        """True if the id was recorded and is still inside the window."""
        ...

    @abstractmethod
    def record(self, message_id: str) -> None:
        ...

    @abstractmethod
    def forget(self, message_id: str) -> None:
        """Drop an id so a retried delivery is handled again."""
        ...


class InMemoryDeduplicator(MessageDeduplicator):
    """Bounded insertion-ordered set; the oldest id is evicted past max_size."""

    def __init__(self, max_size: int = DEFAULT_WINDOW) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._ids: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def seen(self, message_id: str) -> bool:
        with self._lock:
            return message_id in self._ids

    def record(self, message_id: str) -> None:
        with self._lock:
            if message_id in self._ids:
                return
            self._ids[message_id] = None
            while len(self._ids) > self.max_size:
                self._ids.popitem(last=False)

    def forget(self, message_id: str) -> None:
        with self._lock:
            self._ids.pop(message_id, None)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def clear(self) -> None:
        with self._lock:
            self._ids.clear()
