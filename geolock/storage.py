"""
Message storage - key/value store for sealed messages with TTL expiry.

The service depends only on the ``MessageStore`` protocol, so the
in-memory store here can be swapped for a persistent one.
"""

import threading
import time
from typing import Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from geolock.sealing import SealedMessage


class MessageNotFound(KeyError):
    """Raised when a message id is unknown or expired."""

    def __init__(self, message_id: str):
        super().__init__(message_id)
        self.message_id = message_id


class MessageExists(Exception):
    """Raised when a live message already uses the id."""

    def __init__(self, message_id: str):
        super().__init__(f"Message {message_id} already exists")
        self.message_id = message_id


@runtime_checkable
class MessageStore(Protocol):
    def put(self, message_id: str, message: SealedMessage, expires_at_ms: int) -> None: ...
    def get(self, message_id: str) -> Optional[SealedMessage]: ...
    def delete(self, message_id: str) -> bool: ...
    def list(self) -> List[Tuple[str, SealedMessage]]: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


class InMemoryMessageStore:
    """
    Process-local store.

    Expired entries are invisible to get() and list() and are dropped
    lazily. Every operation holds a lock, so a read racing a delete sees
    either the whole message or nothing.

    Args:
        clock: Callable returning the current time in epoch ms
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or _now_ms
        self._entries: Dict[str, Tuple[SealedMessage, int]] = {}
        self._lock = threading.Lock()

    def _live(self, message_id: str, now: int) -> Optional[SealedMessage]:
        entry = self._entries.get(message_id)
        if entry is None:
            return None
        message, expires_at = entry
        if now > expires_at:
            del self._entries[message_id]
            return None
        return message

    def put(self, message_id: str, message: SealedMessage, expires_at_ms: int) -> None:
        """
        Store a message until expires_at_ms.

        Raises:
            MessageExists: If a live message already has this id
        """
        with self._lock:
            if self._live(message_id, self._clock()) is not None:
                raise MessageExists(message_id)
            self._entries[message_id] = (message, expires_at_ms)

    def get(self, message_id: str) -> Optional[SealedMessage]:
        with self._lock:
            return self._live(message_id, self._clock())

    def delete(self, message_id: str) -> bool:
        """Delete a live message; expired entries count as absent."""
        with self._lock:
            if self._live(message_id, self._clock()) is None:
                return False
            del self._entries[message_id]
            return True

    def list(self) -> List[Tuple[str, SealedMessage]]:
        with self._lock:
            now = self._clock()
            return [
                (message_id, message)
                for message_id, (message, expires_at) in self._entries.items()
                if now <= expires_at
            ]

    def purge_expired(self) -> int:
        """Drop expired entries, returning how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [mid for mid, (_, exp) in self._entries.items() if now > exp]
            for message_id in expired:
                del self._entries[message_id]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
