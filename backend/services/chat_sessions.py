"""Thread-safe conversation history store with TTL and LRU eviction.

Conversations are keyed by conversation id. An entry expires
``ttl_seconds`` after its last write, and when the store is full the least
recently used conversation is evicted. History is process-local and lost
on restart.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable

from backend.core import config

logger = logging.getLogger(__name__)

ChatMessage = dict[str, str]


class ChatSessionStore:
    """Bounded map of conversation id -> list of ``{"role", "content"}`` messages."""

    def __init__(
        self,
        ttl_seconds: int = config.CHAT_SESSION_TTL_SECONDS,
        max_entries: int = config.CHAT_SESSION_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError('ttl_seconds must be positive')
        if max_entries <= 0:
            raise ValueError('max_entries must be positive')
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        # conversation id -> (expires_at, messages)
        self._store: OrderedDict[str, tuple[float, list[ChatMessage]]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, conversation_id: str) -> list[ChatMessage] | None:
        """Return a copy of the history, promoting it to most recently used."""
        with self._lock:
            entry = self._store.get(conversation_id)
            if entry is None:
                return None
            expires_at, messages = entry
            if expires_at <= self._clock():
                del self._store[conversation_id]
                logger.debug('Chat session %s expired', conversation_id)
                return None
            self._store.move_to_end(conversation_id)
            return list(messages)

    def put(self, conversation_id: str, messages: list[ChatMessage]) -> None:
        with self._lock:
            self._purge_expired()
            self._store.pop(conversation_id, None)
            while len(self._store) >= self._max_entries:
                evicted_id, _ = self._store.popitem(last=False)
                logger.debug('Chat session %s evicted', evicted_id)
            self._store[conversation_id] = (self._clock() + self._ttl_seconds, list(messages))

    def delete(self, conversation_id: str) -> bool:
        """Remove a conversation. Returns ``True`` if it existed and had not expired."""
        with self._lock:
            entry = self._store.pop(conversation_id, None)
            return entry is not None and entry[0] > self._clock()

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._store)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._store.items() if expires_at <= now]
        for key in expired:
            del self._store[key]
