"""In-process read-through cache of conversation histories, with TTL."""

import asyncio
import time

from multi_ai.models import Message


class MessageCache:
    """Per-conversation message lists that expire ``ttl_sec`` after they were filled."""

    def __init__(self, ttl_sec: float = 3600) -> None:
        self._ttl_sec = ttl_sec
        self._entries: dict[str, tuple[float, list[Message]]] = {}
        self._lock = asyncio.Lock()

    async def get(self, conversation_id: str) -> list[Message] | None:
        """Return a copy of the cached history, or None on miss/expiry."""
        async with self._lock:
            entry = self._entries.get(conversation_id)
            if entry is None:
                return None
            expires_at, messages = entry
            if time.monotonic() > expires_at:
                del self._entries[conversation_id]
                return None
            return list(messages)

    async def fill(self, conversation_id: str, messages: list[Message]) -> None:
        async with self._lock:
            self._entries[conversation_id] = (time.monotonic() + self._ttl_sec, list(messages))

    async def append(self, message: Message) -> None:
        """Extend an already-cached history; a missing entry stays missing."""
        async with self._lock:
            entry = self._entries.get(message.conversation_id)
            if entry is None:
                return
            expires_at, messages = entry
            if time.monotonic() > expires_at:
                del self._entries[message.conversation_id]
                return
            messages.append(message)
            # Refresh the TTL on write.
            self._entries[message.conversation_id] = (time.monotonic() + self._ttl_sec, messages)

    async def invalidate(self, conversation_id: str) -> None:
        async with self._lock:
            self._entries.pop(conversation_id, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def stats(self) -> dict[str, int]:
        async with self._lock:
            now = time.monotonic()
            active = sum(1 for expires_at, _ in self._entries.values() if now <= expires_at)
            return {
                "total_keys": len(self._entries),
                "active_keys": active,
                "expired_keys": len(self._entries) - active,
            }
