"""Durable conversation log: SQLite tables behind a read-through message cache."""

import asyncio
import json
import logging
import sqlite3
import uuid
from collections.abc import Callable
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from multi_ai.context.cache import MessageCache
from multi_ai.models import (
    ContextSummary,
    Conversation,
    ConversationHandle,
    Message,
    ModelUsage,
    Role,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    title TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    metadata TEXT
);
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    model TEXT,
    timestamp TEXT NOT NULL,
    metadata TEXT
);
CREATE INDEX IF NOT EXISTS idx_conversation_id ON messages(conversation_id);
CREATE INDEX IF NOT EXISTS idx_timestamp ON messages(timestamp);
"""

_VALID_ROLES = ("user", "assistant", "system")


class StorageError(Exception):
    """Raised when the context store cannot complete an operation."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        model=row["model"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        metadata=json.loads(row["metadata"]) if row["metadata"] else None,
    )


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        title=row["title"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        metadata=json.loads(row["metadata"]) if row["metadata"] else None,
    )


class ContextStore:
    """Conversation messages persisted in SQLite, reads served from a TTL cache.

    Every blocking sqlite call runs in a worker thread; an asyncio.Lock keeps
    them one at a time. Each append is a single transaction. The store keeps
    no "current conversation": callers pass a ConversationHandle.
    """

    def __init__(self, database_path: Path | str, cache_ttl_sec: float = 3600) -> None:
        self._database_path = Path(database_path)
        self._cache = MessageCache(ttl_sec=cache_ttl_sec)
        self._lock = asyncio.Lock()
        self._schema_ready = False

    @property
    def cache(self) -> MessageCache:
        return self._cache

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._database_path, timeout=5.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _create_schema(self) -> None:
        self._database_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._conn()) as conn, conn:
            conn.executescript(_SCHEMA)

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        async with self._lock:
            try:
                if not self._schema_ready:
                    await asyncio.to_thread(self._create_schema)
                    self._schema_ready = True
                return await asyncio.to_thread(fn, *args)
            except sqlite3.Error as exc:
                raise StorageError(f"Context store failure: {exc}") from exc

    async def initialize(self) -> ConversationHandle:
        """Return the latest conversation, starting one if the store is empty."""

        def _init() -> sqlite3.Row | None:
            with closing(self._conn()) as conn:
                return conn.execute(
                    "SELECT id, title FROM conversations ORDER BY created_at DESC, rowid DESC LIMIT 1"
                ).fetchone()

        row = await self._run(_init)
        if row is not None:
            logger.info("Resuming conversation %s", row["id"])
            return ConversationHandle(id=row["id"], title=row["title"])
        return await self.start_new_conversation("Default conversation")

    async def start_new_conversation(self, title: str | None = None) -> ConversationHandle:
        conversation_id = str(uuid.uuid4())
        effective_title = title or "New Conversation"

        def _insert() -> None:
            now = _now()
            with closing(self._conn()) as conn, conn:
                conn.execute(
                    "INSERT INTO conversations (id, title, created_at, updated_at) VALUES (?, ?, ?, ?)",
                    (conversation_id, effective_title, now, now),
                )

        await self._run(_insert)
        await self._cache.invalidate(conversation_id)
        logger.info("Started conversation %s (%s)", conversation_id, effective_title)
        return ConversationHandle(id=conversation_id, title=effective_title)

    async def add_message(
        self,
        conversation: ConversationHandle,
        role: Role,
        content: str,
        model: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        if role not in _VALID_ROLES:
            raise StorageError(f"Invalid message role: {role!r}")

        message = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation.id,
            role=role,
            content=content,
            model=model,
            timestamp=datetime.now(timezone.utc),
            metadata=metadata,
        )

        def _insert() -> None:
            with closing(self._conn()) as conn, conn:
                conn.execute(
                    "INSERT INTO messages (id, conversation_id, role, content, model, timestamp, metadata) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        message.id,
                        message.conversation_id,
                        message.role,
                        message.content,
                        message.model,
                        message.timestamp.isoformat(),
                        json.dumps(metadata) if metadata is not None else None,
                    ),
                )
                conn.execute(
                    "UPDATE conversations SET updated_at = ? WHERE id = ?",
                    (message.timestamp.isoformat(), message.conversation_id),
                )

        await self._run(_insert)
        await self._cache.append(message)
        logger.debug(
            "Stored %s message in %s (model=%s)", role, conversation.id, model,
        )
        return message

    async def get_conversation_history(
        self,
        conversation: ConversationHandle,
        limit: int = 50,
    ) -> list[Message]:
        """Return the most recent ``limit`` messages, oldest first."""
        messages = await self._cache.get(conversation.id)
        if messages is None:

            def _select() -> list[sqlite3.Row]:
                with closing(self._conn()) as conn:
                    return conn.execute(
                        "SELECT * FROM messages WHERE conversation_id = ? ORDER BY timestamp ASC, rowid ASC",
                        (conversation.id,),
                    ).fetchall()

            messages = [_row_to_message(r) for r in await self._run(_select)]
            if messages:
                await self._cache.fill(conversation.id, messages)
        if limit <= 0:
            return []
        return messages[-limit:]

    async def get_recent_conversations(self, limit: int = 10) -> list[Conversation]:
        def _select() -> list[sqlite3.Row]:
            with closing(self._conn()) as conn:
                return conn.execute(
                    "SELECT * FROM conversations ORDER BY updated_at DESC, rowid DESC LIMIT ?",
                    (limit,),
                ).fetchall()

        return [_row_to_conversation(r) for r in await self._run(_select)]

    async def get_summary(self, conversation: ConversationHandle | None = None) -> ContextSummary:
        def _select() -> tuple[int, int, list[sqlite3.Row]]:
            with closing(self._conn()) as conn:
                conversations = conn.execute("SELECT COUNT(*) FROM conversations").fetchone()[0]
                messages = conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
                usage = conn.execute(
                    "SELECT model, COUNT(*) AS count FROM messages WHERE model IS NOT NULL "
                    "GROUP BY model ORDER BY count DESC, model ASC"
                ).fetchall()
                return conversations, messages, usage

        conversations, messages, usage = await self._run(_select)
        return ContextSummary(
            total_conversations=int(conversations),
            total_messages=int(messages),
            model_usage=[ModelUsage(model=r["model"], count=int(r["count"])) for r in usage],
            current_conversation_id=conversation.id if conversation else None,
        )

    async def clear_all(self) -> None:
        def _delete() -> None:
            with closing(self._conn()) as conn, conn:
                conn.execute("DELETE FROM messages")
                conn.execute("DELETE FROM conversations")

        await self._run(_delete)
        await self._cache.clear()
        logger.info("Context store cleared")

    async def close(self) -> None:
        await self._cache.clear()
