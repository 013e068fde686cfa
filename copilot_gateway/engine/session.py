"""Conversation store — ABC + in-memory implementation."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

from copilot_gateway.engine.models import Conversation, ConversationStatus, Role


class ConversationStore(ABC):
    """Async conversation persistence interface.

    Swap to Redis/Postgres by implementing this ABC. Concurrent turns on the
    same conversation are last-writer-wins.
    """

    @abstractmethod
    async def get(self, conversation_id: str) -> Conversation | None: ...

    @abstractmethod
    async def save(self, conversation: Conversation) -> None: ...

    @abstractmethod
    async def delete(self, conversation_id: str) -> None: ...

    @abstractmethod
    async def list_for_user(self, user_id: str, limit: int | None = 20) -> list[Conversation]: ...

    @abstractmethod
    async def count_user_messages_since(self, user_id: str, since: float) -> int: ...


class InMemoryConversationStore(ConversationStore):
    """Dict-backed store — suitable for single-process dev/test.

    With *ttl_seconds* set, a conversation idle for longer than that is
    marked expired on read.
    """

    def __init__(self, ttl_seconds: float | None = None) -> None:
        self._store: dict[str, Conversation] = {}
        self._ttl = ttl_seconds

    def _expire_if_idle(self, conversation: Conversation) -> Conversation:
        if (
            self._ttl is not None
            and conversation.status == ConversationStatus.ACTIVE
            and time.time() - conversation.updated_at > self._ttl
        ):
            conversation.status = ConversationStatus.EXPIRED
            conversation.pending_plan = None
        return conversation

    async def get(self, conversation_id: str) -> Conversation | None:
        conversation = self._store.get(conversation_id)
        return self._expire_if_idle(conversation) if conversation else None

    async def save(self, conversation: Conversation) -> None:
        conversation.updated_at = time.time()
        self._store[conversation.conversation_id] = conversation

    async def delete(self, conversation_id: str) -> None:
        self._store.pop(conversation_id, None)

    async def list_for_user(self, user_id: str, limit: int | None = 20) -> list[Conversation]:
        owned = [
            self._expire_if_idle(c) for c in self._store.values() if c.user_id == user_id
        ]
        owned.sort(key=lambda c: c.updated_at, reverse=True)
        return owned[:limit]

    async def count_user_messages_since(self, user_id: str, since: float) -> int:
        return sum(
            1
            for c in self._store.values() if c.user_id == user_id
            for m in c.messages if m.role == Role.USER and m.timestamp >= since
        )
