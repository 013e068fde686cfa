"""Knowledge-base (FAQ retrieval) interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel


class DocChunk(BaseModel):
    id: str
    text: str
    source: str
    score: float = 0.0


class KnowledgeBase(ABC):
    """Async retrieval interface.

    Swap to a real vector store by implementing this ABC.
    """

    @abstractmethod
    async def search(self, query: str, k: int = 3, min_score: float = 0.0) -> list[DocChunk]: ...
