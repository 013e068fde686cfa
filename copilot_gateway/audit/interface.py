"""AuditStore ABC + in-memory implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod

from copilot_gateway.audit.models import AuditCategory, AuditLogEntry


class AuditStore(ABC):
    """Persistence for audit entries.

    Swap to Postgres by implementing this ABC. ``find`` returns newest first.
    """

    @abstractmethod
    async def save(self, entry: AuditLogEntry) -> None: ...

    @abstractmethod
    async def find(
        self,
        user_id: str,
        *,
        category: AuditCategory | None = None,
        since: float | None = None,
        until: float | None = None,
        success: bool | None = None,
    ) -> list[AuditLogEntry]: ...


def matches(
    entry: AuditLogEntry,
    *,
    category: AuditCategory | None,
    since: float | None,
    until: float | None,
    success: bool | None,
) -> bool:
    if category is not None and entry.category != category:
        return False
    if since is not None and entry.timestamp < since:
        return False
    if until is not None and entry.timestamp > until:
        return False
    if success is not None and entry.success != success:
        return False
    return True


class InMemoryAuditStore(AuditStore):
    """List-backed store — suitable for single-process dev/test."""

    def __init__(self) -> None:
        self._entries: list[AuditLogEntry] = []

    @property
    def entries(self) -> list[AuditLogEntry]:
        return list(self._entries)

    async def save(self, entry: AuditLogEntry) -> None:
        self._entries.append(entry)

    async def find(
        self,
        user_id: str,
        *,
        category: AuditCategory | None = None,
        since: float | None = None,
        until: float | None = None,
        success: bool | None = None,
    ) -> list[AuditLogEntry]:
        hits = [
            e for e in self._entries
            if e.user_id == user_id
            and matches(e, category=category, since=since, until=until, success=success)
        ]
        hits.sort(key=lambda e: e.timestamp, reverse=True)
        return hits
