"""JSONL file-based audit store."""

from __future__ import annotations

import json
import re
from pathlib import Path

from copilot_gateway.audit.interface import AuditStore, matches
from copilot_gateway.audit.models import AuditCategory, AuditLogEntry

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class JSONLAuditStore(AuditStore):
    """Appends entries to ``{audit_dir}/{user_id}.jsonl``.

    Each ``save`` writes one line immediately; nothing is buffered, so an
    entry is durable once ``save`` returns.
    """

    def __init__(self, audit_dir: str = "./audit") -> None:
        self._dir = Path(audit_dir)
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, user_id: str) -> Path:
        return self._dir / f"{_UNSAFE_CHARS.sub('_', user_id)}.jsonl"

    async def save(self, entry: AuditLogEntry) -> None:
        with open(self._path(entry.user_id), "a", encoding="utf-8") as f:
            f.write(entry.model_dump_json() + "\n")

    async def find(
        self,
        user_id: str,
        *,
        category: AuditCategory | None = None,
        since: float | None = None,
        until: float | None = None,
        success: bool | None = None,
    ) -> list[AuditLogEntry]:
        path = self._path(user_id)
        if not path.exists():
            return []
        hits: list[AuditLogEntry] = []
        with open(path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = AuditLogEntry.model_validate(json.loads(line))
                if entry.user_id != user_id:
                    continue
                if matches(entry, category=category, since=since, until=until, success=success):
                    hits.append(entry)
        hits.sort(key=lambda e: e.timestamp, reverse=True)
        return hits
