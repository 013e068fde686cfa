"""AuditLogger — redacting, fire-and-forget audit sink.

A failing store is logged locally and never reaches the caller: auditing
must not be able to break a chat turn.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any

from copilot_gateway.audit.interface import AuditStore
from copilot_gateway.audit.models import AuditCategory, AuditLogEntry, AuditLogPage

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
DEFAULT_PAGE_SIZE = 50

# Matched against the key lower-cased with "_" and "-" removed.
_SENSITIVE_SUBSTRINGS = ("password", "passwd", "secret", "apikey", "creditcard", "cardnumber")
_SENSITIVE_EXACT = frozenset({
    "token", "accesstoken", "refreshtoken", "authorization", "cvv", "cvc", "securitycode",
})
_CARD_NUMBER = re.compile(r"^\d(?:[ -]?\d){12,18}$")


def looks_like_card_number(value: str) -> bool:
    """13-19 digits (spaces or dashes allowed) that pass the Luhn checksum."""
    value = value.strip()
    if not _CARD_NUMBER.match(value):
        return False
    digits = [int(c) for c in reversed(value) if c.isdigit()]
    total = sum(digits[0::2]) + sum(sum(divmod(d * 2, 10)) for d in digits[1::2])
    return total % 10 == 0


def is_sensitive_key(key: str) -> bool:
    normalized = key.lower().replace("_", "").replace("-", "")
    if normalized in _SENSITIVE_EXACT:
        return True
    return any(marker in normalized for marker in _SENSITIVE_SUBSTRINGS)


def sanitize_payload(value: Any) -> Any:
    """Recursively replace sensitive values with ``REDACTED``."""
    if isinstance(value, dict):
        return {
            k: REDACTED if is_sensitive_key(str(k)) else sanitize_payload(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_payload(v) for v in value]
    if isinstance(value, str) and looks_like_card_number(value):
        return REDACTED
    return value


class AuditLogger:
    def __init__(self, store: AuditStore) -> None:
        self._store = store

    async def log(self, entry: AuditLogEntry) -> None:
        try:
            sanitized = entry.model_copy(update={
                "input_payload": sanitize_payload(entry.input_payload),
                "output_payload": sanitize_payload(entry.output_payload),
            })
            await self._store.save(sanitized)
        except Exception:
            logger.exception(
                "audit write failed category=%s action=%s user=%s",
                entry.category.value, entry.action, entry.user_id,
            )

    async def get_logs_for_user(
        self,
        user_id: str,
        *,
        category: AuditCategory | None = None,
        start: float | None = None,
        end: float | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> AuditLogPage:
        limit = max(1, limit)
        offset = max(0, offset)
        entries = await self._store.find(user_id, category=category, since=start, until=end)
        page = entries[offset:offset + limit]
        return AuditLogPage(
            items=page,
            total=len(entries),
            limit=limit,
            offset=offset,
            has_more=offset + len(page) < len(entries),
        )

    async def count_failed_operations(self, user_id: str, window_seconds: float) -> int:
        since = time.time() - window_seconds
        failed = await self._store.find(user_id, since=since, success=False)
        return len(failed)
