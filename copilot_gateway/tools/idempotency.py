"""Idempotency records for side-effecting tool calls."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from copilot_gateway.tools.interface import ToolErrorCode, ToolResult

logger = logging.getLogger(__name__)


def request_hash(params: dict[str, Any]) -> str:
    canonical = json.dumps(params, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class IdempotencyRecord:
    request_hash: str
    result: ToolResult
    expires_at: float


class IdempotencyStore:
    """Remembers successful results by ``(user, tool, key)``.

    ``check`` returns the cached result for a replay with identical params,
    a conflict failure for the same key with different params, and ``None``
    when the call should run.
    """

    def __init__(self, ttl_seconds: float = 86400.0) -> None:
        self._ttl = ttl_seconds
        self._records: dict[tuple[str, str, str], IdempotencyRecord] = {}

    async def check(
        self, user_id: str, tool: str, key: str, params: dict[str, Any],
    ) -> ToolResult | None:
        record_key = (user_id, tool, key)
        record = self._records.get(record_key)
        if record is None:
            return None
        if record.expires_at < time.time():
            del self._records[record_key]
            return None
        if record.request_hash != request_hash(params):
            logger.warning("idempotency conflict tool=%s key=%s", tool, key)
            return ToolResult.fail(
                ToolErrorCode.IDEMPOTENCY_CONFLICT,
                f"Idempotency key '{key}' was already used with different parameters",
            )
        return record.result

    async def record(
        self, user_id: str, tool: str, key: str, params: dict[str, Any], result: ToolResult,
    ) -> None:
        self._records[(user_id, tool, key)] = IdempotencyRecord(
            request_hash=request_hash(params),
            result=result,
            expires_at=time.time() + self._ttl,
        )
