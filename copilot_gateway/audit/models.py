"""Audit records — write-once, queried read-only."""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuditCategory(str, Enum):
    TOOL_CALL = "TOOL_CALL"
    SECURITY_BLOCK = "SECURITY_BLOCK"
    RATE_LIMIT = "RATE_LIMIT"
    PLAN_CREATED = "PLAN_CREATED"
    PLAN_CONFIRMED = "PLAN_CONFIRMED"
    PLAN_REJECTED = "PLAN_REJECTED"
    PLAN_EXECUTED = "PLAN_EXECUTED"
    ACTION_SUCCESS = "ACTION_SUCCESS"
    ACTION_FAILED = "ACTION_FAILED"


class AuditLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    conversation_id: str | None = None
    plan_id: str | None = None
    category: AuditCategory
    tool: str | None = None
    action: str
    success: bool
    input_payload: dict[str, Any] | None = None
    output_payload: dict[str, Any] | None = None
    error_message: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    duration_ms: float | None = None
    timestamp: float = Field(default_factory=time.time)


class AuditLogPage(BaseModel):
    items: list[AuditLogEntry]
    total: int
    limit: int
    offset: int
    has_more: bool
