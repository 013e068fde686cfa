"""Tool contract: metadata, per-call context, result envelope, and the Tool ABC.

No internal dependencies — only Pydantic + stdlib.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ActionType(str, Enum):
    READ = "READ"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    PAYMENT_CREATE = "PAYMENT_CREATE"


class ToolErrorCode(str, Enum):
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    ENTITY_NOT_OWNED = "ENTITY_NOT_OWNED"
    PREVIEW_REQUIRED = "PREVIEW_REQUIRED"
    PREVIEW_EXPIRED = "PREVIEW_EXPIRED"
    IDEMPOTENCY_CONFLICT = "IDEMPOTENCY_CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ToolMetadata(BaseModel):
    """Static descriptor, one per registered tool."""

    model_config = ConfigDict(frozen=True)

    name: str  # dotted, e.g. ``customers.create``
    description: str
    action_type: ActionType
    parameters_schema: dict[str, Any] = Field(default_factory=dict)
    required_permissions: tuple[str, ...] = ()
    requires_payment_preview: bool = False
    preview_tool: str | None = None  # tool that produces the preview id
    timeout: float = 30.0


class ToolDefinition(BaseModel):
    """Provider-agnostic tool schema handed to the LLM."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class ToolContext(BaseModel):
    """Built fresh for every invocation; never persisted as-is."""

    user_id: str
    conversation_id: str = ""
    plan_id: str | None = None
    idempotency_key: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class AffectedEntity(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    id: str
    action: str  # read | created | updated | deleted


class ToolResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    data: Any = None
    error: str | None = None
    error_code: ToolErrorCode | None = None
    affected_entities: list[AffectedEntity] = Field(default_factory=list)

    @classmethod
    def ok(cls, data: Any = None, affected: list[AffectedEntity] | None = None) -> ToolResult:
        return cls(success=True, data=data, affected_entities=affected or [])

    @classmethod
    def fail(cls, code: ToolErrorCode, message: str) -> ToolResult:
        return cls(success=False, error=message, error_code=code)


class Tool(ABC):
    """One business operation behind the registry.

    ``validate`` returns ``True`` or a human-readable reason; the registry
    passes that reason back verbatim.
    """

    metadata: ToolMetadata

    @abstractmethod
    async def check_permission(self, context: ToolContext) -> bool: ...

    @abstractmethod
    async def validate(self, params: dict[str, Any]) -> bool | str: ...

    @abstractmethod
    async def execute(self, params: dict[str, Any], context: ToolContext) -> ToolResult: ...
