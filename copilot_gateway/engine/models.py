"""Core data models — Pydantic + stdlib, plus the tool contract enums."""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from copilot_gateway.tools.interface import ActionType, ToolDefinition


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ConversationState(str, Enum):
    IDLE = "IDLE"
    COLLECTING = "COLLECTING"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    EXECUTING = "EXECUTING"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class ChatMessage(BaseModel):
    role: Role
    content: str
    timestamp: float = Field(default_factory=time.time)


class PlanAction(BaseModel):
    id: str = Field(default_factory=_new_id)
    tool: str
    params: dict[str, Any] = Field(default_factory=dict)
    missing_fields: list[str] = Field(default_factory=list)
    description: str = ""
    action_type: ActionType = ActionType.READ
    payment_preview: dict[str, Any] | None = None


class PlanSummary(BaseModel):
    id: str = Field(default_factory=_new_id)
    conversation_id: str
    user_id: str
    actions: list[PlanAction]
    has_payment_actions: bool = False
    state: ConversationState = ConversationState.COLLECTING
    expires_at: float
    created_at: float = Field(default_factory=time.time)

    @property
    def missing_fields(self) -> list[str]:
        return [f for a in self.actions for f in a.missing_fields]


class Conversation(BaseModel):
    conversation_id: str = Field(default_factory=_new_id)
    user_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
    state: ConversationState = ConversationState.IDLE
    pending_plan: PlanSummary | None = None
    status: ConversationStatus = ConversationStatus.ACTIVE
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)

    def add_message(self, role: Role, content: str) -> None:
        self.messages.append(ChatMessage(role=role, content=content))
        self.updated_at = time.time()


# ---------------------------------------------------------------------------
# Caller-facing envelopes (adapter ↔ gateway)
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    user_id: str
    message: str
    conversation_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class ExecutedTool(BaseModel):
    tool: str
    success: bool
    data: Any = None
    error: str | None = None


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class ChatReply(BaseModel):
    conversation_id: str
    message: str
    state: ConversationState = ConversationState.IDLE
    plan: PlanSummary | None = None
    missing_fields: list[str] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)
    data: Any = None
    executed_tools: list[ExecutedTool] = Field(default_factory=list)
    token_usage: TokenUsage | None = None


# ---------------------------------------------------------------------------
# Provider-agnostic LLM request / result
# ---------------------------------------------------------------------------

class LLMMessage(BaseModel):
    role: Role
    content: str


class LLMRequest(BaseModel):
    messages: list[LLMMessage]
    tools: list[ToolDefinition] | None = None
    temperature: float = 0.7
    max_tokens: int = 2048
    stop: list[str] | None = None


class FinishReason(str, Enum):
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"


class ToolCallRequest(BaseModel):
    """A single tool/function call requested by the LLM."""
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class LLMResult(BaseModel):
    """Complete (non-streaming) LLM response."""
    content: str = ""
    tool_calls: list[ToolCallRequest] | None = None
    usage: TokenUsage = Field(default_factory=TokenUsage)
    finish_reason: FinishReason = FinishReason.STOP


# ---------------------------------------------------------------------------
# Structured LLM response: tagged on ``type``
# ---------------------------------------------------------------------------

class _ProtocolModel(BaseModel):
    """The JSON protocol is camelCase; attributes stay snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlanResponse(_ProtocolModel):
    type: Literal["PLAN"] = "PLAN"
    action: str
    collected_fields: dict[str, Any] = Field(default_factory=dict)
    missing_fields: list[str] = Field(default_factory=list)
    suggested_actions: list[str] = Field(default_factory=list)
    requires_confirmation: bool = True
    message: str | None = None


class CallToolResponse(_ProtocolModel):
    type: Literal["CALL_TOOL"] = "CALL_TOOL"
    tool: str
    params: dict[str, Any] = Field(default_factory=dict)


class AskUserResponse(_ProtocolModel):
    type: Literal["ASK_USER"] = "ASK_USER"
    question: str
    context: str | None = None
    options: list[str] | None = None


class InformativeResponse(_ProtocolModel):
    type: Literal["RESPONSE"] = "RESPONSE"
    message: str
    data: Any = None


LLMResponse = Annotated[
    Union[PlanResponse, CallToolResponse, AskUserResponse, InformativeResponse],
    Field(discriminator="type"),
]
