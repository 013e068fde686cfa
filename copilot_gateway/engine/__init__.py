from copilot_gateway.engine.models import (
    ChatReply,
    ChatRequest,
    Conversation,
    ConversationState,
    LLMMessage,
    LLMRequest,
    LLMResult,
    PlanAction,
    PlanSummary,
    ToolCallRequest,
)
from copilot_gateway.engine.session import ConversationStore, InMemoryConversationStore
from copilot_gateway.engine.llm import (
    AnthropicProvider,
    FallbackLLMProvider,
    LLMProvider,
    MockLLMProvider,
    OpenAIProvider,
    select_llm,
)
from copilot_gateway.engine.fake_llm import FakeLLMProvider
from copilot_gateway.engine.parser import ParseResult, parse
from copilot_gateway.engine.plans import PlanWorkflow
from copilot_gateway.engine.gateway import CopilotGateway

__all__ = [
    "AnthropicProvider",
    "ChatReply",
    "ChatRequest",
    "Conversation",
    "ConversationState",
    "ConversationStore",
    "CopilotGateway",
    "FakeLLMProvider",
    "FallbackLLMProvider",
    "InMemoryConversationStore",
    "LLMMessage",
    "LLMProvider",
    "LLMRequest",
    "LLMResult",
    "MockLLMProvider",
    "OpenAIProvider",
    "ParseResult",
    "PlanAction",
    "PlanSummary",
    "PlanWorkflow",
    "ToolCallRequest",
    "parse",
    "select_llm",
]
