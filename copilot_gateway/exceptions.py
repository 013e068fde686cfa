"""Exception hierarchy for the copilot gateway.

Tool-level failures are not exceptions: they travel back as ``ToolResult``
envelopes. These types cover the conditions that abort a whole turn.
"""


class GatewayError(Exception):
    """Base exception for all gateway errors."""


class ConfigurationError(GatewayError):
    """Invalid environment or settings."""


class LLMProviderError(GatewayError):
    """Upstream LLM call failed (network, non-2xx, unusable payload)."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ConversationNotFoundError(GatewayError):
    """Conversation does not exist or belongs to another user."""


class PlanExpiredError(GatewayError):
    """Pending plan passed its TTL before confirmation."""


class RateLimitExceededError(GatewayError):
    """Caller exceeded a request or failure limit."""

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason
