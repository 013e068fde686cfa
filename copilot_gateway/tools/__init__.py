from copilot_gateway.tools.builtins import BusinessTool, make_builtin_tools
from copilot_gateway.tools.business import InMemoryBusinessStore
from copilot_gateway.tools.idempotency import IdempotencyStore
from copilot_gateway.tools.interface import (
    ActionType,
    AffectedEntity,
    Tool,
    ToolContext,
    ToolDefinition,
    ToolErrorCode,
    ToolMetadata,
    ToolResult,
)
from copilot_gateway.tools.permissions import (
    TIER_PERMISSIONS,
    InMemorySubscriptionStore,
    Permission,
    PermissionService,
    SubscriptionStore,
    SubscriptionTier,
)
from copilot_gateway.tools.registry import ToolRegistry

__all__ = [
    "TIER_PERMISSIONS",
    "ActionType",
    "AffectedEntity",
    "BusinessTool",
    "IdempotencyStore",
    "InMemoryBusinessStore",
    "InMemorySubscriptionStore",
    "Permission",
    "PermissionService",
    "SubscriptionStore",
    "SubscriptionTier",
    "Tool",
    "ToolContext",
    "ToolDefinition",
    "ToolErrorCode",
    "ToolMetadata",
    "ToolRegistry",
    "ToolResult",
    "make_builtin_tools",
]
