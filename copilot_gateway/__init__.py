"""copilot_gateway — tool-calling orchestration core for a field-service copilot.

Usage::

    from copilot_gateway import create_gateway
    from copilot_gateway.engine.models import ChatRequest

    gateway = create_gateway()
    reply = await gateway.handle_message(ChatRequest(user_id="u1", message="Olá"))
"""

from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()  # reads .env into os.environ (no-op if file missing)

from copilot_gateway.audit.interface import AuditStore, InMemoryAuditStore
from copilot_gateway.audit.jsonl_store import JSONLAuditStore
from copilot_gateway.audit.logger import AuditLogger
from copilot_gateway.config import GatewaySettings
from copilot_gateway.engine.gateway import CopilotGateway
from copilot_gateway.engine.llm import LLMProvider, select_llm
from copilot_gateway.engine.models import ChatReply, ChatRequest
from copilot_gateway.engine.plans import PlanWorkflow
from copilot_gateway.engine.session import InMemoryConversationStore
from copilot_gateway.knowledge.in_memory import InMemoryKnowledgeBase
from copilot_gateway.knowledge.interface import KnowledgeBase
from copilot_gateway.tools.builtins import make_builtin_tools
from copilot_gateway.tools.business import InMemoryBusinessStore
from copilot_gateway.tools.idempotency import IdempotencyStore
from copilot_gateway.tools.permissions import (
    InMemorySubscriptionStore,
    PermissionService,
    SubscriptionStore,
)
from copilot_gateway.tools.registry import ToolRegistry

__all__ = [
    "ChatReply",
    "ChatRequest",
    "CopilotGateway",
    "GatewaySettings",
    "create_gateway",
]


def create_gateway(
    settings: GatewaySettings | None = None,
    *,
    subscriptions: SubscriptionStore | None = None,
    business_store: InMemoryBusinessStore | None = None,
    audit_store: AuditStore | None = None,
    llm: LLMProvider | None = None,
    knowledge: KnowledgeBase | None = None,
) -> CopilotGateway:
    """Wire all components and return a ready-to-use CopilotGateway.

    Settings come from the environment unless passed in; see
    ``GatewaySettings.from_env`` for the variables. Any collaborator can be
    injected, which is how the tests swap in fakes.
    """
    settings = settings or GatewaySettings.from_env()

    # -- components --
    if audit_store is None:
        audit_store = (
            JSONLAuditStore(settings.audit_log_dir)
            if settings.audit_log_dir
            else InMemoryAuditStore()
        )
    audit = AuditLogger(audit_store)
    permissions = PermissionService(subscriptions or InMemorySubscriptionStore())
    store = business_store or InMemoryBusinessStore(preview_ttl=settings.preview_ttl_seconds)
    knowledge = knowledge or InMemoryKnowledgeBase()

    registry = ToolRegistry(audit, IdempotencyStore(ttl_seconds=settings.idempotency_ttl_seconds))
    for tool in make_builtin_tools(store, permissions, knowledge):
        registry.register_tool(tool)

    return CopilotGateway(
        conversations=InMemoryConversationStore(ttl_seconds=settings.conversation_ttl_seconds),
        registry=registry,
        workflow=PlanWorkflow(registry, audit, plan_ttl=settings.plan_ttl_seconds),
        llm=llm or select_llm(settings),
        audit=audit,
        settings=settings,
        knowledge=knowledge,
    )
