"""Shared fixtures for copilot_gateway tests."""

from __future__ import annotations

import pytest

from copilot_gateway import create_gateway
from copilot_gateway.audit.interface import InMemoryAuditStore
from copilot_gateway.audit.logger import AuditLogger
from copilot_gateway.config import GatewaySettings
from copilot_gateway.engine.fake_llm import FakeLLMProvider
from copilot_gateway.knowledge.in_memory import InMemoryKnowledgeBase
from copilot_gateway.tools.builtins import make_builtin_tools
from copilot_gateway.tools.business import InMemoryBusinessStore
from copilot_gateway.tools.idempotency import IdempotencyStore
from copilot_gateway.tools.interface import ToolContext
from copilot_gateway.tools.permissions import (
    InMemorySubscriptionStore,
    PermissionService,
    SubscriptionTier,
)
from copilot_gateway.tools.registry import ToolRegistry

PRO_USER = "user-pro"
STARTER_USER = "user-starter"
FREE_USER = "user-free"


@pytest.fixture
def audit_store():
    return InMemoryAuditStore()


@pytest.fixture
def audit(audit_store):
    return AuditLogger(audit_store)


@pytest.fixture
def subscriptions():
    return InMemorySubscriptionStore({
        PRO_USER: SubscriptionTier.PROFESSIONAL,
        STARTER_USER: SubscriptionTier.STARTER,
    })


@pytest.fixture
def permissions(subscriptions):
    return PermissionService(subscriptions)


@pytest.fixture
def business_store():
    store = InMemoryBusinessStore()
    store.add_customer(PRO_USER, "João Silva", phone="11999990000", email="joao@example.com")
    store.add_customer(PRO_USER, "Maria Souza", phone="11988887777")
    store.add_customer(STARTER_USER, "Cliente do Starter")
    return store


@pytest.fixture
def knowledge():
    return InMemoryKnowledgeBase()


@pytest.fixture
def registry(audit, business_store, permissions, knowledge):
    registry = ToolRegistry(audit, IdempotencyStore())
    for tool in make_builtin_tools(business_store, permissions, knowledge):
        registry.register_tool(tool)
    return registry


@pytest.fixture
def pro_context():
    return ToolContext(user_id=PRO_USER, conversation_id="conv-1")


@pytest.fixture
def settings():
    return GatewaySettings(llm_provider="fake")


@pytest.fixture
def gateway(settings, subscriptions, business_store, audit_store):
    return create_gateway(
        settings,
        subscriptions=subscriptions,
        business_store=business_store,
        audit_store=audit_store,
        llm=FakeLLMProvider(),
    )


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No gateway variables and no ``.env`` file in the working directory."""
    for name in GatewaySettings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch
