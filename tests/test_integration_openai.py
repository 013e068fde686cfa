"""Integration tests that hit the real OpenAI API.

Skipped automatically when OPENAI_API_KEY is not set.
Run with:  OPENAI_API_KEY=sk-... pytest tests/test_integration_openai.py -v -s
"""

from __future__ import annotations

import os

import pytest

from copilot_gateway import create_gateway
from copilot_gateway.config import GatewaySettings
from copilot_gateway.engine.models import ChatRequest, ConversationState
from copilot_gateway.tools.business import InMemoryBusinessStore
from copilot_gateway.tools.permissions import InMemorySubscriptionStore, SubscriptionTier

pytestmark = pytest.mark.skipif(
    not os.environ.get("OPENAI_API_KEY"),
    reason="OPENAI_API_KEY not set — skipping real-API integration tests",
)

USER = "integ-user"


def _gateway(business_store):
    settings = GatewaySettings.from_env().model_copy(update={"llm_provider": "openai"})
    return create_gateway(
        settings,
        subscriptions=InMemorySubscriptionStore({USER: SubscriptionTier.PROFESSIONAL}),
        business_store=business_store,
    )


@pytest.fixture
def store():
    store = InMemoryBusinessStore()
    store.add_customer(USER, "João Silva", phone="11999990000")
    return store


class TestOpenAIChat:
    async def test_greeting_is_informative(self, store):
        gateway = _gateway(store)
        reply = await gateway.handle_message(ChatRequest(user_id=USER, message="Olá, o que você faz?"))

        print(f"\n--- greeting ({len(reply.message)} chars) ---")
        print(reply.message[:500])
        assert reply.state == ConversationState.IDLE
        assert len(reply.message) > 10

    async def test_customer_create_needs_confirmation(self, store):
        gateway = _gateway(store)
        before = len(store.customers)
        reply = await gateway.handle_message(ChatRequest(
            user_id=USER, message="Cadastre o cliente Pedro Alves, telefone 11 98888-7777",
        ))

        print(f"\n--- state={reply.state.value} ---")
        print(reply.message[:500])
        # The model may still ask for more fields; it must never write without a confirmation.
        assert reply.state in (
            ConversationState.AWAITING_CONFIRMATION,
            ConversationState.COLLECTING,
            ConversationState.IDLE,
        )
        assert len(store.customers) == before

    async def test_charge_never_skips_preview(self, store):
        gateway = _gateway(store)
        reply = await gateway.handle_message(ChatRequest(
            user_id=USER, message="Gere uma cobrança PIX de R$ 150 para o João Silva",
        ))

        print(f"\n--- state={reply.state.value} ---")
        print(reply.message[:500])
        assert store.charges == {}
        if reply.state == ConversationState.AWAITING_CONFIRMATION:
            assert reply.plan.actions[0].payment_preview is not None
            assert "previewId" in reply.plan.actions[0].params


class TestOpenAISessionContinuity:
    """Multi-turn: the second message should see prior context."""

    async def test_second_turn_has_history(self, store):
        gateway = _gateway(store)
        first = await gateway.handle_message(ChatRequest(user_id=USER, message="Quais clientes eu tenho?"))
        second = await gateway.handle_message(ChatRequest(
            user_id=USER, message="E o telefone do primeiro?", conversation_id=first.conversation_id,
        ))

        print("\n--- turn 2 ---")
        print(second.message[:500])
        conversation = await gateway.get_conversation(USER, first.conversation_id)
        assert len(conversation.messages) == 4
