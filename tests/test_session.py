"""Tests for settings loading and the in-memory conversation store."""

from __future__ import annotations

import time

import pytest

from copilot_gateway.config import GatewaySettings
from copilot_gateway.engine.models import Conversation, ConversationStatus, Role
from copilot_gateway.engine.session import InMemoryConversationStore
from copilot_gateway.exceptions import ConfigurationError


class TestSettings:
    def test_defaults(self, clean_env):
        settings = GatewaySettings.from_env()
        assert settings.llm_provider == "auto"
        assert settings.plan_ttl_seconds == 300.0
        assert settings.max_requests_per_minute == 30
        assert settings.audit_log_dir is None

    def test_env_values_are_coerced(self, clean_env):
        clean_env.setenv("LLM_PROVIDER", " Anthropic ")
        clean_env.setenv("ANTHROPIC_API_KEY", "sk-ant")
        clean_env.setenv("PLAN_TTL_SECONDS", "60")
        clean_env.setenv("MAX_REQUESTS_PER_MINUTE", "5")
        clean_env.setenv("OPENAI_API_KEY", "   ")
        clean_env.setenv("AUDIT_LOG_DIR", "")

        settings = GatewaySettings.from_env()

        assert settings.llm_provider == "anthropic"
        assert settings.anthropic_api_key == "sk-ant"
        assert settings.plan_ttl_seconds == 60.0
        assert settings.max_requests_per_minute == 5
        assert settings.openai_api_key is None
        assert settings.audit_log_dir is None

    def test_dotenv_file_is_read(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("HISTORY_LIMIT=4\n")
        assert GatewaySettings.from_env().history_limit == 4

    def test_explicit_values_beat_env(self, clean_env):
        clean_env.setenv("HISTORY_LIMIT", "4")
        assert GatewaySettings(history_limit=7).history_limit == 7

    @pytest.mark.parametrize("var, value", [
        ("LLM_PROVIDER", "gemini"),
        ("HISTORY_LIMIT", "many"),
    ])
    def test_invalid_values_raise(self, clean_env, var, value):
        clean_env.setenv(var, value)
        with pytest.raises(ConfigurationError, match="Invalid gateway settings"):
            GatewaySettings.from_env()


class TestConversationStore:
    async def test_save_get_delete(self):
        store = InMemoryConversationStore()
        conversation = Conversation(user_id="u1")
        await store.save(conversation)

        assert await store.get(conversation.conversation_id) is conversation
        await store.delete(conversation.conversation_id)
        assert await store.get(conversation.conversation_id) is None

    async def test_list_for_user_newest_first(self):
        store = InMemoryConversationStore()
        older, newer, foreign = Conversation(user_id="u1"), Conversation(user_id="u1"), Conversation(user_id="u2")
        for c in (older, newer, foreign):
            await store.save(c)
        older.updated_at = time.time() - 100

        listed = await store.list_for_user("u1")
        assert [c.conversation_id for c in listed] == [newer.conversation_id, older.conversation_id]
        assert len(await store.list_for_user("u1", limit=1)) == 1

    async def test_count_user_messages_since(self):
        store = InMemoryConversationStore()
        conversation = Conversation(user_id="u1")
        conversation.add_message(Role.USER, "old")
        conversation.messages[0].timestamp = time.time() - 120
        conversation.add_message(Role.USER, "new")
        conversation.add_message(Role.ASSISTANT, "reply")
        await store.save(conversation)

        assert await store.count_user_messages_since("u1", time.time() - 60) == 1
        assert await store.count_user_messages_since("u2", 0) == 0

    async def test_idle_conversation_expires_on_read(self):
        store = InMemoryConversationStore(ttl_seconds=60)
        conversation = Conversation(user_id="u1")
        await store.save(conversation)
        conversation.updated_at = time.time() - 120

        loaded = await store.get(conversation.conversation_id)

        assert loaded.status == ConversationStatus.EXPIRED
        assert loaded.pending_plan is None

    async def test_no_ttl_never_expires(self):
        store = InMemoryConversationStore()
        conversation = Conversation(user_id="u1")
        await store.save(conversation)
        conversation.updated_at = 0
        assert (await store.get(conversation.conversation_id)).status == ConversationStatus.ACTIVE
