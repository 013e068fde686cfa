"""Tests for the audit sink — redaction, failure isolation, querying, JSONL store."""

from __future__ import annotations

import json
import time

import pytest

from copilot_gateway.audit.interface import AuditStore, InMemoryAuditStore
from copilot_gateway.audit.jsonl_store import JSONLAuditStore
from copilot_gateway.audit.logger import (
    REDACTED,
    AuditLogger,
    looks_like_card_number,
    sanitize_payload,
)
from copilot_gateway.audit.models import AuditCategory, AuditLogEntry


def _entry(user_id: str = "u1", **overrides) -> AuditLogEntry:
    defaults = dict(
        user_id=user_id,
        category=AuditCategory.ACTION_SUCCESS,
        action="execute",
        success=True,
    )
    defaults.update(overrides)
    return AuditLogEntry(**defaults)


class _BrokenStore(AuditStore):
    async def save(self, entry):
        raise OSError("disk full")

    async def find(self, user_id, **kwargs):
        return []


class TestSanitize:
    def test_sensitive_keys_are_redacted(self):
        payload = {
            "name": "João",
            "password": "hunter2",
            "apiKey": "sk-123",
            "card_number": "4111111111111111",
            "access_token": "abc",
            "cvv": "123",
        }
        assert sanitize_payload(payload) == {
            "name": "João",
            "password": REDACTED,
            "apiKey": REDACTED,
            "card_number": REDACTED,
            "access_token": REDACTED,
            "cvv": REDACTED,
        }

    def test_exact_token_key(self):
        assert sanitize_payload({"Token": "t", "tokens_used": 5}) == {"Token": REDACTED, "tokens_used": 5}

    def test_nested_structures(self):
        payload = {"customer": {"billing": {"creditCard": "x"}}, "items": [{"secret": "y"}, "plain"]}
        assert sanitize_payload(payload) == {
            "customer": {"billing": {"creditCard": REDACTED}},
            "items": [{"secret": REDACTED}, "plain"],
        }

    def test_card_like_values_are_redacted_under_any_key(self):
        assert sanitize_payload({"note": "4111 1111 1111 1111"}) == {"note": REDACTED}
        assert sanitize_payload({"phone": "11999990000"}) == {"phone": "11999990000"}

    def test_long_digit_ids_that_fail_luhn_are_kept(self):
        payload = {
            "name": "Acme",
            "taxId": "12345678000195",
            "phone": "5511999990000",
            "ref": "4111-1111-1111-1111",
        }
        assert sanitize_payload(payload) == {
            "name": "Acme",
            "taxId": "12345678000195",
            "phone": "5511999990000",
            "ref": REDACTED,
        }

    @pytest.mark.parametrize("value, expected", [
        ("4111111111111111", True),
        ("5555 5555 5555 4444", True),
        ("4111111111111112", False),
        ("123456789012", False),
        ("12345678000195", False),
    ])
    def test_looks_like_card_number(self, value, expected):
        assert looks_like_card_number(value) is expected

    def test_scalars_pass_through(self):
        assert sanitize_payload(None) is None
        assert sanitize_payload(42) == 42


class TestAuditLogger:
    async def test_log_sanitizes_before_store(self, audit, audit_store):
        await audit.log(_entry(input_payload={"password": "p"}, output_payload={"apiKey": "k"}))
        (stored,) = audit_store.entries
        assert stored.input_payload == {"password": REDACTED}
        assert stored.output_payload == {"apiKey": REDACTED}

    async def test_store_failure_never_reaches_caller(self, caplog):
        logger = AuditLogger(_BrokenStore())
        await logger.log(_entry())
        assert "audit write failed" in caplog.text

    async def test_paging_newest_first(self, audit):
        base = time.time() - 100
        for i in range(5):
            await audit.log(_entry(action=f"a{i}", timestamp=base + i))

        page = await audit.get_logs_for_user("u1", limit=2)
        assert [e.action for e in page.items] == ["a4", "a3"]
        assert page.total == 5
        assert page.has_more

        last = await audit.get_logs_for_user("u1", limit=2, offset=4)
        assert [e.action for e in last.items] == ["a0"]
        assert not last.has_more

    async def test_filters(self, audit):
        now = time.time()
        await audit.log(_entry(category=AuditCategory.PLAN_CREATED, timestamp=now - 50))
        await audit.log(_entry(category=AuditCategory.SECURITY_BLOCK, success=False, timestamp=now - 10))
        await audit.log(_entry(user_id="other"))

        blocks = await audit.get_logs_for_user("u1", category=AuditCategory.SECURITY_BLOCK)
        assert blocks.total == 1

        recent = await audit.get_logs_for_user("u1", start=now - 20)
        assert [e.category for e in recent.items] == [AuditCategory.SECURITY_BLOCK]

        early = await audit.get_logs_for_user("u1", end=now - 20)
        assert [e.category for e in early.items] == [AuditCategory.PLAN_CREATED]

    async def test_limit_and_offset_are_clamped(self, audit):
        await audit.log(_entry())
        page = await audit.get_logs_for_user("u1", limit=0, offset=-3)
        assert page.limit == 1
        assert page.offset == 0
        assert len(page.items) == 1

    async def test_count_failed_operations_in_window(self, audit):
        now = time.time()
        await audit.log(_entry(success=False, category=AuditCategory.ACTION_FAILED))
        await audit.log(_entry(success=False, category=AuditCategory.SECURITY_BLOCK))
        await audit.log(_entry(success=False, timestamp=now - 7200))
        await audit.log(_entry(success=True))

        assert await audit.count_failed_operations("u1", 3600) == 2
        assert await audit.count_failed_operations("nobody", 3600) == 0


class TestJSONLStore:
    async def test_one_file_per_user(self, tmp_path):
        store = JSONLAuditStore(str(tmp_path / "audit"))
        await store.save(_entry("u1", action="one"))
        await store.save(_entry("u1", action="two"))
        await store.save(_entry("u2", action="three"))

        lines = (tmp_path / "audit" / "u1.jsonl").read_text().strip().split("\n")
        assert [json.loads(l)["action"] for l in lines] == ["one", "two"]
        assert (tmp_path / "audit" / "u2.jsonl").exists()

    async def test_find_round_trip_with_filters(self, tmp_path):
        store = JSONLAuditStore(str(tmp_path))
        await store.save(_entry(action="ok"))
        await store.save(_entry(action="bad", success=False, category=AuditCategory.ACTION_FAILED))

        failed = await store.find("u1", success=False)
        assert [e.action for e in failed] == ["bad"]
        assert await store.find("missing") == []

    async def test_user_id_is_made_filename_safe(self, tmp_path):
        store = JSONLAuditStore(str(tmp_path))
        await store.save(_entry("../evil/user"))
        assert (tmp_path / ".._evil_user.jsonl").exists()
        assert len(await store.find("../evil/user")) == 1

    async def test_logger_over_jsonl(self, tmp_path):
        logger = AuditLogger(JSONLAuditStore(str(tmp_path)))
        await logger.log(_entry(input_payload={"secret": "s"}))
        page = await logger.get_logs_for_user("u1")
        assert page.items[0].input_payload == {"secret": REDACTED}


@pytest.fixture
def memory_store():
    return InMemoryAuditStore()


class TestInMemoryStore:
    async def test_entries_is_a_copy(self, memory_store):
        await memory_store.save(_entry())
        memory_store.entries.clear()
        assert len(memory_store.entries) == 1
