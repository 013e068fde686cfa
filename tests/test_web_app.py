"""Tests for the FastAPI adapter — routing, error mapping, request metadata."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from copilot_gateway import create_gateway
from copilot_gateway.adapters.web_fastapi.app import create_app
from copilot_gateway.config import GatewaySettings
from copilot_gateway.engine.fake_llm import FakeLLMProvider


@pytest.fixture
def client(gateway):
    return TestClient(create_app(gateway))


def _chat(client, message: str, conversation_id: str | None = None, user_id: str = "user-pro"):
    body = {"user_id": user_id, "message": message}
    if conversation_id:
        body["conversation_id"] = conversation_id
    return client.post("/chat", json=body, headers={"user-agent": "pytest-client"})


class TestChat:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_chat_round_trip(self, client):
        resp = _chat(client, "Olá")
        assert resp.status_code == 200
        body = resp.json()
        assert body["state"] == "IDLE"
        assert body["message"].startswith("Olá!")
        assert body["conversation_id"]

    def test_request_metadata_reaches_audit(self, client, audit_store):
        _chat(client, "listar meus clientes")
        entry = audit_store.entries[-1]
        assert entry.user_agent == "pytest-client"
        assert entry.ip_address == "testclient"

    def test_multi_turn_with_confirm_endpoint(self, client, business_store):
        first = _chat(client, "criar cliente Pedro").json()
        cid = first["conversation_id"]
        second = _chat(client, "11 95555-0000", cid).json()
        assert second["state"] == "AWAITING_CONFIRMATION"

        resp = client.post(
            f"/conversations/{cid}/confirm",
            json={"user_id": "user-pro", "plan_id": second["plan"]["id"]},
        )
        assert resp.status_code == 200
        assert resp.json()["state"] == "EXECUTING"
        assert any(c.name == "Pedro" for c in business_store.customers.values())

    def test_reject_endpoint(self, client):
        cid = _chat(client, "criar cliente Pedro").json()["conversation_id"]
        resp = client.post(f"/conversations/{cid}/reject", json={"user_id": "user-pro"})
        assert resp.json()["state"] == "REJECTED"

    def test_missing_message_is_422(self, client):
        assert client.post("/chat", json={"user_id": "u"}).status_code == 422


class TestErrorMapping:
    def test_unknown_conversation_is_404(self, client):
        resp = _chat(client, "oi", "nope")
        assert resp.status_code == 404
        assert "nope" in resp.json()["detail"]

    def test_foreign_conversation_is_404(self, client):
        cid = _chat(client, "oi").json()["conversation_id"]
        resp = client.get(f"/conversations/{cid}", params={"user_id": "someone-else"})
        assert resp.status_code == 404

    def test_rate_limit_is_429(self, subscriptions, business_store, audit_store):
        gateway = create_gateway(
            GatewaySettings(llm_provider="fake", max_requests_per_minute=1),
            subscriptions=subscriptions,
            business_store=business_store,
            audit_store=audit_store,
            llm=FakeLLMProvider(),
        )
        client = TestClient(create_app(gateway))
        cid = _chat(client, "oi").json()["conversation_id"]

        resp = _chat(client, "oi", cid)

        assert resp.status_code == 429
        assert resp.json()["reason"] == "requests"


class TestQueries:
    def test_get_conversation(self, client):
        cid = _chat(client, "oi").json()["conversation_id"]
        body = client.get(f"/conversations/{cid}", params={"user_id": "user-pro"}).json()
        assert [m["role"] for m in body["messages"]] == ["user", "assistant"]

    def test_tools_by_tier(self, client):
        free = client.get("/tools", params={"user_id": "user-free"}).json()
        assert {t["name"] for t in free} == {
            "customers.search", "customers.get", "quotes.search", "quotes.get",
            "workOrders.search", "workOrders.get", "kb.search",
        }

    def test_audit_paging(self, client):
        cid = _chat(client, "criar cliente Pedro").json()["conversation_id"]
        _chat(client, "cancelar", cid)

        page = client.get("/audit", params={"user_id": "user-pro", "limit": 1}).json()
        assert page["total"] == 2
        assert page["has_more"] is True
        assert page["items"][0]["category"] == "PLAN_REJECTED"

        filtered = client.get(
            "/audit", params={"user_id": "user-pro", "category": "PLAN_CREATED"},
        ).json()
        assert filtered["total"] == 1

    def test_audit_limit_is_bounded(self, client):
        assert client.get("/audit", params={"user_id": "u", "limit": 0}).status_code == 422

    def test_pending_plans(self, client):
        cid = _chat(client, "criar cliente Pedro").json()["conversation_id"]
        assert client.get("/plans", params={"user_id": "user-pro"}).json() == []

        plan_id = _chat(client, "11 95555-0000", cid).json()["plan"]["id"]
        plans = client.get("/plans", params={"user_id": "user-pro"}).json()
        assert [p["id"] for p in plans] == [plan_id]
        assert plans[0]["conversation_id"] == cid

    def test_close_endpoint(self, client):
        cid = _chat(client, "criar cliente Pedro").json()["conversation_id"]

        resp = client.post(f"/conversations/{cid}/close", json={"user_id": "user-pro"})

        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"
        assert resp.json()["pending_plan"] is None

    def test_close_unknown_conversation_is_404(self, client):
        resp = client.post("/conversations/nope/close", json={"user_id": "user-pro"})
        assert resp.status_code == 404
