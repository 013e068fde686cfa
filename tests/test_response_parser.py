"""Tests for the LLM response parser — extraction, shapes, defaults, helpers."""

from __future__ import annotations

import pytest

from copilot_gateway.engine import parser
from copilot_gateway.engine.models import (
    AskUserResponse,
    CallToolResponse,
    InformativeResponse,
    PlanResponse,
)


class TestPlainText:
    def test_text_without_json_is_informative(self):
        result = parser.parse("Olá! Como posso ajudá-lo?")
        assert result.success
        assert isinstance(result.response, InformativeResponse)
        assert result.response.type == "RESPONSE"
        assert result.response.message == "Olá! Como posso ajudá-lo?"

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty_content_fails(self, raw):
        result = parser.parse(raw)
        assert not result.success
        assert result.error == "Empty or invalid content"
        assert result.error_code == parser.EMPTY_CONTENT

    def test_json_with_unknown_type_is_text(self):
        raw = '{"type": "SOMETHING", "foo": 1}'
        result = parser.parse(raw)
        assert result.success
        assert isinstance(result.response, InformativeResponse)
        assert result.response.message == raw

    def test_json_array_is_text(self):
        result = parser.parse("[1, 2, 3]")
        assert isinstance(result.response, InformativeResponse)


class TestExtraction:
    def test_fenced_json_block(self):
        raw = 'Aqui está:\n```json\n{"type": "CALL_TOOL", "tool": "customers.search"}\n```\nFim.'
        result = parser.parse(raw)
        assert isinstance(result.response, CallToolResponse)
        assert result.response.tool == "customers.search"

    def test_plain_fence(self):
        raw = '```\n{"type": "RESPONSE", "message": "oi"}\n```'
        result = parser.parse(raw)
        assert isinstance(result.response, InformativeResponse)
        assert result.response.message == "oi"

    def test_json_embedded_in_prose(self):
        raw = 'Claro! {"type": "ASK_USER", "question": "Qual cliente?"} Aguardo.'
        result = parser.parse(raw)
        assert isinstance(result.response, AskUserResponse)
        assert result.response.question == "Qual cliente?"

    def test_braces_inside_strings_do_not_break_scan(self):
        raw = 'x {"type": "RESPONSE", "message": "use {chaves} e \\"aspas\\""} y'
        result = parser.parse(raw)
        assert result.response.message == 'use {chaves} e "aspas"'

    def test_extract_json_returns_none_without_object(self):
        assert parser.extract_json("nada aqui {incompleto") is None


class TestShapes:
    def test_plan_defaults(self):
        result = parser.parse('{"type": "PLAN", "action": "customers.create"}')
        plan = result.response
        assert isinstance(plan, PlanResponse)
        assert plan.collected_fields == {}
        assert plan.missing_fields == []
        assert plan.suggested_actions == []
        assert plan.requires_confirmation is True

    def test_plan_keeps_optional_fields(self):
        raw = (
            '{"type": "PLAN", "action": "customers.create", '
            '"collectedFields": {"name": "João"}, "missingFields": ["phone"], '
            '"suggestedActions": ["x"], "requiresConfirmation": false, "message": "Qual o telefone?"}'
        )
        plan = parser.parse(raw).response
        assert plan.collected_fields == {"name": "João"}
        assert plan.missing_fields == ["phone"]
        assert plan.suggested_actions == ["x"]
        assert plan.requires_confirmation is False
        assert plan.message == "Qual o telefone?"

    def test_call_tool_defaults_params(self):
        call = parser.parse('{"type": "CALL_TOOL", "tool": "kb.search"}').response
        assert call.params == {}

    def test_ask_user_options(self):
        ask = parser.parse('{"type": "ASK_USER", "question": "Q?", "options": ["a", "b"]}').response
        assert ask.options == ["a", "b"]
        assert ask.context is None

    def test_response_data(self):
        resp = parser.parse('{"type": "RESPONSE", "message": "ok", "data": {"n": 1}}').response
        assert resp.data == {"n": 1}

    def test_plan_missing_action_fails(self):
        result = parser.parse('{"type": "PLAN", "collectedFields": {}}')
        assert not result.success
        assert result.error_code == parser.MISSING_FIELD
        assert "action" in result.error
        assert result.raw_text is not None

    def test_call_tool_missing_tool_fails(self):
        result = parser.parse('{"type": "CALL_TOOL", "params": {}}')
        assert not result.success
        assert "tool" in result.error

    def test_wrong_field_type_is_invalid_structure(self):
        result = parser.parse('{"type": "PLAN", "action": "x", "missingFields": "phone"}')
        assert not result.success
        assert result.error_code == parser.INVALID_STRUCTURE


class TestHelpers:
    def test_discriminators(self):
        plan = parser.parse('{"type": "PLAN", "action": "a"}').response
        assert parser.is_plan(plan)
        assert not parser.is_tool_call(plan)
        assert not parser.is_ask_user(plan)
        assert not parser.is_informative(plan)

    @pytest.mark.parametrize("name", [
        "customers.create", "quotes.updateStatus", "workOrders.delete",
        "billing.createCharge", "items.remove", "quotes.send", "customers.upsert",
        "customers.addAddress",
    ])
    def test_write_tools(self, name):
        assert parser.is_write_tool(name)

    @pytest.mark.parametrize("name", [
        "customers.search", "customers.get", "billing.previewCharge", "kb.search", "reports.list",
        "billing.settings", "customers.addressesList", "quotes.sendingStats", "billing.searchCharges",
    ])
    def test_read_tools(self, name):
        assert not parser.is_write_tool(name)

    def test_payment_create_tool(self):
        assert parser.is_payment_create_tool("billing.createCharge")
        assert not parser.is_payment_create_tool("billing.previewCharge")
