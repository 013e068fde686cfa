"""Prompt templates and user-facing Portuguese strings."""

from __future__ import annotations

import json
from typing import Any

from copilot_gateway.tools.interface import ToolMetadata

SYSTEM_PROMPT = """\
Você é o assistente de um sistema de gestão de serviços de campo. Você ajuda \
o usuário a cadastrar clientes, montar orçamentos, abrir ordens de serviço, \
gerar cobranças e consultar esses registros.

Ferramentas disponíveis para este usuário:
{tools}

Responda SEMPRE com um único objeto JSON em um dos formatos:

1. Proposta de operação (escrita, pode faltar informação):
{{"type": "PLAN", "action": "<ferramenta>", "collectedFields": {{...}}, \
"missingFields": ["..."], "suggestedActions": [], "requiresConfirmation": true}}

2. Consulta direta (somente leitura):
{{"type": "CALL_TOOL", "tool": "<ferramenta>", "params": {{...}}}}

3. Pergunta ao usuário:
{{"type": "ASK_USER", "question": "...", "options": ["..."]}}

4. Mensagem informativa:
{{"type": "RESPONSE", "message": "...", "data": null}}

Regras:
- Nunca execute operações de escrita diretamente: use PLAN.
- Nunca invente valores monetários; cobranças exigem um preview antes.
- Estado da conversa: {state}
"""

FIELD_EXTRACTION_MARKER = "[EXTRAÇÃO DE CAMPOS]"
_PAYLOAD_PREFIX = "DADOS: "

EXTRACTION_PROMPT = """\
{marker}
O usuário está fornecendo informações para a operação: {action}
Campos já coletados: {collected}
Campos faltantes: {missing}

Mensagem do usuário: "{message}"

Extraia os valores dos campos faltantes da mensagem e retorne um JSON PLAN \
com "collectedFields" (anteriores + novos) e "missingFields" (ainda faltantes).
{prefix}{payload}
"""


def format_tool_list(tools: list[ToolMetadata]) -> str:
    if not tools:
        return "(nenhuma)"
    return "\n".join(f"- {t.name} [{t.action_type.value}]: {t.description}" for t in tools)


def build_system_prompt(tools: list[ToolMetadata], state: str = "IDLE - Nova requisição") -> str:
    return SYSTEM_PROMPT.format(tools=format_tool_list(tools), state=state)


def format_extraction_prompt(
    action: str,
    collected: dict[str, Any],
    missing: list[str],
    user_message: str,
) -> str:
    payload = {
        "action": action,
        "collectedFields": collected,
        "missingFields": missing,
        "userMessage": user_message,
    }
    return EXTRACTION_PROMPT.format(
        marker=FIELD_EXTRACTION_MARKER,
        action=action,
        collected=json.dumps(collected, ensure_ascii=False, default=str),
        missing=", ".join(missing),
        message=user_message,
        prefix=_PAYLOAD_PREFIX,
        payload=json.dumps(payload, ensure_ascii=False, default=str),
    )


def parse_extraction_payload(prompt: str) -> dict[str, Any] | None:
    """Recover the structured payload embedded by ``format_extraction_prompt``."""
    for line in reversed(prompt.splitlines()):
        if line.startswith(_PAYLOAD_PREFIX):
            try:
                payload = json.loads(line[len(_PAYLOAD_PREFIX):])
            except json.JSONDecodeError:
                return None
            return payload if isinstance(payload, dict) else None
    return None


# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

ACTION_LABELS = {
    "customers.create": "Criar cliente",
    "workOrders.create": "Criar ordem de serviço",
    "quotes.create": "Criar orçamento",
    "billing.previewCharge": "Preview de cobrança",
    "billing.createCharge": "Criar cobrança",
}

SUCCESS_MESSAGES = {
    "customers.create": "✅ Cliente criado com sucesso!",
    "workOrders.create": "✅ Ordem de serviço criada com sucesso!",
    "quotes.create": "✅ Orçamento criado com sucesso!",
    "billing.createCharge": "✅ Cobrança criada com sucesso!",
}

NO_PENDING_OPERATION = (
    "✅ Entendido! Mas parece que não há nenhuma operação pendente.\n\n"
    "Como posso ajudar você agora?"
)
OPERATION_CANCELLED = "Operação cancelada."
PLAN_EXPIRED = "⏰ A operação pendente expirou. Por favor, comece novamente."
ASK_MODIFICATION = "O que você gostaria de alterar?"
CONFIRM_OR_CANCEL = (
    'Por favor, confirme com "sim" ou "confirmo", ou cancele com "não" ou "cancelar".'
)
NOT_UNDERSTOOD = "Desculpe, não entendi sua solicitação."
PAYMENT_WARNING = (
    "⚠️ ATENÇÃO: Esta operação irá gerar uma cobrança REAL.\n"
    'Confirma a operação? (responda "sim, confirmo")'
)


def format_plan_summary(action: str, params: dict[str, Any]) -> str:
    label = ACTION_LABELS.get(action, action)
    lines = [
        f"- {k}: {json.dumps(v, ensure_ascii=False) if isinstance(v, (dict, list)) else v}"
        for k, v in params.items()
        if k != "idempotencyKey"
    ]
    return f"📋 **{label}**\n\n" + "\n".join(lines)


def format_preview(preview: dict[str, Any]) -> str:
    value = preview.get("value")
    amount = f"R$ {value:.2f}" if isinstance(value, (int, float)) else str(value)
    return (
        f"💰 Cliente: {preview.get('customerName', '-')}\n"
        f"💰 Valor: {amount}\n"
        f"💰 Forma de pagamento: {preview.get('billingType', '-')}\n"
        f"💰 Vencimento: {preview.get('dueDate', '-')}"
    )


def format_missing_fields(action: str, missing: list[str]) -> str:
    return f"Para {ACTION_LABELS.get(action, action)}, preciso das seguintes informações:\n" + (
        "\n".join(f"- {f}" for f in missing)
    )


def format_still_missing(missing: list[str]) -> str:
    return "Ainda preciso das seguintes informações:\n" + "\n".join(f"- {f}" for f in missing)


def format_read_result(data: Any) -> str:
    if not data:
        return "Nenhum resultado encontrado."
    if isinstance(data, dict):
        items = data.get("items")
        if isinstance(items, list):
            if not items:
                return "Nenhum resultado encontrado."
            return f"Encontrado(s) {data.get('total') or len(items)} resultado(s)."
    return "Dados recuperados com sucesso."


def format_success(tool: str) -> str:
    return SUCCESS_MESSAGES.get(tool, "✅ Operação concluída com sucesso!")


CONFIRM_QUESTION = "Deseja confirmar esta operação?"


def format_confirmation_request(plan_summary: str, payment: bool = False) -> str:
    return f"{plan_summary}\n\n{PAYMENT_WARNING if payment else CONFIRM_QUESTION}"


def format_please_provide(missing: list[str]) -> str:
    return f"Por favor, forneça: {', '.join(missing)}"


def format_execution_error(error: str | None) -> str:
    return f"Erro ao executar operação: {error}"


def format_read_error(error: str | None) -> str:
    return f"Erro ao buscar dados: {error}"


def format_kb_context(chunks: list[Any]) -> str:
    ctx = "\n\n".join(f"[{c.source}] {c.text}" for c in chunks)
    return (
        f"\n\n---\n\n{ctx}\n\n---\n\n"
        "Use as informações acima da base de conhecimento para responder perguntas "
        "de suporte. Cite as fontes quando relevante."
    )
