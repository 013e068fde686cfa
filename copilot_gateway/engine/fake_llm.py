"""Deterministic stand-in provider for development and tests.

Every reply is one of the four JSON response shapes. ``RULES`` is an ordered
list of ``(name, predicate, builder)``; the first predicate that matches the
turn wins, and no match yields the default help message. Contextual rules
look at the assistant's previous question so multi-turn flows (quote, work
order, charge) can be walked without a real model.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, NamedTuple

from copilot_gateway.engine.llm import LLMProvider
from copilot_gateway.engine.models import LLMRequest, LLMResult, Role, TokenUsage
from copilot_gateway.engine.prompts import FIELD_EXTRACTION_MARKER, parse_extraction_payload

logger = logging.getLogger(__name__)


@dataclass
class FakeTurn:
    last_user: str
    transcript: str
    last_assistant_text: str = ""
    last_assistant_options: list[str] = field(default_factory=list)

    @classmethod
    def from_request(cls, request: LLMRequest) -> FakeTurn:
        messages = request.messages
        last_user = next(
            (m.content for m in reversed(messages) if m.role == Role.USER), "",
        ).strip()
        last_assistant = next(
            (m.content for m in reversed(messages) if m.role == Role.ASSISTANT), "",
        )
        text, options = _decode_assistant(last_assistant)
        return cls(
            last_user=last_user,
            transcript="\n".join(m.content for m in messages),
            last_assistant_text=text,
            last_assistant_options=options,
        )


def _decode_assistant(content: str) -> tuple[str, list[str]]:
    try:
        payload = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return content, []
    if not isinstance(payload, dict):
        return content, []
    text = payload.get("question") or payload.get("message") or content
    return str(text), [str(o) for o in payload.get("options") or []]


class Rule(NamedTuple):
    name: str
    matches: Callable[[FakeTurn], Any]
    build: Callable[[FakeTurn, Any], dict[str, Any]]


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------

def _ask(question: str, options: list[str]) -> dict[str, Any]:
    return {"type": "ASK_USER", "question": question, "options": options}


def _say(message: str, data: Any = None) -> dict[str, Any]:
    out: dict[str, Any] = {"type": "RESPONSE", "message": message}
    if data is not None:
        out["data"] = data
    return out


def _plan(action: str, collected: dict[str, Any], missing: list[str]) -> dict[str, Any]:
    return {
        "type": "PLAN",
        "action": action,
        "collectedFields": collected,
        "missingFields": missing,
        "requiresConfirmation": True,
    }


def _call(tool: str, params: dict[str, Any]) -> dict[str, Any]:
    return {"type": "CALL_TOOL", "tool": tool, "params": params}


DEFAULT_MESSAGE = (
    "Oi! 👋 Não entendi bem o que você precisa.\n\n"
    "Posso ajudar com:\n"
    '• **Clientes** - "criar cliente João"\n'
    '• **Orçamentos** - "fazer orçamento"\n'
    '• **OS** - "abrir ordem de serviço"\n'
    '• **Cobranças** - "gerar cobrança PIX"\n\n'
    "Tenta de novo? 😊"
)

_QUOTE_CLIENT_Q = (
    "Vamos criar um orçamento! 📋\n\n"
    "**Para qual cliente é esse orçamento?**\n\n"
    "Digite o nome do cliente ou parte do nome para eu buscar."
)
_OS_CLIENT_Q = (
    "Vamos abrir uma ordem de serviço! 🔧\n\n"
    "**Para qual cliente é essa OS?**\n\n"
    "Digite o nome do cliente ou parte do nome."
)
_CUSTOMER_NAME_Q = "Vamos cadastrar um novo cliente! 📝\n\n**Qual o nome do cliente?**"


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def _user(pattern: str, flags: int = re.IGNORECASE) -> Callable[[FakeTurn], Any]:
    rx = re.compile(pattern, flags)
    return lambda turn: rx.search(turn.last_user)


_COMMAND = re.compile(
    r"^(?:criar|cadastrar|buscar|listar|abrir|gerar|cobrar|fazer|quero|preciso|"
    r"ajuda|oi|ol[aá]|sim|n[aã]o|cancelar)\b",
    re.IGNORECASE,
)


def _answering(marker: str) -> Callable[[FakeTurn], Any]:
    """The previous assistant turn asked *marker* and the user answered with data."""
    rx = re.compile(re.escape(marker), re.IGNORECASE)

    def predicate(turn: FakeTurn) -> Any:
        if not turn.last_user or _COMMAND.match(turn.last_user):
            return None
        return rx.search(turn.last_assistant_text)

    return predicate


def _quoted_name(text: str) -> str:
    m = re.search(r'para "([^"]+)"', text)
    return m.group(1) if m else "o cliente"


def _extraction(turn: FakeTurn) -> Any:
    if FIELD_EXTRACTION_MARKER not in turn.last_user:
        return None
    return parse_extraction_payload(turn.last_user)


def _build_extraction(turn: FakeTurn, payload: dict[str, Any]) -> dict[str, Any]:
    missing = list(payload.get("missingFields") or [])
    collected = dict(payload.get("collectedFields") or {})
    answer = str(payload.get("userMessage") or "").strip()
    if missing and answer:
        collected[missing.pop(0)] = answer
    return _plan(str(payload.get("action") or ""), collected, missing)


def _option_selected(turn: FakeTurn) -> Any:
    if not re.match(r"^(?:criar|abrir|fazer)(?:\s+(?:um|uma|novo|nova))?$", turn.last_user, re.I):
        return None
    # Stored history keeps only the text; fall back to it when options are gone.
    options = (" ".join(turn.last_assistant_options) or turn.last_assistant_text).lower()
    if "orçamento" in options:
        return "quote"
    if "os" in options.split():
        return "work_order"
    if "cliente" in options:
        return "customer"
    return None


def _build_option(turn: FakeTurn, topic: str) -> dict[str, Any]:
    if topic == "quote":
        return _ask(_QUOTE_CLIENT_Q, ["Ver meus clientes", "Cancelar"])
    if topic == "work_order":
        return _ask(_OS_CLIENT_Q, ["Ver meus clientes", "Cancelar"])
    return _ask(_CUSTOMER_NAME_Q, ["Cancelar"])


def _money(raw: str) -> float:
    return float(raw.replace(",", "."))


# ---------------------------------------------------------------------------
# Ordered rule list: first match wins
# ---------------------------------------------------------------------------

RULES: list[Rule] = [
    Rule("field_extraction", _extraction, _build_extraction),
    Rule(
        "cancel",
        _user(r"^(?:n[aã]o|cancelar|cancela|deixa|esquece|para)[.!]?$"),
        lambda t, m: _say("Tudo bem! Operação cancelada. 👍\n\nSe precisar de algo, é só me chamar!"),
    ),
    Rule(
        "bare_confirmation",
        _user(r"^(?:sim|confirmo|sim,?\s*confirmo|ok|pode|confirmar|isso|exato|correto)[.!]?$"),
        lambda t, m: _say(
            "✅ Entendido! Mas parece que não há nenhuma operação pendente.\n\n"
            "Como posso ajudar você agora?"
        ),
    ),
    # -- contextual follow-ups ---------------------------------------------
    Rule(
        "quote_items",
        _answering("incluir no orçamento"),
        lambda t, m: _say(
            f"✅ Orçamento criado para {_quoted_name(t.last_assistant_text)}!\n\n"
            f"Itens: {t.last_user}\n\nQuer enviar o orçamento para o cliente?",
            data={"client": _quoted_name(t.last_assistant_text), "items": t.last_user},
        ),
    ),
    Rule(
        "quote_client",
        _answering("qual cliente é esse orçamento"),
        lambda t, m: _ask(
            f'Vou criar um orçamento para "{t.last_user}"! 📋\n\n'
            "**O que você quer incluir no orçamento?**\n\n"
            "Me conte os serviços ou produtos que deseja adicionar.",
            ["Cancelar"],
        ),
    ),
    Rule(
        "work_order_service",
        _answering("Qual o serviço a ser realizado"),
        lambda t, m: _say(
            f"✅ Ordem de serviço criada para {_quoted_name(t.last_assistant_text)}!\n\n"
            f"Serviço: {t.last_user}",
            data={"client": _quoted_name(t.last_assistant_text), "description": t.last_user},
        ),
    ),
    Rule(
        "work_order_client",
        _answering("qual cliente é essa OS"),
        lambda t, m: _ask(
            f'Vou abrir uma OS para "{t.last_user}"! 🔧\n\n'
            "**Qual o serviço a ser realizado?**\n\n"
            "Descreva brevemente o trabalho.",
            ["Cancelar"],
        ),
    ),
    Rule(
        "payment_method",
        lambda t: (
            re.search(r"^(?:pix|boleto|cart[aã]o(?:\s+de\s+cr[eé]dito)?)$", t.last_user, re.I)
            if "Como você quer cobrar" in t.last_assistant_text else None
        ),
        lambda t, m: _ask(
            f"Cobrança via **{t.last_user}**! 💰\n\n**Qual o valor da cobrança?**",
            ["Cancelar"],
        ),
    ),
    Rule(
        "customer_name",
        _answering("Qual o nome do cliente"),
        lambda t, m: _plan("customers.create", {"name": t.last_user}, ["phone"]),
    ),
    Rule("option_selected", _option_selected, _build_option),
    # -- customers -----------------------------------------------------------
    Rule(
        "create_customer_named",
        _user(r"(?:criar|cadastrar|novo|adicionar)\s*(?:um\s+)?(?:cliente|customer)\s+(.+)"),
        lambda t, m: _plan("customers.create", {"name": m.group(1).strip()}, ["phone"]),
    ),
    Rule(
        "create_customer",
        _user(r"(?:criar|cadastrar|novo|adicionar)\s*(?:um\s+)?(?:cliente|customer)$"),
        lambda t, m: _ask(_CUSTOMER_NAME_Q, ["Cancelar"]),
    ),
    Rule(
        "search_customers",
        _user(
            r"(?:buscar|listar|pesquisar|procurar|ver|mostrar|encontrar)\s*(?:os\s+)?"
            r"(?:meus\s+)?(?:clientes?|customers?)"
        ),
        lambda t, m: _call("customers.search", {"query": "", "limit": 20, "offset": 0}),
    ),
    Rule(
        "search_quotes",
        _user(r"(?:buscar|listar|pesquisar|procurar|ver|mostrar)\s*(?:os\s+)?(?:meus\s+)?or[çc]amentos"),
        lambda t, m: _call("quotes.search", {"limit": 20, "offset": 0}),
    ),
    Rule(
        "search_work_orders",
        _user(
            r"(?i:buscar|listar|pesquisar|procurar|ver|mostrar)\s*(?i:as\s+)?(?i:minhas\s+)?"
            r"(?:(?i:ordens\s+de\s+servi[çc]o)|\bOS\b)",
            0,
        ),
        lambda t, m: _call("workOrders.search", {"limit": 20, "offset": 0}),
    ),
    Rule(
        "search_charges",
        _user(r"(?:buscar|listar|pesquisar|procurar|ver|mostrar)\s*(?:as\s+)?(?:minhas\s+)?cobran[çc]as"),
        lambda t, m: _call("billing.searchCharges", {"limit": 20, "offset": 0}),
    ),
    Rule(
        "customer_intent",
        _user(r"(?:quero|preciso|gostaria|ajud[ae]|me\s+ajud[ae]).*(?:cliente|customer)"),
        lambda t, m: _ask(
            "Posso ajudar com clientes! 👥\n\nO que você gostaria de fazer?",
            ["Criar novo cliente", "Buscar cliente", "Cancelar"],
        ),
    ),
    # -- quotes --------------------------------------------------------------
    Rule(
        "create_quote_for",
        _user(
            r"(?:criar|fazer|gerar|cadastrar|novo|montar|adicionar)\s*(?:um\s+)?"
            r"(?:or[çc]amento|quote)\s+(?:para|pro?)\s+(.+)"
        ),
        lambda t, m: _ask(
            f'Vou criar um orçamento para "{m.group(1).strip()}"! 📋\n\n'
            "**O que você quer incluir no orçamento?**\n\n"
            "Me conte os serviços ou produtos que deseja adicionar.",
            ["Cancelar"],
        ),
    ),
    Rule(
        "create_quote",
        _user(r"(?:criar|fazer|gerar|cadastrar|novo|montar|adicionar)\s*(?:um\s+)?(?:or[çc]amento|quote)$"),
        lambda t, m: _ask(_QUOTE_CLIENT_Q, ["Ver meus clientes", "Cancelar"]),
    ),
    Rule(
        "quote_word",
        _user(r"^(?:or[çc]amento|quote)s?$"),
        lambda t, m: _ask(
            "Você quer trabalhar com orçamentos? 📋\n\nO que posso fazer por você?",
            ["Criar novo orçamento", "Ver orçamentos pendentes", "Cancelar"],
        ),
    ),
    Rule(
        "quote_intent",
        _user(r"(?:quero|preciso|gostaria|ajud[ae]|me\s+ajud[ae]|como).*(?:or[çc]amento|quote)"),
        lambda t, m: _ask(
            "Posso ajudar com orçamentos! 📋\n\nO que você gostaria de fazer?",
            ["Criar novo orçamento", "Ver orçamentos pendentes", "Cancelar"],
        ),
    ),
    # -- work orders ---------------------------------------------------------
    Rule(
        "create_work_order_for",
        _user(
            r"(?:criar|cadastrar|nova?|abrir|adicionar)\s*(?:uma?\s+)?"
            r"(?:ordem\s+de\s+servi[çc]o|\bos\b)\s+(?:para|pro?)\s+(.+)"
        ),
        lambda t, m: _ask(
            f'Vou abrir uma OS para "{m.group(1).strip()}"! 🔧\n\n'
            "**Qual o serviço a ser realizado?**\n\n"
            "Descreva brevemente o trabalho.",
            ["Cancelar"],
        ),
    ),
    Rule(
        "create_work_order",
        _user(r"(?:criar|cadastrar|nova?|abrir|adicionar)\s*(?:uma?\s+)?(?:ordem\s+de\s+servi[çc]o|\bos)$"),
        lambda t, m: _ask(_OS_CLIENT_Q, ["Ver meus clientes", "Cancelar"]),
    ),
    Rule(
        "work_order_intent",
        _user(r"(?i:quero|preciso|gostaria|ajud[ae]|me\s+ajud[ae]|como).*(?:(?i:ordem\s+de\s+servi[çc]o)|\bOS\b)", 0),
        lambda t, m: _ask(
            "Posso ajudar com ordens de serviço! 🔧\n\nO que você gostaria de fazer?",
            ["Abrir nova OS", "Ver OS pendentes", "Cancelar"],
        ),
    ),
    # -- billing -------------------------------------------------------------
    Rule(
        "charge_value_customer",
        _user(
            r"(?:cobrar|gerar\s+cobran[çc]a|criar\s+cobran[çc]a)\s+(?:de\s+)?R?\$?\s*"
            r"(\d+(?:[.,]\d{1,2})?)\s+(?:de|do|da|para|pro|pra)\s+(.+)"
        ),
        lambda t, m: _plan(
            "billing.createCharge",
            {"customerName": m.group(2).strip(), "value": _money(m.group(1))},
            ["billingType"],
        ),
    ),
    Rule(
        "charge_value",
        _user(r"(?:cobrar|gerar\s+cobran[çc]a|criar\s+cobran[çc]a).*?(?:de\s+)?R?\$?\s*(\d+(?:[.,]\d{1,2})?)"),
        lambda t, m: _ask(
            f"Vou gerar uma cobrança de **R$ {_money(m.group(1)):.2f}**! 💰\n\n"
            "**Para qual cliente é essa cobrança?**\n\nDigite o nome do cliente.",
            ["Ver meus clientes", "Cancelar"],
        ),
    ),
    Rule(
        "charge_intent",
        _user(r"(?:cobrar|cobran[çc]a|pagamento|boleto|pix|gerar\s+cobran)"),
        lambda t, m: _ask(
            "Vamos gerar uma cobrança! 💰\n\n**Como você quer cobrar?**",
            ["PIX", "Boleto", "Cartão de Crédito", "Cancelar"],
        ),
    ),
    # -- knowledge base ------------------------------------------------------
    Rule(
        "kb_question",
        _user(
            r"(?:como\s+(?:eu\s+)?(?:fa[çc]o|posso|funciona|emito|configuro|exporto)|"
            r"d[uú]vida\s+sobre|o\s+que\s+[eé]\s+)"
        ),
        lambda t, m: _call("kb.search", {"query": t.last_user, "limit": 3}),
    ),
    # -- small talk ----------------------------------------------------------
    Rule(
        "greeting",
        _user(r"^(?:oi|ol[aá]|hey|hi|hello|bom\s+dia|boa\s+tarde|boa\s+noite|e\s+a[ií])[!.]?$"),
        lambda t, m: _say(
            "Olá! 👋 Sou seu assistente.\n\n"
            "Posso ajudar você a:\n"
            "• Criar e gerenciar **clientes**\n"
            "• Fazer **orçamentos**\n"
            "• Abrir **ordens de serviço**\n"
            "• Gerar **cobranças** (PIX, Boleto, Cartão)\n\n"
            "O que você precisa hoje?"
        ),
    ),
    Rule(
        "help",
        _user(r"(?:ajuda|help|me\s+ajud[ae]|preciso\s+de\s+ajuda)"),
        lambda t, m: _ask(
            "Claro! Estou aqui para ajudar! 🤝\n\nO que você precisa fazer?",
            ["Criar cliente", "Fazer orçamento", "Abrir OS", "Gerar cobrança"],
        ),
    ),
    Rule(
        "capabilities",
        _user(
            r"(?:o\s+que\s+(?:voc[eê]|vc)\s+(?:faz|pode|consegue)|"
            r"quais?\s+(?:s[aã]o\s+)?(?:suas?\s+)?fun[çc][oõ]es)"
        ),
        lambda t, m: _say(
            "Posso ajudar você com várias tarefas do dia a dia! 🚀\n\n"
            "**👥 Clientes**\nCriar, buscar e atualizar cadastros\n\n"
            "**📋 Orçamentos**\nMontar orçamentos para seus clientes\n\n"
            "**🔧 Ordens de Serviço**\nAbrir e acompanhar OS\n\n"
            "**💰 Cobranças**\nGerar PIX, Boleto ou Cartão\n\n"
            "É só me dizer o que precisa!"
        ),
    ),
    Rule(
        "thanks",
        _user(r"(?:obrigad[oa]|valeu|thanks|vlw|brigad)"),
        lambda t, m: _say("Por nada! 😊 Precisando, é só chamar!"),
    ),
]


class FakeLLMProvider(LLMProvider):
    """Always available; never raises."""

    name = "fake"

    def __init__(self, rules: list[Rule] | None = None) -> None:
        self.rules = list(RULES if rules is None else rules)

    def is_available(self) -> bool:
        return True

    def respond(self, turn: FakeTurn) -> tuple[str, dict[str, Any]]:
        """Return ``(rule name, response shape)`` for *turn*."""
        if turn.last_user:
            for rule in self.rules:
                match = rule.matches(turn)
                if match:
                    return rule.name, rule.build(turn, match)
        return "default", _say(DEFAULT_MESSAGE)

    async def complete(self, request: LLMRequest) -> LLMResult:
        turn = FakeTurn.from_request(request)
        logger.debug("fake llm processing: %.100s", turn.last_user)
        rule_name, payload = self.respond(turn)
        logger.debug("fake llm rule=%s type=%s", rule_name, payload["type"])
        content = json.dumps(payload, ensure_ascii=False)
        prompt_tokens = max(1, len(turn.transcript) // 4)
        completion_tokens = max(1, len(content) // 4)
        return LLMResult(
            content=content,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )
