"""In-memory keyword-overlap retrieval — stand-in for vector search."""

from __future__ import annotations

import re
import unicodedata

from copilot_gateway.knowledge.interface import DocChunk, KnowledgeBase

SAMPLE_CORPUS: list[DocChunk] = [
    DocChunk(
        id="faq-1",
        text="Para emitir uma cobrança PIX, abra o cliente, escolha Nova cobrança, "
             "informe o valor e a forma de pagamento PIX. O QR Code é enviado ao cliente.",
        source="faq_cobrancas.md",
    ),
    DocChunk(
        id="faq-2",
        text="Boletos vencidos podem ser reemitidos com nova data de vencimento "
             "na tela de cobranças, opção Segunda via.",
        source="faq_cobrancas.md",
    ),
    DocChunk(
        id="faq-3",
        text="Um orçamento aprovado pelo cliente pode ser convertido em ordem de serviço "
             "com um clique na tela do orçamento.",
        source="faq_orcamentos.md",
    ),
    DocChunk(
        id="faq-4",
        text="Para cadastrar um cliente informe nome, telefone e, opcionalmente, "
             "e-mail, CPF ou CNPJ e endereço.",
        source="faq_clientes.md",
    ),
    DocChunk(
        id="faq-5",
        text="Ordens de serviço podem receber checklist, fotos e assinatura do cliente "
             "pelo aplicativo do técnico, inclusive offline.",
        source="faq_ordens_servico.md",
    ),
    DocChunk(
        id="faq-6",
        text="Para exportar relatórios de faturamento, acesse Relatórios, escolha o período "
             "e clique em Exportar planilha.",
        source="faq_relatorios.md",
    ),
]

_STOPWORDS = frozenset({
    "a", "o", "as", "os", "um", "uma", "de", "do", "da", "dos", "das", "e", "em",
    "no", "na", "para", "por", "com", "que", "como", "eu", "faco", "posso", "se", "meu", "minha",
})


def _normalize(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def tokenize(text: str) -> set[str]:
    return {w for w in re.findall(r"\w+", _normalize(text)) if w not in _STOPWORDS}


class InMemoryKnowledgeBase(KnowledgeBase):
    """Keyword-overlap scorer over a static corpus."""

    def __init__(self, corpus: list[DocChunk] | None = None) -> None:
        self._corpus = corpus if corpus is not None else list(SAMPLE_CORPUS)

    async def search(self, query: str, k: int = 3, min_score: float = 0.0) -> list[DocChunk]:
        query_words = tokenize(query)
        scored: list[DocChunk] = []
        for chunk in self._corpus:
            overlap = len(query_words & tokenize(chunk.text))
            if overlap > 0:
                score = round(overlap / max(len(query_words), 1), 4)
                if score >= min_score:
                    scored.append(chunk.model_copy(update={"score": score}))
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored[:k]
