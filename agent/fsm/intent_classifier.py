"""
Rule-based intent classifier.

Intent detection is deterministic and never calls the LLM. Rules are data:
an ordered tuple of (IntentType, patterns). The first rule with a matching
pattern wins, so more specific categories come before general ones (a bare
document must win over a quantity, "quero 2 unidades" over "quero comprar").

Pure-digit messages are decided by length before any rule runs:
11 or 14 digits is a document (CPF/CNPJ), anything else is a quantity.
"""

import logging
import re
from dataclasses import dataclass

from agent.fsm.models import IntentType

logger = logging.getLogger(__name__)

MIN_QUANTITY = 1
MAX_QUANTITY = 9999

_PURE_DIGITS = re.compile(r"^[0-9]+$")
_FIRST_INTEGER = re.compile(r"\d+")
_TRANSFER_WORD = re.compile(r"\btransfer", re.IGNORECASE)


@dataclass(frozen=True)
class IntentRule:
    """One entry of the rule table: label plus case-insensitive patterns."""

    intent: IntentType
    patterns: tuple[re.Pattern[str], ...]

    @classmethod
    def of(cls, intent: IntentType, *patterns: str) -> "IntentRule":
        return cls(intent, tuple(re.compile(p, re.IGNORECASE) for p in patterns))

    def matches(self, text: str) -> bool:
        return any(p.search(text) for p in self.patterns)


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule.of(
        IntentType.PROVIDE_DOCUMENT,
        r"\b\d{3}\.?\d{3}\.?\d{3}[-.]?\d{2}\b",  # CPF, formatted or not
        r"\b\d{2}\.?\d{3}\.?\d{3}/?\d{4}[-.]?\d{2}\b",  # CNPJ, formatted or not
        r"\b\d{11}\b",
        r"\b\d{14}\b",
    ),
    IntentRule.of(
        IntentType.START_ORDER_WITH_QUANTITY,
        r"(sim\s*,?\s*)?(quero|levar|desejo|preciso)\s+\d+\s*unidades?",
        r"\d+\s*unidades?\s*(do\s+)?(produto|esse)?",
    ),
    IntentRule.of(
        IntentType.CONFIRM,
        r"^(sim|s|yes|pode|pode ser|t[aá] bom|claro|com certeza|isso|isso mesmo|ok|beleza"
        r"|bora|vamos|confirmo|confirma|aceito|certo)\s*[.!]?\s*$",
    ),
    IntentRule.of(
        IntentType.DENY,
        r"^(n[aã]o|nope|nem|deixa|n|cancela|cancelar|desisto)\s*[.!]?\s*$",
    ),
    IntentRule.of(
        IntentType.HUMAN_AGENT,
        r"\b(atendente|humano|pessoa|falar com algu[eé]m|suporte)\b",
    ),
    IntentRule.of(
        IntentType.START_ORDER,
        r"\b(fazer\s+(um\s+)?pedido|quero\s+(comprar|pedir|encomendar)|fechar\s+pedido"
        r"|vamos\s+(fechar|fazer))\b",
        r"\b(pedido\s+(com\s+)?este|comprar\s+esse|levar\s+esse)\b",
    ),
    IntentRule.of(
        IntentType.FINANCIAL,
        r"\b(boleto|2[aª]\s*via|t[ií]tulo|financeiro|d[ií]vida|pagar|pagamento|fatura)\b",
    ),
    IntentRule.of(
        IntentType.ORDER_STATUS,
        r"\b(status|acompanhar|rastrear|onde\s+est[aá]|meu\s+pedido|pedidos)\b",
    ),
    IntentRule.of(
        IntentType.STOCK_QUERY,
        r"\b(estoque|pre[cç]o|quanto\s+custa|disponibilidade|tem\s+.+\s*\?|valor|tabela)\b",
        r"\bPROD-\d+",
        r"\b(cimento|argamassa|tijolo|areia|ferro|tubo|tinta|cal|telha|vergalh[aã]o|bloco)\b",
    ),
    IntentRule.of(
        IntentType.GREETING,
        r"^(oi|ol[aá]|bom\s+dia|boa\s+tarde|boa\s+noite|e\s+a[ií]|fala|hey|hi|hello|eae)"
        r"\s*[!.,]?\s*$",
    ),
)


def classify(text: str, rules: tuple[IntentRule, ...] = INTENT_RULES) -> IntentType:
    """
    Map raw message text to an intent label.

    Args:
        text: Raw user message
        rules: Ordered rule table (defaults to INTENT_RULES)

    Returns:
        Label of the first matching rule, or IntentType.UNKNOWN

    Example:
        >>> classify("12345678901")
        <IntentType.PROVIDE_DOCUMENT: 'provide_document'>
        >>> classify("sim quero 2 unidades do produto")
        <IntentType.START_ORDER_WITH_QUANTITY: 'start_order_with_quantity'>
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return IntentType.UNKNOWN

    if _PURE_DIGITS.match(trimmed):
        if len(trimmed) in (11, 14):
            return IntentType.PROVIDE_DOCUMENT
        return IntentType.PROVIDE_QUANTITY

    for rule in rules:
        if rule.matches(trimmed):
            return rule.intent

    return IntentType.UNKNOWN


def extract_quantity(text: str) -> int | None:
    """
    Return the first integer literal in text when it lies in [1, 9999].

    Example:
        >>> extract_quantity("sim quero 2 unidades do produto")
        2
        >>> extract_quantity("quero unidades") is None
        True
    """
    match = _FIRST_INTEGER.search(text or "")
    if not match:
        return None
    value = int(match.group(0))
    if MIN_QUANTITY <= value <= MAX_QUANTITY:
        return value
    return None


def mentions_transfer(text: str) -> bool:
    """True when the message explicitly asks for a transfer (transferir, transferência...)."""
    return bool(_TRANSFER_WORD.search(text or ""))
