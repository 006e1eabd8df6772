"""
Post-processing of the model's final answer.

The user must never receive an empty reply, a lone "...", or text in a
script other than Portuguese. These helpers clean the model output and
build the recovery reply used when the content is unusable.
"""

import json
import re
from collections.abc import Sequence

from agent.utils.money import format_amount

FALLBACK_REPLY = "Desculpe, não consegui processar sua solicitação. Pode reformular?"
TRUNCATION_NOTICE = "\n\n_(Resposta truncada. Se precisar de mais detalhes, reformule em partes.)_"

# Known glitches where a model emits a CJK word in the middle of Portuguese
_CJK_REPLACEMENTS: tuple[tuple[str, str], ...] = (
    ("確認", "confirmar"),
    ("确认", "confirmar"),
    ("カウント", "contar"),
    ("チェック", "verificar"),
)
_FOREIGN_SCRIPT = re.compile(
    "[\u3000-\u303f\u4e00-\u9faf\u3400-\u4dbf\uff00-\uffef"
    "\u3040-\u309f\u30a0-\u30ff\uac00-\ud7af]"
)
_REPEATED_SPACE = re.compile(r"\s{2,}")
_PLACEHOLDER_ONLY = re.compile(r"^\.{2,}\s*$")


def sanitize_portuguese(text: str) -> str:
    """
    Remove CJK/Hangul characters and collapse whitespace.

    Example:
        >>> sanitize_portuguese("Vamos 確認 o pedido")
        'Vamos confirmar o pedido'
    """
    if not text:
        return text
    for source, target in _CJK_REPLACEMENTS:
        text = text.replace(source, target)
    text = _FOREIGN_SCRIPT.sub("", text)
    return _REPEATED_SPACE.sub(" ", text).strip()


def is_unusable(content: str | None) -> bool:
    """Empty, dots-only, or shorter than 3 characters."""
    if not content:
        return True
    return bool(_PLACEHOLDER_ONLY.match(content)) or len(content) < 3


def finalize_content(content: str | None, finish_reason: str | None) -> str | None:
    """
    Clean the model's final text.

    Returns:
        Sanitized content (with a truncation notice when the model hit the
        length limit), or None when the content is unusable
    """
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        return None
    text = sanitize_portuguese(text)
    if is_unusable(text):
        return None
    if finish_reason == "length":
        text += TRUNCATION_NOTICE
    return text


def summarize_product(tool_text: str) -> str | None:
    """Short availability summary from a JSON product list (first item), else None."""
    if not tool_text or not tool_text.strip().startswith("["):
        return None
    try:
        products = json.loads(tool_text)
    except ValueError:
        return None
    if not isinstance(products, list) or not products or not isinstance(products[0], dict):
        return None

    product = products[0]
    name = product.get("nome") or "Produto"
    sku = product.get("sku") or ""
    promo = product.get("preco_promocional")
    price = promo if promo is not None else product.get("preco_unitario", product.get("preco_tabela"))
    available = product.get("estoque_disponivel") or 0

    summary = f"Encontrei **{name}**" + (f" ({sku})" if sku else "") + ".\n\n"
    summary += f"Preço: R$ {format_amount(price)}" + (" (promocional)" if promo is not None else "")
    summary += f"\nEstoque disponível: {available} unidades.\n\nDeseja fazer o pedido?"
    return summary


def recover_reply(tool_texts: Sequence[str], transition_message: str | None = None) -> str:
    """
    Reply used when the model produced no usable content.

    Order: product summary from the last tool result, the last tool result
    itself, the pending handoff's transition message, the generic apology.
    """
    last = tool_texts[-1] if tool_texts else ""
    summary = summarize_product(last)
    if summary:
        return summary
    if last and last.strip():
        return last.strip()
    if transition_message and transition_message.strip():
        return sanitize_portuguese(transition_message.strip())
    return FALLBACK_REPLY
