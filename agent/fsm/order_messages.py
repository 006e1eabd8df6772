"""
Reply templates for the order flow.

Templates use {{placeholder}} syntax. Tenants override any key through
prompt.orderFlowMessages in their configuration; missing keys fall back to
the built-in Portuguese defaults below.
"""

import re
from collections.abc import Mapping

DEFAULT_ORDER_FLOW_MESSAGES: dict[str, str] = {
    "askProduct": (
        "Para fazer um pedido, primeiro preciso saber qual produto deseja. "
        "Poderia informar o nome ou código?"
    ),
    "askDocument": (
        "Ótimo! Você deseja fazer um pedido de **{{productName}}**.\n\n"
        "Para prosseguir, preciso que informe seu CPF ou CNPJ."
    ),
    "askDocumentWithQuantity": (
        "Ótimo! Você quer **{{qty}} unidades** de **{{productName}}** (total R$ {{total}}).\n\n"
        "Para prosseguir, preciso que informe seu CPF ou CNPJ."
    ),
    "invalidDocument": (
        "Não consegui identificar um CPF ou CNPJ válido. "
        "Por favor, informe um CPF (11 dígitos) ou CNPJ (14 dígitos)."
    ),
    "customerNotFound": (
        "Não encontramos um cadastro ativo com este documento. "
        "Verifique o número informado ou entre em contato com nosso atendimento."
    ),
    "customerBlocked": (
        "O cadastro de **{{name}}** está bloqueado (motivo: {{reason}}). "
        "Por favor, entre em contato com o setor financeiro para regularizar sua situação."
    ),
    "validationUnavailable": (
        "Não consegui validar seu cadastro neste momento. "
        "Por favor, envie o CPF ou CNPJ novamente em instantes."
    ),
    "askQuantity": (
        "Cadastro validado! Olá, **{{customerName}}**.\n\n"
        "Produto: **{{productName}}**\n"
        "Preço unitário: **R$ {{preco}}**\n"
        "Estoque disponível: **{{available}} unidades**\n\n"
        "Qual a quantidade desejada?"
    ),
    "invalidQuantity": "Por favor, informe uma quantidade válida (número inteiro positivo).",
    "onlyNUnitsAvailable": (
        "Infelizmente só temos **{{available}} unidades** disponíveis de {{productName}}.\n\n"
        "Deseja prosseguir com as {{available}} unidades disponíveis?"
    ),
    "outOfStock": (
        "Infelizmente **{{productName}}** está sem estoque no momento. "
        "Posso ajudar com outro produto?"
    ),
    "confirmOrder": (
        "Cadastro validado! Olá, **{{customerName}}**.\n\n"
        "Resumo do pedido:\n\n"
        "📦 **{{productName}}** × {{quantity}} unidades\n"
        "💰 Total: **R$ {{total}}**\n"
        "👤 Cliente: **{{customerName}}**\n\n"
        "Confirma o pedido?"
    ),
    "confirmOrderQuantity": (
        "Resumo do pedido:\n\n"
        "📦 **{{productName}}** × {{quantity}} unidades\n"
        "💰 Total: **R$ {{total}}**\n"
        "👤 Cliente: **{{customerName}}**\n\n"
        "Confirma o pedido?"
    ),
    "orderSuccess": (
        "Perfeito! Seu pedido de **{{quantity}} unidades** de **{{productName}}** foi registrado.\n\n"
        "**Número do pedido:** {{pedido_id}}\n\n"
        "{{mensagem}} 🙏"
    ),
    "orderErrorFallback": (
        "Seu pedido de **{{quantity}} unidades** de **{{productName}}** foi anotado e "
        "encaminhado para nossa equipe finalizar. Em caso de dúvida, informe que você já "
        "confirmou o pedido.\n\n"
        "Obrigada pela preferência! 🙏"
    ),
    "orderCancelled": "Pedido cancelado. Se precisar de algo mais, estou à disposição!",
    "confirmYesNo": "Por favor, confirme com **Sim** para prosseguir ou **Não** para cancelar o pedido.",
}

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def build_order_flow_messages(overrides: Mapping[str, str] | None = None) -> dict[str, str]:
    """
    Merge tenant overrides onto the defaults.

    Blank overrides are ignored. A custom confirmOrder also replaces
    confirmOrderQuantity so tenants only need to write one summary.
    """
    messages = dict(DEFAULT_ORDER_FLOW_MESSAGES)
    for key, value in (overrides or {}).items():
        if isinstance(value, str) and value.strip():
            messages[key] = value.strip()

    custom_confirm = (overrides or {}).get("confirmOrder")
    custom_confirm_quantity = (overrides or {}).get("confirmOrderQuantity")
    if custom_confirm and custom_confirm.strip() and not (
        custom_confirm_quantity and custom_confirm_quantity.strip()
    ):
        messages["confirmOrderQuantity"] = custom_confirm.strip()
    return messages


def apply_template(template: str, **values: object) -> str:
    """
    Substitute {{name}} placeholders; unknown placeholders are left untouched.

    Example:
        >>> apply_template("Olá, {{name}}!", name="João")
        'Olá, João!'
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        value = values[key]
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_replace, template)
