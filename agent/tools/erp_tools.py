"""
Built-in ERP lookup tools.

consultar_cliente, consultar_titulos, consultar_pedidos and consultar_estoque
read the agent's fixture data in mock mode and call the ERP otherwise (see
agent.services.erp_client.ErpClient). Results are JSON text the model can
quote from, or a short Portuguese sentence when nothing was found.
"""

import json
import logging
from typing import Any, Literal

import httpx
from pydantic import BaseModel, Field

from agent.tools.registry import ToolContext, ToolKind, ToolSpec
from agent.utils.document import normalize_document
from agent.utils.money import format_brl
from agent.utils.product_search import product_matches_search
from shared.tenant_config import ToolConfig

logger = logging.getLogger(__name__)

CUSTOMER_NOT_FOUND = "Cliente não encontrado na base de dados."
CUSTOMER_ERROR = "Erro ao consultar dados do cliente. Tente novamente."
TITLES_NOT_FOUND = "Nenhum título encontrado com os critérios informados."
TITLES_ERROR = "Erro ao consultar títulos financeiros."
ORDERS_NOT_FOUND = "Nenhum pedido encontrado para este cliente nos últimos 60 dias."
ORDERS_ERROR = "Erro ao consultar pedidos."
PRODUCTS_NOT_FOUND = "Nenhum produto encontrado com esse termo de busca."
STOCK_ERROR = "Erro ao consultar estoque."


def _dumps(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, default=str)


def _parameters(schema: type[BaseModel]) -> dict[str, Any]:
    """JSON schema of a pydantic args model, without pydantic's titles."""
    parameters = schema.model_json_schema()
    parameters.pop("title", None)
    for prop in parameters.get("properties", {}).values():
        prop.pop("title", None)
        prop.pop("default", None)
    parameters.setdefault("required", [])
    return parameters


# =============================================================================
# Argument schemas
# =============================================================================


class ConsultarClienteSchema(BaseModel):
    documento: str = Field(
        description="CPF ou CNPJ do cliente (pode ser formatado ou apenas números)."
    )


class ConsultarTitulosSchema(BaseModel):
    documento: str = Field(description="CPF ou CNPJ do cliente.")
    status: Literal["vencido", "a_vencer"] | None = Field(
        default=None, description="Filtrar por status. Omitir para retornar todos."
    )


class ConsultarPedidosSchema(BaseModel):
    documento: str = Field(description="CPF ou CNPJ do cliente.")
    status: Literal["faturado", "em_transito", "aguardando_faturamento"] | None = Field(
        default=None, description="Filtrar por status do pedido. Omitir para retornar todos."
    )


class ConsultarEstoqueSchema(BaseModel):
    busca: str = Field(description="Nome do produto ou código SKU para busca.")


# =============================================================================
# Result shaping
# =============================================================================


def format_title(title: dict[str, Any]) -> dict[str, Any]:
    return {
        "nota": title.get("numero_nota"),
        "valor": format_brl(title.get("valor_atualizado")),
        "vencimento": title.get("vencimento"),
        "status": "VENCIDO" if title.get("status") == "vencido" else "A VENCER",
        "link_boleto": title.get("pdf_url"),
        "linha_digitavel": title.get("linha_digitavel"),
    }


def format_order(order: dict[str, Any]) -> dict[str, Any]:
    nfe = order.get("nfe") or {}
    tracking = order.get("rastreio")
    return {
        "pedido": order.get("id"),
        "data": order.get("data"),
        "valor_total": format_brl(order.get("valor_total")),
        "status": order.get("status"),
        "nfe_numero": nfe.get("numero") or None,
        "danfe_url": nfe.get("danfe_url") or None,
        "rastreio": (
            f"{tracking.get('transportadora')} - {tracking.get('codigo')} ({tracking.get('status')})"
            if tracking
            else None
        ),
    }


def format_product(product: dict[str, Any]) -> dict[str, Any]:
    available = product.get("estoque_disponivel") or 0
    return {
        "nome": product.get("nome"),
        "sku": product.get("sku"),
        "estoque_disponivel": available,
        "estoque_status": "Disponível" if available > 0 else "Sem estoque",
        "preco_unitario": product.get("preco_tabela"),
        "preco_promocional": product.get("preco_promocional"),
    }


# =============================================================================
# Executors
# =============================================================================


async def consultar_cliente(context: ToolContext, args: dict[str, Any]) -> str:
    documento = str(args.get("documento") or "")
    digits = normalize_document(documento)

    clientes = context.erp.mock_section("clientes")
    if clientes is not None:
        record = clientes.get(digits)
        return _dumps(record) if record else CUSTOMER_NOT_FOUND

    try:
        data = await context.erp.get_json("clientes", {"doc": documento})
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            return CUSTOMER_NOT_FOUND
        logger.error(f"consultar_cliente failed | status={e.response.status_code}")
        return CUSTOMER_ERROR
    except Exception as e:
        logger.error(f"consultar_cliente failed | error={e}")
        return CUSTOMER_ERROR
    return _dumps(data)


async def consultar_titulos(context: ToolContext, args: dict[str, Any]) -> str:
    documento = str(args.get("documento") or "")
    status = args.get("status")

    titulos = context.erp.mock_section("titulos")
    if titulos is not None:
        items = titulos.get(normalize_document(documento), [])
        if status:
            items = [t for t in items if t.get("status") == status]
    else:
        params = {"doc": documento}
        if status:
            params["status"] = status
        try:
            items = await context.erp.get_json("titulos", params) or []
        except Exception as e:
            logger.error(f"consultar_titulos failed | error={e}")
            return TITLES_ERROR

    if not items:
        return TITLES_NOT_FOUND
    return _dumps([format_title(t) for t in items])


async def consultar_pedidos(context: ToolContext, args: dict[str, Any]) -> str:
    documento = str(args.get("documento") or "")
    status = args.get("status")

    pedidos = context.erp.mock_section("pedidos")
    if pedidos is not None:
        items = pedidos.get(normalize_document(documento), [])
        if status:
            items = [p for p in items if p.get("status") == status]
    else:
        params = {"doc": documento}
        if status:
            params["status"] = status
        try:
            items = await context.erp.get_json("pedidos", params) or []
        except Exception as e:
            logger.error(f"consultar_pedidos failed | error={e}")
            return ORDERS_ERROR

    if not items:
        return ORDERS_NOT_FOUND
    return _dumps([format_order(p) for p in items])


async def consultar_estoque(context: ToolContext, args: dict[str, Any]) -> str:
    busca = str(args.get("busca") or "")

    estoque = context.erp.mock_section("estoque")
    if estoque is not None:
        items = [
            p
            for p in estoque
            if product_matches_search(busca, str(p.get("nome") or ""), str(p.get("sku") or ""))
        ]
    else:
        try:
            items = await context.erp.get_json("estoque", {"busca": busca}) or []
        except Exception as e:
            logger.error(f"consultar_estoque failed | busca={busca!r} | error={e}")
            return STOCK_ERROR

    if not items:
        return PRODUCTS_NOT_FOUND

    products = [format_product(p) for p in items]
    logger.info(f"consultar_estoque | busca={busca!r} | results={len(products)}")
    return _dumps(products)


# =============================================================================
# Specs
# =============================================================================

FINANCIAL_TOOL_NAMES = frozenset({"consultar_cliente", "consultar_titulos", "consultar_pedidos"})
ORDER_TOOL_NAMES = frozenset({"consultar_estoque"})

BUILTIN_TOOLS: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            name="consultar_cliente",
            kind=ToolKind.BUILTIN,
            description=(
                "Verifica se um cliente existe e retorna seus dados cadastrais, status e filiais. "
                "Use ANTES de qualquer operação financeira ou de pedido."
            ),
            parameters=_parameters(ConsultarClienteSchema),
            executor=consultar_cliente,
        ),
        ToolSpec(
            name="consultar_titulos",
            kind=ToolKind.BUILTIN,
            description=(
                "Lista os títulos financeiros (boletos) de um cliente. Use quando o cliente "
                "perguntar sobre boletos, 2ª via, débitos ou situação financeira."
            ),
            parameters=_parameters(ConsultarTitulosSchema),
            executor=consultar_titulos,
        ),
        ToolSpec(
            name="consultar_pedidos",
            kind=ToolKind.BUILTIN,
            description=(
                "Consulta o histórico de pedidos de um cliente, incluindo status de rastreio e "
                "links de NF-e/DANFE. Use quando o cliente perguntar sobre entregas, notas "
                "fiscais ou pedidos."
            ),
            parameters=_parameters(ConsultarPedidosSchema),
            executor=consultar_pedidos,
        ),
        ToolSpec(
            name="consultar_estoque",
            kind=ToolKind.BUILTIN,
            description=(
                "Consulta preço e disponibilidade de produtos em estoque. Use quando o cliente "
                "perguntar sobre produtos, preços, disponibilidade ou quiser fazer um pedido."
            ),
            parameters=_parameters(ConsultarEstoqueSchema),
            executor=consultar_estoque,
        ),
    )
}


def builtin_from_config(config: ToolConfig) -> ToolSpec:
    """
    ToolSpec for a configured tool that points at a built-in executor.

    The model sees the configured name, description and parameters; an
    unknown key yields an executor that reports the missing built-in.
    """
    key = config.execution.key
    builtin = BUILTIN_TOOLS.get(key)

    if builtin is None:

        async def _missing(context: ToolContext, args: dict[str, Any]) -> str:
            return f'Ferramenta built-in "{key}" não encontrada.'

        executor = _missing
    else:
        executor = builtin.executor

    return ToolSpec(
        name=config.name,
        kind=ToolKind.BUILTIN,
        description=config.description,
        parameters=config.parameters,
        executor=executor,
    )
