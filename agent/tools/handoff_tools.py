"""
Agent handoff tool (transferir_para_agente).

The tool is generated per agent from its handoff routes: the "agente"
parameter is an enum of the route agent ids. Its output is not data but a
routing instruction the tool-call loop recognizes:

    {"__handoff__": true, "targetAgentId": "...", "transitionMessage": "..."}
"""

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from agent.tools.registry import ToolContext, ToolKind, ToolSpec
from shared.tenant_config import HandoffRoute

logger = logging.getLogger(__name__)

HANDOFF_TOOL_NAME = "transferir_para_agente"
HANDOFF_MARKER = "__handoff__"
DEFAULT_TRANSITION_MESSAGE = "Transferindo para o próximo agente."


@dataclass(frozen=True)
class HandoffSignal:
    """Ownership change produced by a turn."""

    target_agent_id: str
    transition_message: str
    initial_reply: str | None = None


def handoff_tool_description(routes: Sequence[HandoffRoute]) -> str:
    agents = "; ".join(f'"{r.agent_id}" = {r.label}: {r.description}' for r in routes)
    return (
        "Transfere o atendimento para outro agente. Antes de transferir: NÃO pergunte sobre "
        'produtos, apenas ofereça a transferência e pergunte "Pode ser?". Chame esta ferramenta '
        'SOMENTE após o cliente confirmar. Quando o cliente responder "sim", "pode", "ok" ou '
        '"claro" à sua pergunta "Pode ser?", chame IMEDIATAMENTE esta ferramenta (não responda '
        'só com texto). NUNCA chame na mesma mensagem em que pergunta "Pode ser?", aguarde a '
        f"confirmação. Agentes: {agents}. Preencha agente e mensagem_transicao."
    )


async def transferir_para_agente(context: ToolContext, args: dict[str, Any]) -> str:
    agente = args.get("agente") if isinstance(args.get("agente"), str) else ""
    mensagem = args.get("mensagem_transicao")
    if not isinstance(mensagem, str) or not mensagem.strip():
        mensagem = DEFAULT_TRANSITION_MESSAGE

    logger.info(f"Handoff requested by model | from={context.agent.id} | to={agente}")
    return json.dumps(
        {HANDOFF_MARKER: True, "targetAgentId": agente, "transitionMessage": mensagem},
        ensure_ascii=False,
    )


def build_handoff_tool(routes: Sequence[HandoffRoute]) -> ToolSpec:
    return ToolSpec(
        name=HANDOFF_TOOL_NAME,
        kind=ToolKind.HANDOFF,
        description=handoff_tool_description(routes),
        parameters={
            "type": "object",
            "properties": {
                "agente": {
                    "type": "string",
                    "enum": [r.agent_id for r in routes],
                    "description": "ID do agente de destino para onde transferir o cliente.",
                },
                "mensagem_transicao": {
                    "type": "string",
                    "description": (
                        "Mensagem de encerramento e apresentação da transferência (ex: \"Vou te "
                        'encaminhar para nosso setor de vendas que poderá te ajudar melhor com isso!").'
                    ),
                },
            },
            "required": ["agente", "mensagem_transicao"],
        },
        executor=transferir_para_agente,
    )


def parse_handoff_output(text: str) -> HandoffSignal | None:
    """Return the handoff carried by a tool result, or None for ordinary results."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict) or data.get(HANDOFF_MARKER) is not True:
        return None

    target = str(data.get("targetAgentId") or "").strip()
    if not target:
        return None
    return HandoffSignal(
        target_agent_id=target,
        transition_message=str(data.get("transitionMessage") or DEFAULT_TRANSITION_MESSAGE),
    )
