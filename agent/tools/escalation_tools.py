"""
Human escalation tool (solicitar_atendente_humano).

Offered to the model when the tenant's chat flow enables human escalation.
The output is a marker the tool-call loop captures as a pending escalation;
the conversation orchestrator then fires the tenant's escalation webhook.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from agent.tools.registry import ToolContext, ToolKind, ToolSpec

logger = logging.getLogger(__name__)

ESCALATION_TOOL_NAME = "solicitar_atendente_humano"
ESCALATION_MARKER = "__human_escalation__"
DEFAULT_ESCALATION_REASON = "Solicitação do cliente"


class SolicitarAtendenteSchema(BaseModel):
    """Schema for solicitar_atendente_humano tool parameters."""

    motivo: str = Field(
        description=(
            'Breve motivo da escalação (ex.: "cliente solicitou atendente humano", '
            '"dúvida não coberta pelo assistente").'
        )
    )


@dataclass(frozen=True)
class EscalationRequest:
    reason: str


async def solicitar_atendente_humano(context: ToolContext, args: dict[str, Any]) -> str:
    """
    Request a transfer to a human attendant.

    Returns:
        JSON marker {"__human_escalation__": true, "motivo": "..."}
    """
    motivo = args.get("motivo")
    if not isinstance(motivo, str) or not motivo.strip():
        motivo = DEFAULT_ESCALATION_REASON

    logger.warning(
        f"Escalating conversation to human | tenant_id={context.tenant_id} | "
        f"agent_id={context.agent.id} | reason={motivo}"
    )
    return json.dumps({ESCALATION_MARKER: True, "motivo": motivo}, ensure_ascii=False)


def build_escalation_tool() -> ToolSpec:
    parameters = SolicitarAtendenteSchema.model_json_schema()
    parameters.pop("title", None)
    parameters.pop("description", None)
    parameters["properties"]["motivo"].pop("title", None)
    return ToolSpec(
        name=ESCALATION_TOOL_NAME,
        kind=ToolKind.ESCALATION,
        description=(
            "Solicita a transferência do atendimento para um atendente humano. Use quando o "
            "cliente pedir explicitamente para falar com uma pessoa, ou quando você não "
            "conseguir resolver o problema do cliente. Preencha o motivo da escalação."
        ),
        parameters=parameters,
        executor=solicitar_atendente_humano,
    )


def parse_escalation_output(text: str) -> EscalationRequest | None:
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict) or data.get(ESCALATION_MARKER) is not True:
        return None
    return EscalationRequest(reason=str(data.get("motivo") or DEFAULT_ESCALATION_REASON))
