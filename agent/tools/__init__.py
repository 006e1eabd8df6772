"""
Tools available to the model.

- registry: ToolSpec/ToolKind variants, ToolRegistry and build_effective_tools()
- erp_tools: consultar_cliente, consultar_titulos, consultar_pedidos, consultar_estoque
- handoff_tools: transferir_para_agente (generated per agent from its routes)
- escalation_tools: solicitar_atendente_humano
- http_tools: tenant-defined HTTP tools
"""

from agent.tools.erp_tools import BUILTIN_TOOLS, FINANCIAL_TOOL_NAMES, ORDER_TOOL_NAMES
from agent.tools.escalation_tools import (
    ESCALATION_TOOL_NAME,
    EscalationRequest,
    parse_escalation_output,
)
from agent.tools.handoff_tools import HANDOFF_TOOL_NAME, HandoffSignal, parse_handoff_output
from agent.tools.registry import (
    ToolContext,
    ToolExecutor,
    ToolKind,
    ToolRegistry,
    ToolSpec,
    build_effective_tools,
)

__all__ = [
    "BUILTIN_TOOLS",
    "ESCALATION_TOOL_NAME",
    "EscalationRequest",
    "FINANCIAL_TOOL_NAMES",
    "HANDOFF_TOOL_NAME",
    "HandoffSignal",
    "ORDER_TOOL_NAMES",
    "ToolContext",
    "ToolExecutor",
    "ToolKind",
    "ToolRegistry",
    "ToolSpec",
    "build_effective_tools",
    "parse_escalation_output",
    "parse_handoff_output",
]
