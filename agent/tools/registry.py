"""
Tool registry for the model tool-call loop.

Each tool is a ToolSpec: a tagged variant (ToolKind) holding the JSON-schema
definition sent to the model and an explicit executor. build_effective_tools()
merges built-in and tenant-custom tools for one request:

- Agent with a tool allow-list (toolIds): each id is looked up among the
  built-in tools, then the tenant's configured tools, in that order.
- Otherwise: the built-in tools gated by the agent's feature flags
  (financial tools need financialEnabled, the stock tool needs orderFlowEnabled).

The handoff tool is added whenever the agent has enabled handoff routes, and
the human-escalation tool when the tenant's chat flow enables it.

Executors receive a ToolContext plus the parsed arguments and always return
a string. ToolRegistry.execute() never raises: unknown tools and executor
failures are reported back to the model as text.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from shared.config import Settings
from shared.tenant_config import ResolvedAgent, TenantConfig

if TYPE_CHECKING:
    import httpx

    from agent.services.erp_client import ErpClient

logger = logging.getLogger(__name__)

TOOL_NOT_FOUND_MESSAGE = "Ferramenta não encontrada."


class ToolKind(str, Enum):
    BUILTIN = "builtin"
    HTTP = "http"
    HANDOFF = "handoff"
    ESCALATION = "escalation"


@dataclass(frozen=True)
class ToolContext:
    """Tenant/agent context handed to every executor."""

    tenant_id: str
    tenant: TenantConfig
    agent: ResolvedAgent
    erp: "ErpClient"
    settings: Settings
    http_transport: "httpx.AsyncBaseTransport | None" = None


class ToolExecutor(Protocol):
    async def __call__(self, context: ToolContext, args: dict[str, Any]) -> str: ...


@dataclass(frozen=True)
class ToolSpec:
    name: str
    kind: ToolKind
    description: str
    parameters: dict[str, Any]
    executor: ToolExecutor

    def definition(self) -> dict[str, Any]:
        """OpenAI function-calling definition (accepted by bind_tools)."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolRegistry:
    """Tools available to the model for one request, keyed by name."""

    specs: dict[str, ToolSpec] = field(default_factory=dict)

    @classmethod
    def of(cls, specs: Iterable[ToolSpec]) -> "ToolRegistry":
        registry = cls()
        for spec in specs:
            registry.specs[spec.name] = spec
        return registry

    def __bool__(self) -> bool:
        return bool(self.specs)

    def __contains__(self, name: object) -> bool:
        return name in self.specs

    @property
    def names(self) -> list[str]:
        return list(self.specs)

    def definitions(self) -> list[dict[str, Any]]:
        return [spec.definition() for spec in self.specs.values()]

    def get(self, name: str) -> ToolSpec | None:
        return self.specs.get(name)

    async def execute(self, name: str, args: dict[str, Any] | None, context: ToolContext) -> str:
        """
        Run one tool call.

        Returns:
            Result text; "Ferramenta não encontrada." for unknown names and
            "Erro técnico: {detail}" when the executor raises
        """
        spec = self.specs.get(name)
        if spec is None:
            logger.warning(f"Unknown tool requested | name={name} | agent_id={context.agent.id}")
            return TOOL_NOT_FOUND_MESSAGE

        try:
            result = await spec.executor(context, dict(args or {}))
        except Exception as e:
            logger.error(
                f"Tool execution failed | name={name} | kind={spec.kind.value} | error={e}",
                exc_info=True,
            )
            return f"Erro técnico: {e}"

        logger.info(
            f"Tool executed | name={name} | kind={spec.kind.value} | result_chars={len(result)}"
        )
        return result


def build_effective_tools(tenant: TenantConfig, agent: ResolvedAgent) -> ToolRegistry:
    """Assemble the tool registry for an agent (see module docstring for the rules)."""
    from agent.tools.erp_tools import (
        BUILTIN_TOOLS,
        FINANCIAL_TOOL_NAMES,
        ORDER_TOOL_NAMES,
        builtin_from_config,
    )
    from agent.tools.escalation_tools import build_escalation_tool
    from agent.tools.handoff_tools import build_handoff_tool
    from agent.tools.http_tools import build_http_tool

    specs: list[ToolSpec] = []

    if agent.tool_ids:
        for tool_id in agent.tool_ids:
            if tool_id in BUILTIN_TOOLS:
                specs.append(BUILTIN_TOOLS[tool_id])
                continue
            config = next((t for t in tenant.tools if t.id == tool_id), None)
            if config is None:
                logger.warning(f"Tool id not found, skipping | tool_id={tool_id} | agent_id={agent.id}")
                continue
            if config.execution.type == "builtin":
                specs.append(builtin_from_config(config))
            else:
                specs.append(build_http_tool(config))
    else:
        for name, spec in BUILTIN_TOOLS.items():
            if name in FINANCIAL_TOOL_NAMES and not agent.features.financial_enabled:
                continue
            if name in ORDER_TOOL_NAMES and not agent.features.order_flow_enabled:
                continue
            specs.append(spec)

    if agent.handoff_enabled:
        specs.append(build_handoff_tool(agent.handoff_rules.routes))

    escalation = tenant.chat_flow.human_escalation if tenant.chat_flow else None
    if escalation is not None and escalation.enabled:
        specs.append(build_escalation_tool())

    registry = ToolRegistry.of(specs)
    logger.debug(f"Effective tools | agent_id={agent.id} | tools={registry.names}")
    return registry
