"""
Model Orchestrator - bounded tool-call loop.

respond() sends [system prompt] + prior history + [user message] to the
agent's model together with its effective tools, executes the tool calls the
model requests, feeds the results back and re-invokes the model until it
answers with text, a handoff is captured, or MAX_MODEL_CALLS invocations
have been made.

The handoff tool does not end the loop by itself: its output is replaced by
an instruction to write the goodbye/transition message and the model gets
one more invocation to phrase it.

Provider failures never raise past respond(): they resolve to a Portuguese
message. Only configuration errors (unknown tenant) propagate.
"""

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import openai
import pybreaker
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from agent.llm.client import api_key_configured, build_chat_model
from agent.llm.postprocess import finalize_content, recover_reply
from agent.prompts import build_system_prompt
from agent.services.erp_client import ErpClient
from agent.tools.escalation_tools import (
    ESCALATION_TOOL_NAME,
    EscalationRequest,
    parse_escalation_output,
)
from agent.tools.handoff_tools import HANDOFF_TOOL_NAME, HandoffSignal, parse_handoff_output
from agent.tools.registry import ToolContext, build_effective_tools
from shared.circuit_breaker import call_with_breaker, openrouter_breaker
from shared.config import Settings, get_settings
from shared.tenant_config import TenantConfigResolver

logger = logging.getLogger(__name__)

# Initial invocation plus up to four re-invocations after tool results
MAX_MODEL_CALLS = 5

MISSING_API_KEY_MESSAGE = (
    "O agente não está configurado (chave de API ausente). "
    "Configure OPENROUTER_API_KEY no servidor e tente novamente."
)
AUTH_ERROR_MESSAGE = "Chave de API inválida ou expirada. Verifique OPENROUTER_API_KEY no servidor."
RATE_LIMIT_MESSAGE = "Muitas requisições no momento. Tente de novo em alguns segundos."
CONNECTION_ERROR_MESSAGE = "Não foi possível conectar ao serviço de IA. Tente novamente em alguns segundos."
GENERIC_ERROR_MESSAGE = "Desculpe, estou com instabilidade no momento. Tente novamente."
EMPTY_TOOL_RESULT = "Sem retorno."


@dataclass(frozen=True)
class ModelResult:
    """
    Outcome of one respond() call.

    messages is the updated history (no system entries). When appended is
    True it already ends with this turn's user message, any tool exchanges
    and the final assistant entry; when False (provider failure, missing
    key) it is the prior history unchanged.
    """

    content: str
    messages: list[dict[str, Any]]
    tool_results: list[str] = field(default_factory=list)
    handoff: HandoffSignal | None = None
    human_escalation: EscalationRequest | None = None
    appended: bool = True


def provider_error_message(error: Exception) -> str:
    """Map a provider failure to the user-facing message."""
    if isinstance(error, openai.AuthenticationError):
        return AUTH_ERROR_MESSAGE
    if isinstance(error, openai.RateLimitError):
        return RATE_LIMIT_MESSAGE
    if isinstance(error, (openai.APIConnectionError, pybreaker.CircuitBreakerError, httpx.TransportError)):
        return CONNECTION_ERROR_MESSAGE
    return GENERIC_ERROR_MESSAGE


def strip_system(history: Sequence[dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [dict(m) for m in (history or []) if m.get("role") != "system"]


def message_text(message: BaseMessage | None) -> str:
    """Text of a model message (content may be a list of parts)."""
    if message is None:
        return ""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(str(part.get("text") or ""))
    return "".join(parts)


def to_langchain_messages(history: Sequence[dict[str, Any]]) -> list[BaseMessage]:
    """
    Convert stored history entries to LangChain messages.

    Tool entries whose call id was not announced by the preceding assistant
    entry (e.g. after history capping) are dropped.
    """
    messages: list[BaseMessage] = []
    open_call_ids: set[str] = set()

    for entry in history:
        role = entry.get("role")
        content = entry.get("content") or ""
        if role == "user":
            messages.append(HumanMessage(content=content))
            open_call_ids = set()
        elif role == "assistant":
            calls = [
                {"id": c.get("id"), "name": c.get("name"), "args": c.get("args") or {}}
                for c in entry.get("tool_calls") or []
            ]
            messages.append(AIMessage(content=content, tool_calls=calls))
            open_call_ids = {c["id"] for c in calls}
        elif role == "tool":
            call_id = entry.get("tool_call_id")
            if call_id in open_call_ids:
                messages.append(ToolMessage(content=content, tool_call_id=call_id))
            else:
                logger.debug(f"Dropping orphan tool entry | tool_call_id={call_id}")
    return messages


def handoff_instruction(target_agent_id: str) -> str:
    return json.dumps(
        {
            "status": "transfer_initiated",
            "message": (
                f'Transferência para o agente "{target_agent_id}" iniciada. '
                "Gere agora a mensagem de despedida e transição para o cliente."
            ),
        },
        ensure_ascii=False,
    )


class ModelOrchestrator:
    """
    Drives the model for one agent turn.

    Args:
        resolver: Tenant configuration resolver
        settings: Settings (API key, limits)
        chat_model_factory: Builds the chat model for an agent (tests inject fakes)
        http_transport: Optional httpx transport shared by ERP/HTTP tools
        prompt_base_dir: Base directory for relative prompt paths
    """

    def __init__(
        self,
        resolver: TenantConfigResolver,
        settings: Settings | None = None,
        chat_model_factory: Callable[..., Any] = build_chat_model,
        http_transport: httpx.AsyncBaseTransport | None = None,
        prompt_base_dir: Path | None = None,
    ):
        self.resolver = resolver
        self.settings = settings or get_settings()
        self.chat_model_factory = chat_model_factory
        self.http_transport = http_transport
        self.prompt_base_dir = prompt_base_dir

    async def respond(
        self,
        tenant_id: str,
        user_message: str,
        history: Sequence[dict[str, Any]] | None = None,
        agent_id: str | None = None,
    ) -> ModelResult:
        """
        Run the tool-call loop for one user message.

        Args:
            tenant_id: Tenant identifier
            user_message: Text of the user message
            history: Prior history entries (system entries are ignored)
            agent_id: Agent to answer as (None = tenant default agent)

        Returns:
            ModelResult; content is never empty

        Raises:
            TenantNotFoundError: Unknown tenant
        """
        tenant = self.resolver.get_tenant(tenant_id)
        agent = self.resolver.resolve_agent(tenant_id, agent_id)
        prior = strip_system(history)

        if not api_key_configured(self.settings):
            logger.error(f"OPENROUTER_API_KEY not configured | tenant_id={tenant_id}")
            return ModelResult(content=MISSING_API_KEY_MESSAGE, messages=prior, appended=False)

        registry = build_effective_tools(tenant, agent)
        context = ToolContext(
            tenant_id=tenant_id,
            tenant=tenant,
            agent=agent,
            erp=ErpClient(tenant, agent, self.settings, transport=self.http_transport),
            settings=self.settings,
            http_transport=self.http_transport,
        )

        llm = self.chat_model_factory(agent, tenant, self.settings)
        model = llm.bind_tools(registry.definitions(), tool_choice="auto") if registry else llm

        messages: list[BaseMessage] = [
            SystemMessage(content=build_system_prompt(agent, tenant, self.prompt_base_dir)),
            *to_langchain_messages(prior),
            HumanMessage(content=user_message),
        ]
        entries = prior + [{"role": "user", "content": user_message}]

        tool_results: list[str] = []
        recoverable: list[str] = []
        pending_handoff: HandoffSignal | None = None
        pending_escalation: EscalationRequest | None = None

        logger.info(
            f"Model turn | tenant_id={tenant_id} | agent_id={agent.id} | "
            f"history={len(prior)} | tools={registry.names}"
        )

        try:
            response = await self._invoke(model, messages)
            calls = 1

            while response.tool_calls and calls < MAX_MODEL_CALLS:
                messages.append(response)
                entries.append(
                    {
                        "role": "assistant",
                        "content": message_text(response),
                        "tool_calls": [
                            {"id": c["id"], "name": c["name"], "args": c.get("args") or {}}
                            for c in response.tool_calls
                        ],
                    }
                )

                for call in response.tool_calls:
                    name = call["name"]
                    output = await registry.execute(name, call.get("args"), context)

                    if name == HANDOFF_TOOL_NAME:
                        signal = parse_handoff_output(output)
                        if signal is not None:
                            pending_handoff = signal
                            output = handoff_instruction(signal.target_agent_id)
                            logger.info(
                                f"Handoff captured | from={agent.id} | to={signal.target_agent_id}"
                            )
                    elif name == ESCALATION_TOOL_NAME:
                        request = parse_escalation_output(output)
                        if request is not None:
                            pending_escalation = request
                    else:
                        recoverable.append(output or EMPTY_TOOL_RESULT)

                    output = output or EMPTY_TOOL_RESULT
                    tool_results.append(output)
                    messages.append(ToolMessage(content=output, tool_call_id=call["id"]))
                    entries.append(
                        {"role": "tool", "tool_call_id": call["id"], "name": name, "content": output}
                    )

                response = await self._invoke(model, messages)
                calls += 1
                if pending_handoff is not None:
                    break

            if response.tool_calls:
                logger.warning(
                    f"Tool-call limit reached, ignoring further calls | agent_id={agent.id} | "
                    f"calls={calls}"
                )
        except Exception as e:
            logger.error(
                f"Model call failed | tenant_id={tenant_id} | agent_id={agent.id} | "
                f"error_type={type(e).__name__} | error={e}",
                exc_info=True,
            )
            return ModelResult(content=provider_error_message(e), messages=prior, appended=False)

        if getattr(response, "invalid_tool_calls", None):
            logger.warning(
                f"Model returned invalid tool calls | agent_id={agent.id} | "
                f"count={len(response.invalid_tool_calls)}"
            )

        finish_reason = (response.response_metadata or {}).get("finish_reason")
        content = finalize_content(message_text(response), finish_reason)
        if content is None:
            logger.warning(
                f"Model returned no usable content, recovering | agent_id={agent.id} | "
                f"finish_reason={finish_reason} | tool_results={len(tool_results)}"
            )
            content = recover_reply(
                recoverable,
                pending_handoff.transition_message if pending_handoff else None,
            )

        entries.append({"role": "assistant", "content": content})
        return ModelResult(
            content=content,
            messages=entries,
            tool_results=tool_results,
            handoff=pending_handoff,
            human_escalation=pending_escalation,
        )

    async def _invoke(self, model: Any, messages: list[BaseMessage]) -> AIMessage:
        return await call_with_breaker(openrouter_breaker, model.ainvoke, list(messages))
