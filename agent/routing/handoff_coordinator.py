"""
Handoff Coordinator - transfers a conversation between agents of a tenant.

Detection (after a model-handled turn):
1. Primary: the model called transferir_para_agente (ModelResult.handoff).
2. Narrated transfer: the agent has handoff routes and the reply announces a
   transfer (transfer verb plus a destination, or a long enough sentence)
   without merely asking permission to transfer.
3. Confirmed transfer: the previous assistant turn asked to transfer, the
   user answered with a short affirmation and the model degenerated to the
   generic apology. The coordinator writes its own transition message and
   picks a sales-like route (else the first route).

Both fallbacks are best-effort safety nets for models that narrate a
transfer without calling the tool. The heuristics are ordered pattern
tables below; they are not tuned for precision/recall.

Completion: the target becomes the current agent of (tenant, phone), the
target agent answers once with an empty history and a synthetic transfer
context, and its session history is replaced by [user message, greeting]
(order and last product are kept). A failed greeting, raised or returned as
provider error text, is logged and the handoff proceeds without it.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from agent.llm.postprocess import FALLBACK_REPLY, is_unusable
from agent.state.helpers import last_assistant_content
from agent.tools.handoff_tools import HandoffSignal
from shared.tenant_config import HandoffRoute, ResolvedAgent

if TYPE_CHECKING:
    from agent.llm.model_orchestrator import ModelOrchestrator
    from agent.state.session_store import Stores

logger = logging.getLogger(__name__)


def _patterns(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(s, re.IGNORECASE) for s in sources)


def _any(patterns: Sequence[re.Pattern[str]], text: str) -> bool:
    return any(p.search(text) for p in patterns)


# Reply asks for permission to transfer (not an actual transfer)
ASKS_TRANSFER_PERMISSION = _patterns(
    r"\b(pode ser\??|posso te (encaminhar|transferir)\??|aguardo (sua )?confirmação"
    r"|quer que eu transfira|posso transferir)\b",
)
TRANSFER_VERBS = _patterns(
    r"\b(encaminhar|transferir|direcionar|te direciono|vou te (encaminhar|transferir|direcionar)"
    r"|encaminho)\b",
)
TRANSFER_DESTINATIONS = _patterns(
    r"\b(setor|vendas|vendedor|comercial|financeiro|sac|atendente)\b",
)
MIN_NARRATED_TRANSFER_LENGTH = 30

# Previous assistant turn asked the user to confirm a transfer
ASKED_TRANSFER_CONFIRMATION = _patterns(
    r"\b(pode ser\??|posso (te )?(encaminhar|transferir)\??|aguardo (sua )?confirmação"
    r"|quer que eu transfira|posso transferir|confirma\??)\b",
)
MENTIONS_TRANSFER = _patterns(r"\b(transferir|encaminhar)\b")
SHORT_TRANSFER_QUESTION_LENGTH = 120

# Short user affirmations
SHORT_CONFIRMATIONS = _patterns(
    r"^(sim|pode|pode ser|ok|claro|com certeza|pode sim|pode ser sim|tudo bem|blz|beleza"
    r"|pode ir|pode transferir|quero|aceito)$",
    r"^sim[,!.]?\s*$",
    r"^ok[,!.]?\s*$",
)
MAX_CONFIRMATION_LENGTH = 40

SALES_ROUTE = re.compile(r"vendedor|vendas|comercial", re.IGNORECASE)
CONFIRMED_TRANSFER_MESSAGE = "Vou te encaminhar para nosso setor de vendas. Um momento!"

TRANSFER_CONTEXT_TEMPLATE = (
    '[Transferência] O cliente foi encaminhado para você. O que o cliente disse: "{message}". '
    'A mensagem que o atendente anterior enviou ao cliente ao transferir: "{reply}". '
    "Responda com UMA única mensagem de boas-vindas e já comece a atender o cliente de forma "
    "ativa (ex.: perguntando como pode ajudar com o pedido ou o que precisa). Não repita que "
    "está transferindo; assuma que o cliente já está com você."
)


# =============================================================================
# Heuristics
# =============================================================================


def reply_looks_like_transfer(reply: str) -> bool:
    """True when the reply announces a transfer rather than asking permission."""
    text = (reply or "").strip().lower()
    if _any(ASKS_TRANSFER_PERMISSION, text):
        return False
    if not _any(TRANSFER_VERBS, text):
        return False
    return _any(TRANSFER_DESTINATIONS, text) or len(text) > MIN_NARRATED_TRANSFER_LENGTH


def user_message_is_confirmation(message: str) -> bool:
    text = " ".join((message or "").strip().lower().split())
    if len(text) > MAX_CONFIRMATION_LENGTH:
        return False
    return _any(SHORT_CONFIRMATIONS, text)


def last_assistant_asked_transfer_confirmation(history: Sequence[dict[str, Any]]) -> bool:
    content = last_assistant_content(history)
    if content is None:
        return False
    text = content.strip().lower()
    return _any(ASKED_TRANSFER_CONFIRMATION, text) or (
        _any(MENTIONS_TRANSFER, text) and len(text) < SHORT_TRANSFER_QUESTION_LENGTH
    )


def route_named_in_reply(reply: str, routes: Sequence[HandoffRoute]) -> HandoffRoute:
    """Route whose label/id appears in the reply (sales wording maps to the seller), else the first."""
    text = reply.lower()
    for route in routes:
        label = (route.label or "").lower()
        rid = (route.agent_id or "").lower()
        if (label and label in text) or (rid and rid in text):
            return route
        if "vendas" in text and (rid == "vendedor" or "vendedor" in label or "vendas" in label):
            return route
        if "vendedor" in text and (rid == "vendedor" or "vendedor" in label):
            return route
    return routes[0]


def sales_route(routes: Sequence[HandoffRoute]) -> HandoffRoute:
    for route in routes:
        if SALES_ROUTE.search(route.agent_id or "") or SALES_ROUTE.search(route.label or ""):
            return route
    return routes[0]


@dataclass(frozen=True)
class HandoffDecision:
    """Detected handoff plus the reply to send (the fallback may rewrite it)."""

    signal: HandoffSignal
    reply: str
    source: str


def detect_handoff(
    agent: ResolvedAgent,
    reply: str,
    user_message: str,
    history: Sequence[dict[str, Any]],
    tool_signal: HandoffSignal | None = None,
) -> HandoffDecision | None:
    """
    Decide whether a model-handled turn hands the conversation off.

    Args:
        agent: Agent that produced the reply
        reply: Reply text of the turn
        user_message: User message of the turn
        history: Session history including this turn
        tool_signal: Handoff captured from the handoff tool, if any
    """
    if tool_signal is not None:
        return HandoffDecision(tool_signal, reply, "tool")

    if not agent.handoff_enabled:
        return None
    routes = agent.handoff_rules.routes

    if reply_looks_like_transfer(reply):
        route = route_named_in_reply(reply, routes)
        logger.info(
            f"Handoff inferred from reply | from={agent.id} | to={route.agent_id}"
        )
        return HandoffDecision(HandoffSignal(route.agent_id, reply), reply, "narrated")

    # The assistant entry of this turn is the last one; the question is the one before it
    previous = _without_last_assistant(history)
    if (
        reply == FALLBACK_REPLY
        and user_message_is_confirmation(user_message)
        and last_assistant_asked_transfer_confirmation(previous)
    ):
        route = sales_route(routes)
        logger.info(
            f"Handoff inferred from confirmation | from={agent.id} | to={route.agent_id}"
        )
        return HandoffDecision(
            HandoffSignal(route.agent_id, CONFIRMED_TRANSFER_MESSAGE),
            CONFIRMED_TRANSFER_MESSAGE,
            "confirmation",
        )
    return None


def _without_last_assistant(history: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    entries = list(history)
    for index in range(len(entries) - 1, -1, -1):
        if entries[index].get("role") == "assistant":
            return entries[:index]
    return entries


# =============================================================================
# Completion
# =============================================================================


class HandoffCoordinator:
    """
    Apply a detected handoff.

    Args:
        model: Model orchestrator used to produce the target's first message
        stores: Session and current-agent stores
    """

    def __init__(self, model: "ModelOrchestrator", stores: "Stores"):
        self.model = model
        self.stores = stores

    async def transfer_ownership(self, tenant_id: str, phone: str, signal: HandoffSignal) -> HandoffSignal:
        """Record the target as current agent; returns the signal with a normalized id."""
        target = signal.target_agent_id.strip().lower()
        await self.stores.current_agents.set(tenant_id, phone, target)
        logger.info(f"Current agent updated | tenant_id={tenant_id} | agent_id={target}")
        return replace(signal, target_agent_id=target)

    async def greet_from_target(
        self, tenant_id: str, phone: str, user_message: str, reply: str, signal: HandoffSignal
    ) -> HandoffSignal:
        """
        Generate the target agent's first message and seed its session.

        Returns:
            The signal with initial_reply set, or unchanged when generation failed
        """
        target = signal.target_agent_id
        try:
            result = await self.model.respond(
                tenant_id,
                TRANSFER_CONTEXT_TEMPLATE.format(message=user_message, reply=reply),
                [],
                target,
            )
            initial_reply = (result.content or "").strip()
            if not result.appended or is_unusable(initial_reply):
                # Provider failures come back as user-facing error text
                logger.warning(
                    f"Handoff target produced no greeting | tenant_id={tenant_id} | agent_id={target} | "
                    f"appended={result.appended}"
                )
                return signal

            existing = await self.stores.sessions.get(tenant_id, phone, target)
            seeded = existing.model_copy(
                update={
                    "history": [
                        {"role": "user", "content": user_message},
                        {"role": "assistant", "content": initial_reply},
                    ]
                }
            )
            await self.stores.sessions.set(tenant_id, phone, seeded, target)
        except Exception as e:
            logger.warning(
                f"Could not generate initial reply for handoff target | tenant_id={tenant_id} | "
                f"agent_id={target} | error={e}",
                exc_info=True,
            )
            return signal

        logger.info(f"Handoff completed | tenant_id={tenant_id} | agent_id={target}")
        return replace(signal, initial_reply=initial_reply)
