"""
Conversation Orchestrator - entry point for every inbound message.

Per message:
1. Resolve the active agent: explicit agent id, else the stored current agent,
   else the tenant default agent. history == [] resets the conversation
   (history, order progress, last product and current-agent pointer) first.
2. Classify the intent. HUMAN_AGENT mentioning "transfer" and order starts
   for routing agents (handoff enabled) are demoted to UNKNOWN so the model
   and its handoff tool handle them.
3. Route to exactly one branch:
   - order flow (OrderFSM) when enabled and an order is in progress, or the
     message starts an order and a product was already looked up
   - canned human-escalation reply (HUMAN_AGENT)
   - templated greeting (GREETING)
   - the model (ModelOrchestrator), followed by handoff detection
4. Persist the session once and return a ChatResult.

Branches take the loaded ConversationSession and return a new one inside a
TurnOutcome; nothing is mutated in place.
"""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import httpx

from agent.fsm.intent_classifier import classify, mentions_transfer
from agent.fsm.models import ORDER_START_INTENTS, IntentType, OrderState, ProductSnapshot
from agent.fsm.order_fsm import OrderFSM, settle
from agent.llm.model_orchestrator import ModelOrchestrator, ModelResult
from agent.llm.postprocess import FALLBACK_REPLY
from agent.routing.handoff_coordinator import HandoffCoordinator, detect_handoff
from agent.services.erp_client import ErpClient
from agent.services.escalation_service import fire_escalation_webhook
from agent.state.helpers import append_turn, cap_history, replace_last_assistant
from agent.state.schemas import ConversationSession
from agent.state.session_store import Stores, build_stores
from agent.tools.handoff_tools import HandoffSignal
from shared.config import Settings, get_settings
from shared.tenant_config import ResolvedAgent, TenantConfig, TenantConfigResolver, get_resolver

logger = logging.getLogger(__name__)

DEFAULT_HUMAN_AGENT_MESSAGE = "Vou transferir você para um de nossos atendentes. Um momento, por favor!"
DIRECT_ESCALATION_REASON = "Solicitação direta do cliente (intent HUMAN_AGENT)"
DEFAULT_GREETING = "Olá! Sou a {{assistantName}}, assistente virtual. Como posso ajudar hoje?"


@dataclass(frozen=True)
class HumanEscalationInfo:
    reason: str
    webhook_fired: bool


@dataclass(frozen=True)
class ChatResult:
    """
    Outcome of one processed message.

    Attributes:
        reply: Text to send to the user (never empty)
        debug: Model message trace for model-handled turns
        handoff: Handoff signal when ownership changed this turn
        human_escalation: Set when the turn escalated to a human
        effective_agent_id: Agent owning the conversation after this turn
    """

    reply: str
    debug: list[dict[str, Any]] | None = None
    handoff: HandoffSignal | None = None
    human_escalation: HumanEscalationInfo | None = None
    effective_agent_id: str | None = None


@dataclass(frozen=True)
class TurnOutcome:
    """Result of one branch: reply plus the session to persist."""

    reply: str
    session: ConversationSession
    debug: list[dict[str, Any]] | None = None
    handoff: HandoffSignal | None = None
    human_escalation: HumanEscalationInfo | None = None


def render_greeting(template: str | None, assistant_name: str, company_name: str) -> str:
    text = (template or "").strip() or DEFAULT_GREETING
    return text.replace("{{assistantName}}", assistant_name).replace("{{companyName}}", company_name)


def product_from_tool_result(tool_text: str | None) -> ProductSnapshot | None:
    """First product of a JSON product list returned by a tool, if any."""
    if not tool_text:
        return None
    try:
        data = json.loads(tool_text)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return None
    try:
        return ProductSnapshot.model_validate(data[0])
    except ValueError:
        return None


class ConversationOrchestrator:
    """
    Route one inbound message and keep per-conversation state.

    Args:
        resolver: Tenant configuration resolver
        stores: Session and current-agent stores
        model: Model orchestrator (built from resolver/settings when omitted)
        settings: Settings
        http_transport: Optional httpx transport for ERP and webhook calls (tests)
    """

    def __init__(
        self,
        resolver: TenantConfigResolver,
        stores: Stores,
        model: ModelOrchestrator | None = None,
        settings: Settings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.resolver = resolver
        self.stores = stores
        self.settings = settings or get_settings()
        self.http_transport = http_transport
        self.model = model or ModelOrchestrator(
            resolver, self.settings, http_transport=http_transport
        )
        self.handoffs = HandoffCoordinator(self.model, stores)

    async def process_message(
        self,
        tenant_id: str,
        phone: str,
        text: str,
        history: list[dict[str, Any]] | None = None,
        agent_id: str | None = None,
    ) -> ChatResult:
        """
        Process one inbound message.

        Args:
            tenant_id: Tenant identifier ("default" when blank)
            phone: Conversation identifier (WhatsApp number, channel user id)
            text: Message text
            history: Caller-side history; an empty list resets the conversation
            agent_id: Explicit agent to answer as

        Returns:
            ChatResult

        Raises:
            TenantNotFoundError: Unknown tenant
        """
        tid = (tenant_id or "").strip() or "default"
        tenant = self.resolver.get_tenant(tid)
        reset = history is not None and len(history) == 0

        requested = (agent_id or "").strip().lower() or None

        if reset:
            previous_owner = await self.stores.current_agents.get(tid, phone)
            await self.stores.current_agents.clear(tid, phone)
            if previous_owner and previous_owner != requested:
                # The routed agent's fresh session is persisted at the end of the turn
                await self.stores.sessions.set(tid, phone, ConversationSession(), previous_owner)
            logger.info(
                f"Conversation reset | tenant_id={tid} | phone={phone} | previous_owner={previous_owner}"
            )

        owner = requested or await self.stores.current_agents.get(tid, phone)
        agent = self.resolver.resolve_agent(tid, owner)

        if reset:
            session = ConversationSession()
        else:
            session = await self.stores.sessions.get(tid, phone, owner)

        intent = classify(text)
        if intent == IntentType.HUMAN_AGENT and mentions_transfer(text):
            intent = IntentType.UNKNOWN
        if agent.handoff_enabled and intent in ORDER_START_INTENTS:
            intent = IntentType.UNKNOWN

        logger.info(
            f"Message received | tenant_id={tid} | phone={phone} | agent_id={agent.id} | "
            f"intent={intent.value} | order_state={session.order.state.value}"
        )

        order_flow = tenant.features.order_flow_enabled
        if order_flow and session.order.state != OrderState.IDLE and intent != IntentType.STOCK_QUERY:
            outcome = await self._order_turn(tid, tenant, agent, session, text, intent)
        elif order_flow and intent in ORDER_START_INTENTS and session.last_product is not None:
            started = session.model_copy(
                update={"order": session.order.model_copy(update={"product": session.last_product})}
            )
            outcome = await self._order_turn(tid, tenant, agent, started, text, intent)
        elif intent == IntentType.HUMAN_AGENT:
            outcome = self._human_agent_turn(tid, tenant, session, phone, text)
        elif intent == IntentType.GREETING:
            outcome = self._greeting_turn(tenant, agent, session, text)
        else:
            outcome = await self._model_turn(tid, tenant, agent, session, phone, text)

        handoff = outcome.handoff
        if handoff is not None:
            handoff = await self.handoffs.transfer_ownership(tid, phone, handoff)

        await self.stores.sessions.set(tid, phone, outcome.session, owner)

        if handoff is not None:
            handoff = await self.handoffs.greet_from_target(tid, phone, text, outcome.reply, handoff)

        preview = outcome.reply if len(outcome.reply) <= 80 else f"{outcome.reply[:80]}..."
        logger.info(f"Reply ready | tenant_id={tid} | phone={phone} | reply={preview!r}")

        return ChatResult(
            reply=outcome.reply,
            debug=outcome.debug,
            handoff=handoff,
            human_escalation=outcome.human_escalation,
            effective_agent_id=handoff.target_agent_id if handoff else owner,
        )

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def _order_turn(
        self,
        tenant_id: str,
        tenant: TenantConfig,
        agent: ResolvedAgent,
        session: ConversationSession,
        text: str,
        intent: IntentType,
    ) -> TurnOutcome:
        erp = ErpClient(tenant, agent, self.settings, transport=self.http_transport)
        fsm = OrderFSM(erp, tenant.prompt.order_flow_messages)
        result = await fsm.process(text, session.order, intent)
        logger.info(
            f"Order flow transition | tenant_id={tenant_id} | "
            f"{session.order.state.value} -> {result.session.state.value}"
        )
        return TurnOutcome(
            reply=result.reply,
            session=session.model_copy(
                update={
                    "order": settle(result.session),
                    "history": append_turn(session.history, text, result.reply),
                }
            ),
        )

    def _human_agent_turn(
        self,
        tenant_id: str,
        tenant: TenantConfig,
        session: ConversationSession,
        phone: str,
        text: str,
    ) -> TurnOutcome:
        escalation = tenant.chat_flow.human_escalation if tenant.chat_flow else None
        legacy = (tenant.prompt.human_agent_message or "").strip()
        fired = False

        if escalation is not None and escalation.enabled:
            reply = (escalation.message or "").strip() or legacy or DEFAULT_HUMAN_AGENT_MESSAGE
            fired = fire_escalation_webhook(
                escalation, tenant_id, phone, text, transport=self.http_transport
            )
        else:
            reply = legacy or DEFAULT_HUMAN_AGENT_MESSAGE

        logger.info(f"Human escalation requested | tenant_id={tenant_id} | webhook_fired={fired}")
        return TurnOutcome(
            reply=reply,
            session=session.model_copy(update={"history": append_turn(session.history, text, reply)}),
            human_escalation=HumanEscalationInfo(DIRECT_ESCALATION_REASON, fired),
        )

    def _greeting_turn(
        self,
        tenant: TenantConfig,
        agent: ResolvedAgent,
        session: ConversationSession,
        text: str,
    ) -> TurnOutcome:
        reply = render_greeting(
            tenant.prompt.greeting,
            agent.name or "Assistente",
            tenant.branding.company_name or "a empresa",
        )
        return TurnOutcome(
            reply=reply,
            session=session.model_copy(update={"history": append_turn(session.history, text, reply)}),
        )

    async def _model_turn(
        self,
        tenant_id: str,
        tenant: TenantConfig,
        agent: ResolvedAgent,
        session: ConversationSession,
        phone: str,
        text: str,
    ) -> TurnOutcome:
        result: ModelResult = await self.model.respond(tenant_id, text, session.history, agent.id)

        reply = (result.content or "").strip()
        if not reply and result.handoff is not None:
            reply = result.handoff.transition_message
        reply = reply or FALLBACK_REPLY

        if result.appended:
            history = cap_history(result.messages)
        else:
            history = append_turn(session.history, text, reply)

        updates: dict[str, Any] = {"history": history}
        if result.tool_results:
            product = product_from_tool_result(result.tool_results[-1])
            if product is not None:
                updates["last_product"] = product
                logger.info(f"Product saved for order flow | tenant_id={tenant_id} | sku={product.sku}")

        decision = detect_handoff(agent, reply, text, history, result.handoff)
        if decision is not None:
            if decision.reply != reply:
                reply = decision.reply
                updates["history"] = replace_last_assistant(history, reply)
            return TurnOutcome(
                reply=reply,
                session=session.model_copy(update=updates),
                debug=result.messages,
                handoff=decision.signal,
            )

        escalation_info = None
        if result.human_escalation is not None:
            escalation = tenant.chat_flow.human_escalation if tenant.chat_flow else None
            fired = False
            if escalation is not None and escalation.enabled:
                fired = fire_escalation_webhook(
                    escalation, tenant_id, phone, text, transport=self.http_transport
                )
            escalation_info = HumanEscalationInfo(result.human_escalation.reason, fired)
            logger.info(
                f"Human escalation via tool | tenant_id={tenant_id} | agent_id={agent.id} | "
                f"webhook_fired={fired}"
            )

        return TurnOutcome(
            reply=reply,
            session=session.model_copy(update=updates),
            debug=result.messages,
            human_escalation=escalation_info,
        )


@lru_cache
def get_conversation_orchestrator() -> ConversationOrchestrator:
    """Process-wide orchestrator built from settings (stores from SESSION_BACKEND)."""
    settings = get_settings()
    return ConversationOrchestrator(get_resolver(), build_stores(settings), settings=settings)


async def process_message(
    tenant_id: str,
    phone: str,
    text: str,
    history: list[dict[str, Any]] | None = None,
    agent_id: str | None = None,
    *,
    orchestrator: ConversationOrchestrator | None = None,
) -> ChatResult:
    """Process one message with the given orchestrator (process-wide one by default)."""
    orchestrator = orchestrator or get_conversation_orchestrator()
    return await orchestrator.process_message(tenant_id, phone, text, history, agent_id)
