"""
Chat simulator endpoints.

- POST /api/chat: process one message and return the reply with debug data
- GET /api/config: branding, greeting and webhook URL of a tenant
"""

import logging
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse

from agent.routing.conversation_orchestrator import ConversationOrchestrator, render_greeting
from api.dependencies import get_orchestrator, get_tenant_resolver
from api.models.chat import AssistantSummary, ChatRequest, ChatResponse, ConfigResponse
from shared.config import get_settings
from shared.tenant_config import DEFAULT_TENANT_ID, TenantConfigResolver, TenantNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

CHAT_ERROR_REPLY = "Desculpe, tive um erro interno. Tente novamente."


def _first(*values: str | None) -> str | None:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


@router.post("/chat", response_model=ChatResponse, response_model_by_alias=True)
async def chat(
    body: ChatRequest,
    orchestrator: Annotated[ConversationOrchestrator, Depends(get_orchestrator)],
    x_tenant_id: Annotated[str | None, Header()] = None,
    x_assistant_id: Annotated[str | None, Header()] = None,
    tenant: Annotated[str | None, Query()] = None,
    assistant: Annotated[str | None, Query()] = None,
):
    """
    Process one chat message.

    Tenant: X-Tenant-Id header, ?tenant= or "default".
    Agent: X-Assistant-Id header, ?assistant= or body assistantId.
    An empty history list resets the conversation.

    **Errors:**
    - **404**: Unknown tenant
    - **500**: Unexpected failure (generic reply, details only in logs)
    """
    tenant_id = _first(x_tenant_id, tenant) or DEFAULT_TENANT_ID
    assistant_id = _first(x_assistant_id, assistant, body.assistant_id)

    try:
        result = await orchestrator.process_message(
            tenant_id, body.phone, body.message, body.history, assistant_id
        )
    except TenantNotFoundError:
        raise
    except Exception as e:
        logger.error(
            f"Chat request failed | tenant_id={tenant_id} | phone={body.phone} | error={e}",
            exc_info=True,
        )
        return JSONResponse(status_code=500, content={"reply": CHAT_ERROR_REPLY})

    return ChatResponse.from_result(result, assistant_id)


@router.get("/config", response_model=ConfigResponse, response_model_by_alias=True)
async def tenant_config(
    resolver: Annotated[TenantConfigResolver, Depends(get_tenant_resolver)],
    x_tenant_id: Annotated[str | None, Header()] = None,
    x_assistant_id: Annotated[str | None, Header()] = None,
    tenant: Annotated[str | None, Query()] = None,
    assistant: Annotated[str | None, Query()] = None,
):
    """Branding, greeting, webhook URL and assistants of a tenant (404 when unknown)."""
    settings = get_settings()
    tenant_id = _first(x_tenant_id, tenant) or DEFAULT_TENANT_ID
    assistant_id = _first(x_assistant_id, assistant)

    config = resolver.get_tenant(tenant_id)
    agent = resolver.resolve_agent(tenant_id, assistant_id)

    assistant_name = agent.name or "AltraFlow"
    company_name = config.branding.company_name or "AltraFlow"
    chat_flow = config.chat_flow

    return ConfigResponse(
        assistant_name=assistant_name,
        company_name=company_name,
        greeting=render_greeting(config.prompt.greeting, assistant_name, company_name),
        webhook_url=f"{settings.PUBLIC_BASE_URL.rstrip('/')}/webhook/messages/{quote(tenant_id)}",
        webhook_secret_configured=bool(settings.WEBHOOK_SECRET),
        entry_agent_id=chat_flow.entry_agent_id if chat_flow else None,
        human_escalation=(
            chat_flow.human_escalation.model_dump(by_alias=True)
            if chat_flow and chat_flow.human_escalation
            else None
        ),
        assistants=[AssistantSummary(id=a.id, name=a.name) for a in config.assistants],
    )
