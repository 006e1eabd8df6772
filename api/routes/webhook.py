"""
Inbound messaging webhook (WhatsApp and other channels).

    POST /webhook/messages/{tenant_id}   tenant from the URL
    POST /webhook/messages               tenant from the body (tenant_id, tenantId, channel_id)

Payload: {"phone": "...", "message": "..."} (aliases: from/sender_id,
text/content; optional assistant_id). Response: {"reply": "..."}.
The conversation history lives server side; callers never reset it here.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from agent.routing.conversation_orchestrator import ConversationOrchestrator
from api.dependencies import get_orchestrator
from api.middleware.signature_validation import validate_webhook_signature
from api.models.chat import WebhookMessagePayload
from shared.tenant_config import DEFAULT_TENANT_ID, TenantNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])

INVALID_PAYLOAD = {
    "error": "Payload inválido",
    "message": "Campos obrigatórios: phone (ou from/sender_id), message (ou text/content).",
}
WEBHOOK_ERROR_REPLY = "Desculpe, tive um problema ao processar. Tente novamente em instantes."


async def _read_payload(request: Request) -> WebhookMessagePayload | None:
    try:
        raw: Any = await request.json()
    except ValueError:
        return None
    if not isinstance(raw, dict):
        return None
    try:
        return WebhookMessagePayload.model_validate(raw)
    except ValidationError:
        return None


async def handle_webhook_message(
    request: Request,
    tenant_id: str | None,
    orchestrator: ConversationOrchestrator,
) -> JSONResponse:
    payload = await _read_payload(request)
    if payload is None or not payload.is_complete:
        logger.warning(f"Invalid webhook payload | path={request.url.path}")
        return JSONResponse(status_code=400, content=INVALID_PAYLOAD)

    try:
        validate_webhook_signature(request)
    except HTTPException as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.detail})

    if tenant_id is None:
        tenant_id = payload.tenant_id if isinstance(payload.tenant_id, str) else None
    tid = (tenant_id or "").strip() or DEFAULT_TENANT_ID
    assistant_id = payload.assistant_id.strip() if isinstance(payload.assistant_id, str) else None

    logger.info(
        f"Webhook message received | tenant_id={tid} | phone={payload.phone}",
        extra={"tenant_id": tid, "customer_phone": payload.phone},
    )

    try:
        result = await orchestrator.process_message(
            tid, payload.phone, payload.message, None, assistant_id or None
        )
    except TenantNotFoundError:
        raise
    except Exception as e:
        logger.error(
            f"Webhook processing failed | tenant_id={tid} | phone={payload.phone} | error={e}",
            exc_info=True,
        )
        return JSONResponse(status_code=500, content={"reply": WEBHOOK_ERROR_REPLY})

    if result.handoff is not None:
        logger.info(
            f"Webhook turn handed off | tenant_id={tid} | to={result.handoff.target_agent_id}"
        )
    return JSONResponse(status_code=200, content={"reply": result.reply})


@router.post("/messages/{tenant_id}")
async def receive_tenant_message(
    tenant_id: str,
    request: Request,
    orchestrator: Annotated[ConversationOrchestrator, Depends(get_orchestrator)],
) -> JSONResponse:
    """Receive a message for the tenant named in the URL."""
    return await handle_webhook_message(request, tenant_id.strip() or DEFAULT_TENANT_ID, orchestrator)


@router.post("/messages")
async def receive_message(
    request: Request,
    orchestrator: Annotated[ConversationOrchestrator, Depends(get_orchestrator)],
) -> JSONResponse:
    """Receive a message; tenant comes from the body (default tenant otherwise)."""
    return await handle_webhook_message(request, None, orchestrator)
