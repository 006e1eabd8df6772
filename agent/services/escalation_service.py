"""
Escalation Service - notifies an external system when a customer asks for a human.

When the tenant's chat flow configures humanEscalation.webhookUrl, the
payload below is sent without blocking the reply:

    {"tenantId", "phone", "message", "timestamp", "event": "human_escalation"}

GET sends the payload as query params, POST as a JSON body. Webhook failures
are logged and never reach the customer.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from shared.config import get_settings
from shared.tenant_config import HumanEscalation

logger = logging.getLogger(__name__)

ESCALATION_EVENT = "human_escalation"

# Strong references to in-flight webhook tasks (the loop keeps only weak ones)
_background_tasks: set[asyncio.Task] = set()


def build_escalation_payload(tenant_id: str, phone: str, message: str) -> dict[str, Any]:
    return {
        "tenantId": tenant_id,
        "phone": phone,
        "message": message,
        "timestamp": datetime.now(UTC).isoformat(),
        "event": ESCALATION_EVENT,
    }


async def send_escalation_webhook(
    url: str,
    method: str,
    payload: dict[str, Any],
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """
    Deliver the escalation payload.

    Returns:
        True on a 2xx answer, False otherwise (logged, not raised)
    """
    try:
        async with httpx.AsyncClient(transport=transport, timeout=timeout) as client:
            if method.upper() == "GET":
                response = await client.get(url, params=payload)
            else:
                response = await client.post(url, json=payload)
            response.raise_for_status()
        logger.info(
            f"Escalation webhook delivered | tenant_id={payload.get('tenantId')} | "
            f"status={response.status_code}"
        )
        return True
    except httpx.HTTPError as e:
        logger.error(
            f"Escalation webhook failed | tenant_id={payload.get('tenantId')} | url={url} | error={e}"
        )
        return False


def fire_escalation_webhook(
    escalation: HumanEscalation | None,
    tenant_id: str,
    phone: str,
    message: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """
    Schedule the escalation webhook as a fire-and-forget task.

    Returns:
        True when a webhook was scheduled, False when none is configured
    """
    url = (escalation.webhook_url or "").strip() if escalation else ""
    if not url:
        return False

    payload = build_escalation_payload(tenant_id, phone, message)
    task = asyncio.create_task(
        send_escalation_webhook(
            url,
            escalation.method,
            payload,
            timeout=float(get_settings().ESCALATION_WEBHOOK_TIMEOUT),
            transport=transport,
        )
    )
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    logger.info(f"Escalation webhook scheduled | tenant_id={tenant_id} | method={escalation.method}")
    return True
