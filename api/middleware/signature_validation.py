"""Signature check for the inbound messaging webhook."""

import logging

from fastapi import HTTPException, Request

from shared.config import get_settings

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("X-Webhook-Signature", "X-Signature")


def validate_webhook_signature(request: Request) -> None:
    """
    Require a signature header when WEBHOOK_SECRET is configured.

    Only presence is checked: the messaging provider signs with its own
    scheme and the header value is not verified against the secret.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    settings = get_settings()
    if not settings.WEBHOOK_SECRET:
        return

    signature = next(
        (request.headers.get(h) for h in SIGNATURE_HEADERS if request.headers.get(h) is not None),
        None,
    )
    if signature is None:
        logger.warning(f"Webhook received without signature header | path={request.url.path}")
        raise HTTPException(status_code=401, detail="Assinatura do webhook ausente.")
    if not signature.strip():
        logger.warning(f"Webhook received with blank signature | path={request.url.path}")
        raise HTTPException(status_code=401, detail="Assinatura do webhook inválida.")
