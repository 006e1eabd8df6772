"""
Chat model factory.

Every agent talks to its model through OpenRouter's OpenAI-compatible API
using langchain-openai's ChatOpenAI. The model id comes from the agent
configuration, falling back to Settings.LLM_MODEL.
"""

import logging

from langchain_openai import ChatOpenAI

from shared.config import Settings, get_settings
from shared.tenant_config import ResolvedAgent, TenantConfig

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def api_key_configured(settings: Settings | None = None) -> bool:
    settings = settings or get_settings()
    return bool("".join(settings.OPENROUTER_API_KEY.split()))


def build_chat_model(
    agent: ResolvedAgent,
    tenant: TenantConfig,
    settings: Settings | None = None,
) -> ChatOpenAI:
    """
    Create the chat model for an agent.

    Args:
        agent: Resolved agent (model id and temperature)
        tenant: Tenant configuration (attribution title)
        settings: Settings with API key, timeouts and defaults

    Returns:
        ChatOpenAI configured for OpenRouter
    """
    settings = settings or get_settings()
    model = (agent.model or "").strip() or settings.LLM_MODEL
    title = (agent.name or "").strip() or tenant.branding.assistant_name or settings.SITE_NAME

    logger.debug(f"Building chat model | agent_id={agent.id} | model={model}")
    return ChatOpenAI(
        model=model,
        base_url=OPENROUTER_BASE_URL,
        # Keys pasted into env vars sometimes carry whitespace/newlines
        api_key="".join(settings.OPENROUTER_API_KEY.split()),
        temperature=agent.temperature,
        max_tokens=settings.LLM_MAX_TOKENS,
        request_timeout=settings.LLM_REQUEST_TIMEOUT,
        max_retries=settings.LLM_MAX_RETRIES,
        default_headers={
            "HTTP-Referer": settings.SITE_URL,
            "X-Title": title,
        },
    )
