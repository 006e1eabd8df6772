"""FastAPI dependencies (overridable in tests via app.dependency_overrides)."""

from agent.routing.conversation_orchestrator import (
    ConversationOrchestrator,
    get_conversation_orchestrator,
)
from shared.tenant_config import TenantConfigResolver


def get_orchestrator() -> ConversationOrchestrator:
    return get_conversation_orchestrator()


def get_tenant_resolver() -> TenantConfigResolver:
    return get_conversation_orchestrator().resolver
