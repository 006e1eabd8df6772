"""Pydantic models for the chat, config and webhook endpoints."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agent.routing.conversation_orchestrator import ChatResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""

    model_config = ConfigDict(extra="ignore")

    message: str
    history: list[dict[str, Any]] | None = None
    phone: str = "default"
    assistant_id: str | None = Field(
        default=None, validation_alias=AliasChoices("assistantId", "assistant_id")
    )


class HandoffPayload(_CamelModel):
    target_agent_id: str
    transition_message: str
    initial_reply: str | None = None


class HumanEscalationPayload(_CamelModel):
    reason: str = Field(alias="motivo")
    webhook_fired: bool


class ChatResponse(_CamelModel):
    reply: str
    debug: list[dict[str, Any]] | None = None
    handoff: HandoffPayload | None = None
    human_escalation: HumanEscalationPayload | None = None
    effective_assistant_id: str | None = None

    @classmethod
    def from_result(cls, result: ChatResult, requested_agent_id: str | None = None) -> "ChatResponse":
        handoff = None
        if result.handoff is not None:
            handoff = HandoffPayload(
                target_agent_id=result.handoff.target_agent_id,
                transition_message=result.handoff.transition_message,
                initial_reply=result.handoff.initial_reply,
            )
        escalation = None
        if result.human_escalation is not None:
            escalation = HumanEscalationPayload(
                motivo=result.human_escalation.reason,
                webhook_fired=result.human_escalation.webhook_fired,
            )
        return cls(
            reply=result.reply,
            debug=result.debug,
            handoff=handoff,
            human_escalation=escalation,
            effective_assistant_id=result.effective_agent_id or requested_agent_id,
        )


class AssistantSummary(_CamelModel):
    id: str
    name: str


class ConfigResponse(_CamelModel):
    """Branding and entry points shown by the chat simulator."""

    assistant_name: str
    company_name: str
    greeting: str
    webhook_url: str
    webhook_secret_configured: bool
    entry_agent_id: str | None = None
    human_escalation: dict[str, Any] | None = None
    assistants: list[AssistantSummary] = []


class WebhookMessagePayload(BaseModel):
    """
    Inbound messaging webhook payload.

    Accepts the field aliases used by the messaging providers:
        phone | from | sender_id
        message | text | content
        assistant_id | assistantId
        tenant_id | tenantId | channel_id (only on /webhook/messages)
    """

    model_config = ConfigDict(extra="allow")

    phone: Any = Field(default=None, validation_alias=AliasChoices("phone", "from", "sender_id"))
    message: Any = Field(default=None, validation_alias=AliasChoices("message", "text", "content"))
    assistant_id: Any = Field(
        default=None, validation_alias=AliasChoices("assistant_id", "assistantId")
    )
    tenant_id: Any = Field(
        default=None, validation_alias=AliasChoices("tenant_id", "tenantId", "channel_id")
    )

    @property
    def is_complete(self) -> bool:
        return (
            isinstance(self.phone, str)
            and bool(self.phone)
            and isinstance(self.message, str)
            and bool(self.message)
        )
