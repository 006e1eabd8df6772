"""
Conversation session schema.

A ConversationSession is stored per (tenant, agent, phone). It is immutable:
the orchestrator derives a new session with model_copy() on every turn and
persists it once.

History entries are role-tagged dicts, most recent last:
    {"role": "user" | "assistant", "content": str}
    {"role": "assistant", "content": str, "tool_calls": [{"id", "name", "args"}]}
    {"role": "tool", "content": str, "tool_call_id": str, "name": str}
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from agent.fsm.models import OrderSession, ProductSnapshot


class ConversationSession(BaseModel):
    """Per-conversation state: rolling history, order progress, last product."""

    model_config = ConfigDict(frozen=True)

    history: list[dict[str, Any]] = Field(default_factory=list)
    order: OrderSession = Field(default_factory=OrderSession)
    last_product: ProductSnapshot | None = None
