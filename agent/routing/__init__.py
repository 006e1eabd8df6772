"""
Routing layer: decides who answers each inbound message.

Key components:
- ConversationOrchestrator: picks the branch for a message (order flow,
  canned human-escalation reply, greeting or model) and persists the session
- HandoffCoordinator: detects agent-to-agent transfers and completes them

Architecture:
    message → classify() → ConversationOrchestrator
        ├─ order in progress / order start → OrderFSM
        ├─ HUMAN_AGENT → escalation message (+ webhook)
        ├─ GREETING → greeting template
        └─ otherwise → ModelOrchestrator
                          ↓
                       detect_handoff() → HandoffCoordinator
"""

from agent.routing.conversation_orchestrator import (
    ChatResult,
    ConversationOrchestrator,
    HumanEscalationInfo,
    get_conversation_orchestrator,
    process_message,
)
from agent.routing.handoff_coordinator import (
    HandoffCoordinator,
    HandoffDecision,
    detect_handoff,
    last_assistant_asked_transfer_confirmation,
    reply_looks_like_transfer,
    user_message_is_confirmation,
)

__all__ = [
    "ChatResult",
    "ConversationOrchestrator",
    "HandoffCoordinator",
    "HandoffDecision",
    "HumanEscalationInfo",
    "detect_handoff",
    "get_conversation_orchestrator",
    "last_assistant_asked_transfer_confirmation",
    "process_message",
    "reply_looks_like_transfer",
    "user_message_is_confirmation",
]
