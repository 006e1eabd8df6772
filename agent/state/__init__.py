"""Conversation session state: schema, history helpers and stores."""

from agent.state.helpers import MAX_HISTORY, append_turn, cap_history
from agent.state.schemas import ConversationSession
from agent.state.session_store import (
    CurrentAgentStore,
    InMemoryCurrentAgentStore,
    InMemorySessionStore,
    RedisCurrentAgentStore,
    RedisSessionStore,
    SessionStore,
    Stores,
    build_stores,
)

__all__ = [
    "MAX_HISTORY",
    "ConversationSession",
    "CurrentAgentStore",
    "InMemoryCurrentAgentStore",
    "InMemorySessionStore",
    "RedisCurrentAgentStore",
    "RedisSessionStore",
    "SessionStore",
    "Stores",
    "append_turn",
    "build_stores",
    "cap_history",
]
