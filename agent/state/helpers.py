"""
History helpers for ConversationSession.

History is windowed FIFO to the last MAX_HISTORY entries after every turn.
Helpers never mutate their input.
"""

from collections.abc import Sequence
from typing import Any

# Maximum number of history entries kept per session
MAX_HISTORY = 20


def cap_history(history: Sequence[dict[str, Any]], limit: int = MAX_HISTORY) -> list[dict[str, Any]]:
    """Return the last `limit` entries as a new list."""
    entries = list(history)
    if len(entries) > limit:
        return entries[-limit:]
    return entries


def append_turn(
    history: Sequence[dict[str, Any]],
    user_message: str,
    assistant_reply: str,
) -> list[dict[str, Any]]:
    """
    Append one user/assistant exchange and apply the FIFO window.

    Example:
        >>> history = append_turn([], "Oi", "Olá! Como posso ajudar?")
        >>> [m["role"] for m in history]
        ['user', 'assistant']
    """
    return cap_history(
        [
            *history,
            {"role": "user", "content": user_message},
            {"role": "assistant", "content": assistant_reply},
        ]
    )


def replace_last_assistant(history: Sequence[dict[str, Any]], content: str) -> list[dict[str, Any]]:
    """Return history with the content of its last assistant entry replaced."""
    entries = [dict(m) for m in history]
    for entry in reversed(entries):
        if entry.get("role") == "assistant":
            entry["content"] = content
            break
    return entries


def last_assistant_content(history: Sequence[dict[str, Any]]) -> str | None:
    for entry in reversed(history):
        if entry.get("role") == "assistant":
            return str(entry.get("content") or "")
    return None
