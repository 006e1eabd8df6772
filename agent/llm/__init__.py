"""
Language model layer: chat model factory, reply post-processing and the
bounded tool-call loop (ModelOrchestrator).
"""

from agent.llm.client import build_chat_model
from agent.llm.model_orchestrator import MAX_MODEL_CALLS, ModelOrchestrator, ModelResult
from agent.llm.postprocess import FALLBACK_REPLY, sanitize_portuguese

__all__ = [
    "FALLBACK_REPLY",
    "MAX_MODEL_CALLS",
    "ModelOrchestrator",
    "ModelResult",
    "build_chat_model",
    "sanitize_portuguese",
]
