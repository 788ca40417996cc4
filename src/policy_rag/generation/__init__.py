"""
Generation — prompt assembly and streamed, grounded answers.

Public API
----------
- :class:`ChatPipeline` — embed → retrieve → prompt → stream.
- :func:`build_chat_pipeline` — wire one from settings.
- :func:`build_rag_prompt` — the grounded prompt on its own.
"""

from policy_rag.generation.chat import ChatPipeline, build_chat_pipeline
from policy_rag.generation.prompts import build_rag_prompt

__all__ = [
    "ChatPipeline",
    "build_chat_pipeline",
    "build_rag_prompt",
]
