"""Convenience exports for Plan Forge language-model client implementations."""

from .llm_client import (
    ChatRequest,
    LLMClient,
    LLMClientError,
    LLMResponseFormatError,
    LLMTransportError,
)
from .openai_chat import OpenAIChatClient

__all__ = [
    "ChatRequest",
    "LLMClient",
    "LLMClientError",
    "LLMResponseFormatError",
    "LLMTransportError",
    "OpenAIChatClient",
]
