"""LLM helpers for vault-search."""

from .text_client import LLMGenerationError, LLMResponse, TextLLMClient

__all__ = [
    "TextLLMClient",
    "LLMResponse",
    "LLMGenerationError",
]
