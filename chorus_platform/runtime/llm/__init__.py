"""Backend-agnostic async LLM clients (Anthropic, OpenAI)."""

from .base import LLMClient, LLMResponse
from .factory import SUPPORTED_BACKENDS, create_client

__all__ = ["LLMClient", "LLMResponse", "SUPPORTED_BACKENDS", "create_client"]
