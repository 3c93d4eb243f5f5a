"""
Factory for creating LLM client instances by backend name.
"""

from .base import LLMClient


# Supported backend names (lowercase).
SUPPORTED_BACKENDS = ("anthropic", "openai")


def create_client(backend: str, api_key: str) -> LLMClient:
    """Create an ``LLMClient`` for the given backend.

    Args:
        backend: One of ``"anthropic"`` or ``"openai"`` (case-insensitive).
        api_key: The API key for the backend.

    Raises:
        ValueError: If the backend is not recognised.
        ImportError: If the backend's SDK package is not installed.
    """
    backend = backend.lower().strip()

    if backend == "anthropic":
        try:
            from .anthropic_client import AnthropicClient
        except ImportError as e:
            raise ImportError(
                "The 'anthropic' package is required for Anthropic models. "
                "Install it with: pip install anthropic"
            ) from e
        return AnthropicClient(api_key=api_key)

    if backend == "openai":
        try:
            from .openai_client import OpenAIClient
        except ImportError as e:
            raise ImportError(
                "The 'openai' package is required for OpenAI models. "
                "Install it with: pip install openai"
            ) from e
        return OpenAIClient(api_key=api_key)

    valid = ", ".join(SUPPORTED_BACKENDS)
    raise ValueError(
        f"Unknown LLM backend '{backend}'. Supported backends: {valid}"
    )
