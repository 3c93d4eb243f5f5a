"""
Configuration constants for the chorus orchestration platform.
"""

import os

# Available models with their API identifiers, backend, and token limits
AVAILABLE_MODELS = {
    # --- Anthropic / Claude ---
    "opus":     {"id": "claude-opus-4-6",            "provider": "anthropic", "max_tokens": 8192, "label": "Opus 4.6 (deepest reasoning)"},
    "sonnet":   {"id": "claude-sonnet-4-5-20250929",  "provider": "anthropic", "max_tokens": 4096, "label": "Sonnet 4.5 (balanced)"},
    "haiku":    {"id": "claude-haiku-4-5-20251001",   "provider": "anthropic", "max_tokens": 4096, "label": "Haiku 4.5 (fast & cheap)"},
    # --- OpenAI ---
    "gpt-4o":      {"id": "gpt-4o",      "provider": "openai", "max_tokens": 4096, "label": "GPT-4o (balanced)"},
    "gpt-4o-mini": {"id": "gpt-4o-mini", "provider": "openai", "max_tokens": 4096, "label": "GPT-4o Mini (fast & cheap)"},
    "o3":          {"id": "o3",           "provider": "openai", "max_tokens": 8192, "label": "o3 (reasoning)"},
}

# Environment variable names for API keys, keyed by backend
API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai":    "OPENAI_API_KEY",
}

# Provider adapter id -> LLM backend and the model it uses by default.
PROVIDER_BACKENDS = {
    "claude":  {"backend": "anthropic", "default_model": "sonnet"},
    "chatgpt": {"backend": "openai",    "default_model": "gpt-4o"},
}

# Providers whose placeholders start in ``streaming`` rather than ``pending``.
PRIMARY_STREAMING_PROVIDER_IDS = ("claude", "chatgpt")

# Refiner: ordered fallback walk when the requested provider has no adapter.
REFINER_FALLBACK_PROVIDERS = ("claude", "chatgpt", "gemini")

# Refiner: cheap/fast model per provider. Providers not listed use their default.
REFINER_PREFERRED_MODELS = {
    "gemini":  "gemini-flash",
    "chatgpt": "gpt-4o-mini",
    "claude":  "haiku",
}

REFINER_MAX_VARIANTS = 3

# API adapters keep at most this many conversation transcripts (least recently used evicted).
_TRANSCRIPT_CACHE_SIZE_ENV = "CHORUS_TRANSCRIPT_CACHE_SIZE"
_DEFAULT_TRANSCRIPT_CACHE_SIZE = 256

_REFINER_TIMEOUT_SECONDS_ENV = "CHORUS_REFINER_TIMEOUT_SECONDS"
_DEFAULT_REFINER_TIMEOUT_SECONDS = 60


def _to_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


REFINER_TIMEOUT_SECONDS = _to_int_env(_REFINER_TIMEOUT_SECONDS_ENV, _DEFAULT_REFINER_TIMEOUT_SECONDS)
TRANSCRIPT_CACHE_SIZE = _to_int_env(_TRANSCRIPT_CACHE_SIZE_ENV, _DEFAULT_TRANSCRIPT_CACHE_SIZE)


def resolve_model(name: str) -> dict:
    """Resolve a model short name to its config dict.

    Full API identifiers (``"claude-haiku-4-5-20251001"``) are accepted too.
    Returns dict with keys: id, provider, max_tokens, label
    Raises ValueError if name is not recognised.
    """
    if name in AVAILABLE_MODELS:
        return dict(AVAILABLE_MODELS[name])
    for cfg in AVAILABLE_MODELS.values():
        if cfg["id"] == name:
            return dict(cfg)
    valid = ", ".join(AVAILABLE_MODELS.keys())
    raise ValueError(f"Unknown model '{name}'. Available models: {valid}")


def resolve_api_key(provider: str, explicit_key: str | None = None) -> str:
    """Get the API key for a backend.

    Priority:
        1. ``explicit_key`` if provided (e.g. from the CLI ``--api-key`` flag).
        2. The backend's environment variable (``ANTHROPIC_API_KEY`` or ``OPENAI_API_KEY``).

    Raises ValueError if no key is found.
    """
    if explicit_key:
        return explicit_key

    env_var = API_KEY_ENV_VARS.get(provider)
    if env_var:
        key = os.environ.get(env_var)
        if key:
            return key

    raise ValueError(
        f"No API key for provider '{provider}'. "
        f"Pass --api-key or set the {API_KEY_ENV_VARS.get(provider, '???')} environment variable."
    )
