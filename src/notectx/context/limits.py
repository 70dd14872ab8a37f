"""Context-window sizes for the supported model providers."""

from __future__ import annotations

import logging

logger = logging.getLogger("notectx.limits")

DEFAULT_CONTEXT_WINDOW = 6000

# Usable context per model, in tokens. Conservative on purpose for providers
# with small per-request rate limits.
MODEL_TOKEN_LIMITS: dict[str, dict[str, int]] = {
    "openai": {
        "gpt-4o": 24000,
        "gpt-4o-mini": 24000,
        "gpt-4-turbo": 24000,
        "gpt-4": 6000,
        "gpt-3.5-turbo": 2000,
    },
    "anthropic": {
        "claude-3-5-sonnet-20241022": 180000,
        "claude-3-5-haiku-20241022": 180000,
        "claude-3-opus-20240229": 180000,
        "claude-3-sonnet-20240229": 180000,
        "claude-3-haiku-20240307": 180000,
    },
    "groq": {
        "llama-3.3-70b-versatile": 24000,
        "llama-3.1-70b-versatile": 24000,
        "llama-3.1-8b-instant": 24000,
        "llama3-groq-70b-8192-tool-use-preview": 6000,
        "llama3-groq-8b-8192-tool-use-preview": 6000,
    },
    "xai": {
        "grok-beta": 24000,
        "grok-vision-beta": 24000,
    },
}

# Local models are named freely, so size them from the name. First match wins.
_OLLAMA_PATTERNS: list[tuple[tuple[str, ...], int]] = [
    (("70b", "72b"), 24000),
    (("13b", "14b", "34b"), 16000),
    (("7b", "8b", "9b"), 12000),
    (("3b", "4b"), 8000),
    (("1b", "2b"), 4000),
    (("code", "deepseek"), 16000),
    (("qwen",), 16000),
    (("mistral",), 8000),
    (("llama",), 12000),
]
_OLLAMA_DEFAULT = 8000


def ollama_token_limit(model: str) -> int:
    name = model.lower()
    for needles, limit in _OLLAMA_PATTERNS:
        if any(needle in name for needle in needles):
            return limit
    return _OLLAMA_DEFAULT


def model_token_limit(provider: str | None, model: str | None) -> int:
    """Context window for ``provider``/``model``, or the default when unknown."""
    if not provider or not model:
        return DEFAULT_CONTEXT_WINDOW

    provider = provider.lower()
    if provider == "ollama":
        return ollama_token_limit(model)

    limit = MODEL_TOKEN_LIMITS.get(provider, {}).get(model)
    if limit is None:
        logger.warning(
            f"Unknown model {provider}/{model}, using default limit {DEFAULT_CONTEXT_WINDOW}"
        )
        return DEFAULT_CONTEXT_WINDOW
    return limit
