"""
Vision provider factory.

Creates the remote provider named in configuration, once per process.
"""

from typing import Any

from src.config import get_logger, get_settings
from src.core.exceptions import ConfigurationError
from src.core.interfaces import IVisionProvider

logger = get_logger(__name__)

_providers: dict[str, IVisionProvider] = {}


def create_vision_provider(provider_type: str) -> IVisionProvider:
    """Build a fresh provider instance."""
    if provider_type == "ollama":
        from src.infrastructure.llm.ollama import OllamaProvider

        return OllamaProvider()

    elif provider_type == "openai":
        from src.infrastructure.llm.openai import OpenAIProvider

        return OpenAIProvider()

    elif provider_type == "gemini":
        from src.infrastructure.llm.gemini import GeminiProvider

        return GeminiProvider()

    else:
        raise ConfigurationError(f"Unknown vision provider: {provider_type}")


def get_vision_provider(provider_type: str | None = None) -> IVisionProvider:
    """
    Get a vision provider instance.

    Args:
        provider_type: "ollama", "openai" or "gemini" (default from settings)
    """
    provider_type = provider_type or get_settings().llm.provider
    if provider_type not in _providers:
        _providers[provider_type] = create_vision_provider(provider_type)
        logger.info("vision_provider_created", provider=provider_type)
    return _providers[provider_type]


async def close_vision_providers() -> None:
    """Close pooled HTTP clients and forget cached providers."""
    for provider in list(_providers.values()):
        await provider.close()
    _providers.clear()


async def check_llm_health() -> dict[str, Any]:
    """
    Check health of the configured extraction backend.

    Returns:
        Dict with health status of the primary provider
    """
    settings = get_settings()

    if settings.llm.provider == "mock":
        return {"primary": {"available": True, "provider": "mock", "model": None, "error": None}}

    try:
        provider = get_vision_provider()
        health = await provider.check_health()
        return {"primary": health.__dict__}
    except Exception as e:
        return {
            "primary": {
                "available": False,
                "provider": settings.llm.provider,
                "error": str(e),
            }
        }
