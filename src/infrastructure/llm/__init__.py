"""Remote vision model implementations."""

from src.core.interfaces.llm import IVisionProvider
from src.infrastructure.llm.base import (
    BaseVisionProvider,
    CircuitBreakerState,
    guess_mime_type,
)
from src.infrastructure.llm.factory import (
    check_llm_health,
    close_vision_providers,
    create_vision_provider,
    get_vision_provider,
)
from src.infrastructure.llm.gemini import GeminiProvider
from src.infrastructure.llm.ollama import OllamaProvider
from src.infrastructure.llm.openai import OpenAIProvider

__all__ = [
    # Interface
    "IVisionProvider",
    # Base
    "BaseVisionProvider",
    "CircuitBreakerState",
    "guess_mime_type",
    # Providers
    "OllamaProvider",
    "OpenAIProvider",
    "GeminiProvider",
    # Factory
    "create_vision_provider",
    "get_vision_provider",
    "close_vision_providers",
    "check_llm_health",
]
