"""
Abstract interfaces for remote vision model providers.

Defines the contract that the Ollama, OpenAI and Gemini adapters fulfill.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class LLMProvider(str, Enum):
    """Supported extraction backends."""

    MOCK = "mock"
    OLLAMA = "ollama"
    OPENAI = "openai"
    GEMINI = "gemini"


@dataclass
class VisionResponse:
    """Response from vision model."""

    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    error: str | None = None


@dataclass
class HealthStatus:
    """Provider health status."""

    available: bool
    provider: str
    model: str | None = None
    error: str | None = None
    response_time_ms: float | None = None


class IVisionProvider(ABC):
    """
    Abstract interface for vision/multimodal providers.

    Used for reading invoice documents.
    """

    name: str = "vision"

    @abstractmethod
    async def analyze_document(
        self,
        content: bytes,
        mime_type: str,
        prompt: str,
        max_tokens: int = 2000,
    ) -> VisionResponse:
        """
        Send a document and an instruction prompt to the model.

        Args:
            content: Raw document bytes
            mime_type: MIME type of the document
            prompt: Instruction prompt
            max_tokens: Maximum tokens to generate

        Returns:
            VisionResponse with the model's text output
        """
        pass

    @abstractmethod
    async def check_health(self) -> HealthStatus:
        """Check if the provider is reachable."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None
