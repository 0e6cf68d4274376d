"""
Ollama vision provider implementation.

Sends documents to a local Ollama server through /api/generate.
"""

import base64
import time

import httpx

from src.config import get_logger, get_settings
from src.core.exceptions import LLMResponseError
from src.core.interfaces import HealthStatus, VisionResponse
from src.infrastructure.llm.base import BaseVisionProvider

logger = get_logger(__name__)


class OllamaProvider(BaseVisionProvider):
    """Ollama HTTP API provider."""

    name = "ollama"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(transport)
        settings = get_settings()
        self.host = settings.llm.ollama_host.rstrip("/")
        self.model = settings.llm.ollama_model

    async def analyze_document(
        self,
        content: bytes,
        mime_type: str,
        prompt: str,
        max_tokens: int = 2000,
    ) -> VisionResponse:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "images": [base64.b64encode(content).decode("ascii")],
            "stream": False,
            "format": "json",
            "options": {
                "temperature": self.temperature,
                "num_predict": max_tokens or self.max_tokens,
            },
        }

        async def _do_analyze() -> VisionResponse:
            start_time = time.time()
            result = await self._post_json(f"{self.host}/api/generate", payload, model=self.model)
            elapsed = time.time() - start_time

            response_text = result.get("response", "")
            if not response_text.strip():
                raise LLMResponseError(
                    f"Empty response (done_reason={result.get('done_reason')})",
                    response_text,
                )

            logger.info(
                "ollama_vision",
                model=self.model,
                mime_type=mime_type,
                response_len=len(response_text),
                elapsed_ms=int(elapsed * 1000),
            )
            return VisionResponse(
                text=response_text,
                model=self.model,
                prompt_tokens=result.get("prompt_eval_count", 0),
                completion_tokens=result.get("eval_count", 0),
            )

        return await self._with_resilience(_do_analyze)

    async def check_health(self) -> HealthStatus:
        """Check that Ollama is running and the model is pulled."""
        start_time = time.time()
        try:
            response = await self._get_client().get(f"{self.host}/api/tags", timeout=10)
        except httpx.ConnectError:
            return HealthStatus(
                available=False,
                provider=self.name,
                error=f"Cannot connect to Ollama at {self.host}. Is 'ollama serve' running?",
            )
        except httpx.HTTPError as e:
            return HealthStatus(available=False, provider=self.name, error=str(e))

        if response.status_code != 200:
            return HealthStatus(
                available=False,
                provider=self.name,
                error=f"HTTP {response.status_code}",
            )

        models = [m.get("name", "") for m in response.json().get("models", [])]
        if not any(self.model in m for m in models):
            return HealthStatus(
                available=False,
                provider=self.name,
                model=self.model,
                error=f"Model '{self.model}' not installed. Run: ollama pull {self.model}",
            )

        return HealthStatus(
            available=True,
            provider=self.name,
            model=self.model,
            response_time_ms=(time.time() - start_time) * 1000,
        )
