"""
OpenAI vision provider.

Uses the chat completions endpoint with the document attached as a data
URI and JSON-object response format.
"""

import base64
import time

import httpx

from src.config import get_logger, get_settings
from src.core.exceptions import ConfigurationError, LLMResponseError
from src.core.interfaces import HealthStatus, VisionResponse
from src.infrastructure.llm.base import BaseVisionProvider

logger = get_logger(__name__)


class OpenAIProvider(BaseVisionProvider):
    """OpenAI chat completions provider."""

    name = "openai"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(transport)
        settings = get_settings()
        if not settings.llm.openai_api_key:
            raise ConfigurationError("LLM_OPENAI_API_KEY is required for the openai provider")
        self.base_url = settings.llm.openai_base_url.rstrip("/")
        self.model = settings.llm.openai_model
        self._headers = {"Authorization": f"Bearer {settings.llm.openai_api_key}"}

    def _build_payload(self, content: bytes, mime_type: str, prompt: str, max_tokens: int) -> dict:
        data_uri = f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": data_uri}},
                    ],
                }
            ],
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }

    async def analyze_document(
        self,
        content: bytes,
        mime_type: str,
        prompt: str,
        max_tokens: int = 2000,
    ) -> VisionResponse:
        payload = self._build_payload(content, mime_type, prompt, max_tokens or self.max_tokens)

        async def _do_analyze() -> VisionResponse:
            start_time = time.time()
            result = await self._post_json(
                f"{self.base_url}/chat/completions", payload, headers=self._headers, model=self.model
            )
            elapsed = time.time() - start_time

            try:
                text = result["choices"][0]["message"]["content"] or ""
            except (KeyError, IndexError, TypeError):
                raise LLMResponseError("Missing choices[0].message.content", str(result)) from None
            if not text.strip():
                raise LLMResponseError("Empty response", text)

            usage = result.get("usage") or {}
            logger.info(
                "openai_vision",
                model=self.model,
                mime_type=mime_type,
                response_len=len(text),
                elapsed_ms=int(elapsed * 1000),
            )
            return VisionResponse(
                text=text,
                model=result.get("model", self.model),
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
            )

        return await self._with_resilience(_do_analyze)

    async def check_health(self) -> HealthStatus:
        return await self._probe(f"{self.base_url}/models/{self.model}", headers=self._headers)
