"""
Gemini vision provider.

Calls the generateContent REST endpoint with the document as inline data
and asks for an application/json response.
"""

import base64
import time

import httpx

from src.config import get_logger, get_settings
from src.core.exceptions import ConfigurationError, LLMResponseError
from src.core.interfaces import HealthStatus, VisionResponse
from src.infrastructure.llm.base import BaseVisionProvider

logger = get_logger(__name__)


class GeminiProvider(BaseVisionProvider):
    """Google Gemini generateContent provider."""

    name = "gemini"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(transport)
        settings = get_settings()
        if not settings.llm.gemini_api_key:
            raise ConfigurationError("LLM_GEMINI_API_KEY is required for the gemini provider")
        self.base_url = settings.llm.gemini_base_url.rstrip("/")
        self.model = settings.llm.gemini_model
        self._headers = {"x-goog-api-key": settings.llm.gemini_api_key}

    def _build_payload(self, content: bytes, mime_type: str, prompt: str, max_tokens: int) -> dict:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(content).decode("ascii"),
                            }
                        },
                    ],
                }
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "topP": 0.8,
                "topK": 40,
                "maxOutputTokens": max_tokens,
                "responseMimeType": "application/json",
            },
        }

    async def analyze_document(
        self,
        content: bytes,
        mime_type: str,
        prompt: str,
        max_tokens: int = 2048,
    ) -> VisionResponse:
        payload = self._build_payload(content, mime_type, prompt, max_tokens or self.max_tokens)
        url = f"{self.base_url}/models/{self.model}:generateContent"

        async def _do_analyze() -> VisionResponse:
            start_time = time.time()
            result = await self._post_json(url, payload, headers=self._headers, model=self.model)
            elapsed = time.time() - start_time

            candidates = result.get("candidates") or []
            if not candidates:
                raise LLMResponseError("No candidates in Gemini response", str(result))
            parts = (candidates[0].get("content") or {}).get("parts") or []
            text = "".join(p.get("text", "") for p in parts)
            if not text.strip():
                raise LLMResponseError("Empty response", text)

            usage = result.get("usageMetadata") or {}
            logger.info(
                "gemini_vision",
                model=self.model,
                mime_type=mime_type,
                response_len=len(text),
                elapsed_ms=int(elapsed * 1000),
            )
            return VisionResponse(
                text=text,
                model=self.model,
                prompt_tokens=usage.get("promptTokenCount", 0),
                completion_tokens=usage.get("candidatesTokenCount", 0),
            )

        return await self._with_resilience(_do_analyze)

    async def check_health(self) -> HealthStatus:
        return await self._probe(f"{self.base_url}/models/{self.model}", headers=self._headers)
