"""Unit tests for remote vision providers over a mocked HTTP transport."""

import base64
import json

import httpx
import pytest

from src.config import reset_settings
from src.core.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    LLMUnavailableError,
    ModelNotFoundError,
)
from src.infrastructure.llm import (
    CircuitBreakerState,
    GeminiProvider,
    OllamaProvider,
    OpenAIProvider,
    check_llm_health,
    create_vision_provider,
    get_vision_provider,
    guess_mime_type,
)


@pytest.fixture
def fast_retries(monkeypatch):
    """Two attempts, no backoff, circuit opens after two failures."""
    monkeypatch.setenv("LLM_MAX_RETRIES", "2")
    monkeypatch.setenv("LLM_RETRY_DELAY", "0")
    monkeypatch.setenv("LLM_FAILURE_THRESHOLD", "2")
    monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("LLM_GEMINI_API_KEY", "gm-test")
    reset_settings()


class Recorder:
    """MockTransport handler that records requests."""

    def __init__(self, responder):
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class TestGuessMimeType:
    @pytest.mark.parametrize(
        ("file_name", "expected"),
        [
            ("a.pdf", "application/pdf"),
            ("a.JPG", "image/jpeg"),
            ("a.jpeg", "image/jpeg"),
            ("scan.png", "image/png"),
            ("scan.tiff", "image/tiff"),
            ("scan.bmp", "image/bmp"),
            ("notes.txt", "application/octet-stream"),
            ("no_extension", "application/octet-stream"),
        ],
    )
    def test_mime_types(self, file_name, expected):
        assert guess_mime_type(file_name) == expected


class TestOllamaProvider:
    """Tests for OllamaProvider."""

    @pytest.mark.asyncio
    async def test_analyze_document(self, fast_retries):
        recorder = Recorder(
            lambda r: httpx.Response(
                200, json={"response": '{"invoiceNumber": "X"}', "prompt_eval_count": 5, "eval_count": 7}
            )
        )
        provider = OllamaProvider(transport=recorder.transport)

        response = await provider.analyze_document(b"\x89PNG", "image/png", "extract", max_tokens=100)

        assert response.text == '{"invoiceNumber": "X"}'
        assert response.prompt_tokens == 5
        assert response.completion_tokens == 7

        request = recorder.requests[0]
        assert request.url.path == "/api/generate"
        payload = json.loads(request.content)
        assert payload["images"] == [base64.b64encode(b"\x89PNG").decode("ascii")]
        assert payload["format"] == "json"
        assert payload["options"]["num_predict"] == 100
        await provider.close()

    @pytest.mark.asyncio
    async def test_missing_model_is_not_retried(self, fast_retries):
        recorder = Recorder(lambda r: httpx.Response(404, text="model not found"))
        provider = OllamaProvider(transport=recorder.transport)

        with pytest.raises(ModelNotFoundError):
            await provider.analyze_document(b"x", "image/png", "extract")

        assert len(recorder.requests) == 1
        assert provider.circuit_breaker.failures == 0

    @pytest.mark.asyncio
    async def test_server_error_trips_breaker(self, fast_retries):
        recorder = Recorder(lambda r: httpx.Response(500, text="boom"))
        provider = OllamaProvider(transport=recorder.transport)

        with pytest.raises(LLMUnavailableError):
            await provider.analyze_document(b"x", "image/png", "extract")

        assert provider.circuit_breaker.failures == 1

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self, fast_retries):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        recorder = Recorder(refuse)
        provider = OllamaProvider(transport=recorder.transport)

        with pytest.raises(LLMUnavailableError):
            await provider.analyze_document(b"x", "image/png", "extract")

        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_open_circuit_short_circuits(self, fast_retries):
        recorder = Recorder(lambda r: httpx.Response(503, text="overloaded"))
        provider = OllamaProvider(transport=recorder.transport)

        for _ in range(2):
            with pytest.raises(LLMUnavailableError):
                await provider.analyze_document(b"x", "image/png", "extract")

        with pytest.raises(CircuitBreakerOpenError):
            await provider.analyze_document(b"x", "image/png", "extract")
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_health_with_model_installed(self, fast_retries):
        recorder = Recorder(
            lambda r: httpx.Response(200, json={"models": [{"name": "llava:13b"}]})
        )
        provider = OllamaProvider(transport=recorder.transport)

        health = await provider.check_health()

        assert health.available
        assert health.model == "llava:13b"

    @pytest.mark.asyncio
    async def test_health_with_model_missing(self, fast_retries):
        recorder = Recorder(lambda r: httpx.Response(200, json={"models": []}))
        provider = OllamaProvider(transport=recorder.transport)

        health = await provider.check_health()

        assert not health.available
        assert "ollama pull" in health.error


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("LLM_OPENAI_API_KEY", raising=False)
        reset_settings()
        with pytest.raises(ConfigurationError):
            OpenAIProvider()

    @pytest.mark.asyncio
    async def test_analyze_document(self, fast_retries):
        recorder = Recorder(
            lambda r: httpx.Response(
                200,
                json={
                    "model": "gpt-4o",
                    "choices": [{"message": {"content": '{"invoiceNumber": "O-1"}'}}],
                    "usage": {"prompt_tokens": 11, "completion_tokens": 3},
                },
            )
        )
        provider = OpenAIProvider(transport=recorder.transport)

        response = await provider.analyze_document(b"%PDF", "application/pdf", "extract")

        assert response.text == '{"invoiceNumber": "O-1"}'
        assert response.prompt_tokens == 11

        request = recorder.requests[0]
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        image_part = payload["messages"][0]["content"][1]
        assert image_part["image_url"]["url"].startswith("data:application/pdf;base64,")
        assert payload["response_format"] == {"type": "json_object"}


class TestGeminiProvider:
    """Tests for GeminiProvider."""

    @pytest.mark.asyncio
    async def test_analyze_document(self, fast_retries):
        recorder = Recorder(
            lambda r: httpx.Response(
                200,
                json={
                    "candidates": [{"content": {"parts": [{"text": '{"invoiceNumber": '}, {"text": '"G-1"}'}]}}],
                    "usageMetadata": {"promptTokenCount": 9, "candidatesTokenCount": 4},
                },
            )
        )
        provider = GeminiProvider(transport=recorder.transport)

        response = await provider.analyze_document(b"%PDF", "application/pdf", "extract")

        assert response.text == '{"invoiceNumber": "G-1"}'
        assert response.completion_tokens == 4

        request = recorder.requests[0]
        assert request.url.path.endswith(":generateContent")
        assert request.headers["x-goog-api-key"] == "gm-test"
        payload = json.loads(request.content)
        assert payload["generationConfig"]["responseMimeType"] == "application/json"

    @pytest.mark.asyncio
    async def test_no_candidates_is_response_error(self, fast_retries):
        from src.core.exceptions import LLMResponseError

        recorder = Recorder(lambda r: httpx.Response(200, json={"candidates": []}))
        provider = GeminiProvider(transport=recorder.transport)

        with pytest.raises(LLMResponseError):
            await provider.analyze_document(b"%PDF", "application/pdf", "extract")
        assert provider.circuit_breaker.failures == 0


class TestCircuitBreakerState:
    """Tests for the circuit breaker."""

    def test_opens_at_threshold(self):
        breaker = CircuitBreakerState(failure_threshold=2, cooldown_seconds=60)
        breaker.record_failure()
        assert not breaker.is_open
        breaker.record_failure()
        assert breaker.is_open
        assert breaker.cooldown_remaining > 0

    def test_check_raises_while_open(self):
        breaker = CircuitBreakerState(failure_threshold=1, cooldown_seconds=60)
        breaker.record_failure()
        with pytest.raises(CircuitBreakerOpenError):
            breaker.check()

    def test_half_open_after_cooldown(self):
        breaker = CircuitBreakerState(failure_threshold=1, cooldown_seconds=0)
        breaker.record_failure()
        breaker.check()

    def test_success_resets(self):
        breaker = CircuitBreakerState(failure_threshold=1)
        breaker.record_failure()
        breaker.record_success()
        assert not breaker.is_open
        assert breaker.failures == 0


class TestProviderFactory:
    """Tests for the vision provider factory."""

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            create_vision_provider("bogus")

    def test_cached_per_type(self):
        assert get_vision_provider("ollama") is get_vision_provider("ollama")

    @pytest.mark.asyncio
    async def test_mock_backend_is_healthy(self):
        health = await check_llm_health()
        assert health["primary"]["available"] is True
        assert health["primary"]["provider"] == "mock"
