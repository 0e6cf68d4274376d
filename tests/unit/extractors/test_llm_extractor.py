"""Unit tests for LLMInvoiceExtractor with a fake vision provider."""

import asyncio

import pytest

from src.core.exceptions import LLMUnavailableError
from src.core.interfaces import HealthStatus, IVisionProvider, VisionResponse
from src.infrastructure.extractors import EXTRACTION_PROMPT, LLMInvoiceExtractor, create_extractor
from src.infrastructure.extractors.factory import get_extractor, reset_extractor
from src.infrastructure.extractors.mock_extractor import MockInvoiceExtractor


class FakeProvider(IVisionProvider):
    """Returns a canned response or raises a canned error."""

    name = "fake"

    def __init__(self, text: str = "", error: Exception | None = None, delay: float = 0):
        self.text = text
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str, int]] = []

    async def analyze_document(self, content, mime_type, prompt, max_tokens=2000):
        self.calls.append((mime_type, prompt, max_tokens))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return VisionResponse(text=self.text, model="fake-model")

    async def check_health(self) -> HealthStatus:
        return HealthStatus(available=True, provider=self.name)


VALID_JSON = '{"invoiceNumber": "INV-7", "vendorName": "Acme", "totalAmount": 10, "lineItems": []}'


class TestLLMInvoiceExtractor:
    """Tests for response handling and error mapping."""

    @pytest.mark.asyncio
    async def test_success(self):
        provider = FakeProvider(text=VALID_JSON)
        extractor = LLMInvoiceExtractor(provider)

        result = await extractor.extract_invoice(b"%PDF", "invoice.pdf")

        assert result.success
        assert result.provider == "fake"
        assert result.invoice.invoice_number == "INV-7"
        assert result.invoice.vendor_name == "Acme"

    @pytest.mark.asyncio
    async def test_sends_prompt_and_mime_type(self):
        provider = FakeProvider(text=VALID_JSON)

        await LLMInvoiceExtractor(provider).extract_invoice(b"\x89PNG", "Scan.PNG")

        mime_type, prompt, max_tokens = provider.calls[0]
        assert mime_type == "image/png"
        assert prompt == EXTRACTION_PROMPT
        assert max_tokens == 2000

    @pytest.mark.asyncio
    async def test_provider_error_becomes_failure(self):
        provider = FakeProvider(error=LLMUnavailableError("fake", "connection refused"))

        result = await LLMInvoiceExtractor(provider).extract_invoice(b"%PDF", "invoice.pdf")

        assert not result.success
        assert result.invoice is None
        assert result.error.startswith("fake API error:")
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failure(self):
        provider = FakeProvider(error=RuntimeError("socket closed"))

        result = await LLMInvoiceExtractor(provider).extract_invoice(b"%PDF", "invoice.pdf")

        assert result.error == "fake API error: socket closed"

    @pytest.mark.asyncio
    async def test_timeout_becomes_failure(self):
        provider = FakeProvider(text=VALID_JSON, delay=1)

        result = await LLMInvoiceExtractor(provider, timeout=0.01).extract_invoice(b"%PDF", "a.pdf")

        assert not result.success
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_unparseable_response_becomes_failure(self):
        provider = FakeProvider(text="I cannot read this document.")

        result = await LLMInvoiceExtractor(provider).extract_invoice(b"%PDF", "a.pdf")

        assert not result.success
        assert "No JSON object found" in result.error


class TestExtractorFactory:
    """Tests for extractor selection."""

    def test_mock_by_default(self):
        assert isinstance(create_extractor(), MockInvoiceExtractor)

    def test_singleton_until_reset(self):
        first = get_extractor()
        assert get_extractor() is first
        reset_extractor()
        assert get_extractor() is not first

    def test_remote_provider_wraps_vision_provider(self):
        extractor = create_extractor("ollama")
        assert isinstance(extractor, LLMInvoiceExtractor)
        assert extractor.name == "ollama"
