"""
Extractor backed by a remote vision model.

Sends the document with a fixed instruction prompt and parses the JSON the
model returns. Any provider, transport, timeout or parsing failure becomes
a failed ExtractionResult.
"""

import asyncio
import time

from src.config import get_logger, get_settings
from src.core.entities.extraction import ExtractionResult
from src.core.exceptions import BillingError
from src.core.interfaces import IInvoiceExtractor, IVisionProvider
from src.core.services.extraction_parser import parse_extraction_response
from src.infrastructure.llm.base import guess_mime_type

logger = get_logger(__name__)

EXTRACTION_PROMPT = """You are an expert invoice processing system. Extract all information from the provided invoice document and return it in JSON format.

REQUIRED OUTPUT FORMAT (JSON):
{
  "invoiceNumber": "string (required)",
  "invoiceDate": "string (ISO 8601 date)",
  "dueDate": "string (ISO 8601 date, optional)",
  "vendorName": "string (required)",
  "customerName": "string (optional)",
  "currency": "string (3-letter code, default: USD)",
  "totalAmount": "number (required)",
  "taxAmount": "number (optional)",
  "subtotal": "number (optional)",
  "lineItems": [
    {
      "description": "string (required)",
      "quantity": "number (required)",
      "unit": "string (optional)",
      "unitPrice": "number (required)",
      "lineTotal": "number (required)"
    }
  ]
}

RULES:
1. Extract all amounts as numbers (not strings)
2. If currency is not specified, use USD
3. Format dates as YYYY-MM-DD
4. If any field cannot be found, use null or empty string
5. Validate that line item totals match quantity * unit price
6. Return ONLY the JSON, no additional text
"""


class LLMInvoiceExtractor(IInvoiceExtractor):
    """Invoice extraction through an IVisionProvider."""

    def __init__(
        self,
        provider: IVisionProvider,
        timeout: float | None = None,
        prompt: str = EXTRACTION_PROMPT,
    ):
        settings = get_settings()
        self._provider = provider
        self._timeout = timeout if timeout is not None else settings.llm.timeout
        self._max_tokens = settings.llm.max_tokens
        self._prompt = prompt
        self.name = getattr(provider, "name", "llm")

    async def extract_invoice(self, content: bytes, file_name: str) -> ExtractionResult:
        mime_type = guess_mime_type(file_name)
        start_time = time.time()

        try:
            response = await asyncio.wait_for(
                self._provider.analyze_document(
                    content, mime_type, self._prompt, max_tokens=self._max_tokens
                ),
                timeout=self._timeout,
            )
            invoice = parse_extraction_response(response.text)
        except asyncio.TimeoutError:
            error = f"{self.name} API error: timed out after {self._timeout} seconds"
        except BillingError as e:
            error = f"{self.name} API error: {e.message}"
        except Exception as e:
            error = f"{self.name} API error: {e}"
        else:
            logger.info(
                "llm_extraction_complete",
                file_name=file_name,
                provider=self.name,
                invoice_number=invoice.invoice_number,
                line_items=len(invoice.line_items),
                elapsed_ms=int((time.time() - start_time) * 1000),
            )
            return ExtractionResult.ok(invoice, self.name, file_name)

        logger.error("llm_extraction_failed", file_name=file_name, provider=self.name, error=error)
        return ExtractionResult.failure(error, self.name, file_name)
