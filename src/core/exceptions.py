"""
Exceptions for the billing extractor.

Every error carries a stable ``code`` and a ``details`` dict so the API
layer can render it without knowing the concrete type.
"""

from typing import Any


class BillingError(Exception):
    """Base exception for all billing extractor errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Domain Exceptions
class DomainError(BillingError):
    """A value object or the invoice aggregate rejected its input."""

    pass


class InvalidAmountError(DomainError):
    """Monetary amount is negative or not a number."""

    def __init__(self, amount: Any):
        super().__init__(
            f"Amount must be a non-negative number, got {amount!r}",
            code="INVALID_AMOUNT",
            details={"amount": str(amount)},
        )


class InvalidCurrencyError(DomainError):
    """Currency code is empty or blank."""

    def __init__(self, currency: Any):
        super().__init__(
            "Currency is required",
            code="INVALID_CURRENCY",
            details={"currency": currency},
        )


class CurrencyMismatchError(DomainError):
    """Two monetary values with different currencies were combined."""

    def __init__(self, left: str, right: str, operation: str):
        super().__init__(
            f"Cannot {operation} {left} and {right}: currency mismatch",
            code="CURRENCY_MISMATCH",
            details={"left": left, "right": right, "operation": operation},
        )


class NegativeResultError(DomainError):
    """Subtraction would produce a negative amount."""

    def __init__(self, left: str, right: str):
        super().__init__(
            f"Subtracting {right} from {left} would produce a negative amount",
            code="NEGATIVE_RESULT",
            details={"left": left, "right": right},
        )


class InvalidArgumentError(DomainError):
    """Aggregate factory or mutator received an invalid argument."""

    def __init__(self, argument: str, reason: str):
        super().__init__(
            f"Invalid {argument}: {reason}",
            code="INVALID_ARGUMENT",
            details={"argument": argument, "reason": reason},
        )


# Storage Exceptions
class StorageError(BillingError):
    """Base exception for storage operations."""

    pass


class InvoiceNotFoundError(StorageError):
    """Invoice not found in storage."""

    def __init__(self, invoice_id: str):
        super().__init__(
            f"Invoice not found: {invoice_id}",
            code="INVOICE_NOT_FOUND",
            details={"invoice_id": invoice_id},
        )


class DuplicateContentError(StorageError):
    """An invoice with the same file content already exists."""

    def __init__(self, file_hash: str, existing_number: str | None = None):
        super().__init__(
            f"Invoice with the same content already exists: {existing_number or file_hash}",
            code="DUPLICATE_CONTENT",
            details={"file_hash": file_hash, "existing_number": existing_number},
        )


class StoredFileNotFoundError(StorageError):
    """Stored document is missing from file storage."""

    def __init__(self, path: str):
        super().__init__(
            f"Stored file not found: {path}",
            code="FILE_NOT_FOUND",
            details={"path": path},
        )


class DatabaseError(StorageError):
    """Database operation failed."""

    def __init__(self, operation: str, error: str):
        super().__init__(
            f"Database error during {operation}: {error}",
            code="DATABASE_ERROR",
            details={"operation": operation, "error": error},
        )


# LLM Exceptions
class LLMError(BillingError):
    """Base exception for LLM operations."""

    pass


class LLMUnavailableError(LLMError):
    """LLM provider is not available."""

    def __init__(self, provider: str, reason: str | None = None):
        super().__init__(
            f"LLM provider unavailable: {provider}" + (f" - {reason}" if reason else ""),
            code="LLM_UNAVAILABLE",
            details={"provider": provider, "reason": reason},
        )


class LLMTimeoutError(LLMError):
    """LLM request timed out."""

    def __init__(self, timeout: float, operation: str = "extraction"):
        super().__init__(
            f"LLM {operation} timed out after {timeout} seconds",
            code="LLM_TIMEOUT",
            details={"timeout": timeout, "operation": operation},
        )


class LLMResponseError(LLMError):
    """LLM returned invalid or empty response."""

    def __init__(self, reason: str, response: str | None = None):
        super().__init__(
            f"Invalid LLM response: {reason}",
            code="LLM_RESPONSE_ERROR",
            details={"reason": reason, "response_preview": (response or "")[:200]},
        )


class ModelNotFoundError(LLMError):
    """Requested model not found."""

    def __init__(self, model: str, provider: str):
        super().__init__(
            f"Model '{model}' not found on {provider}",
            code="MODEL_NOT_FOUND",
            details={"model": model, "provider": provider},
        )


class CircuitBreakerOpenError(LLMError):
    """Circuit breaker is open due to repeated failures."""

    def __init__(self, provider: str, cooldown_remaining: int):
        super().__init__(
            f"Circuit breaker open for {provider}, retry in {cooldown_remaining}s",
            code="CIRCUIT_BREAKER_OPEN",
            details={"provider": provider, "cooldown_remaining": cooldown_remaining},
        )


# Extraction Exceptions
class ExtractionError(BillingError):
    """Structured data could not be extracted from a document."""

    def __init__(self, filename: str, reason: str, invoice_id: str | None = None):
        super().__init__(
            f"Failed to extract invoice from '{filename}': {reason}",
            code="EXTRACTION_ERROR",
            details={"filename": filename, "reason": reason, "invoice_id": invoice_id},
        )


# Input Exceptions
class InvalidInputError(BillingError):
    """Upload request is malformed."""

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(
            f"Invalid input for '{field}': {message}",
            code="INVALID_INPUT",
            details={
                "field": field,
                "message": message,
                "value": str(value)[:100] if value else None,
            },
        )


class FileTooLargeError(InvalidInputError):
    """Uploaded file exceeds size limit."""

    def __init__(self, filename: str, size: int, max_size: int):
        super().__init__(
            field="file",
            message=f"File '{filename}' is too large ({size} bytes, max {max_size})",
        )
        self.details.update(
            {
                "filename": filename,
                "size": size,
                "max_size": max_size,
            }
        )


class UnsupportedFileTypeError(InvalidInputError):
    """File type is not supported."""

    def __init__(self, filename: str, extension: str, allowed: list[str]):
        super().__init__(
            field="file",
            message=f"Unsupported file type '{extension}'. Allowed: {', '.join(allowed)}",
        )
        self.details.update(
            {
                "filename": filename,
                "extension": extension,
                "allowed": allowed,
            }
        )


class ConfigurationError(BillingError):
    """Configuration error."""

    pass
