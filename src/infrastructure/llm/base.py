"""
Base vision provider with retry and circuit breaker patterns.

Provides resilience patterns and the shared HTTP call for all remote
model implementations.
"""

import time
from abc import ABC
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar, cast

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import get_logger, get_settings
from src.core.exceptions import (
    CircuitBreakerOpenError,
    LLMTimeoutError,
    LLMUnavailableError,
    ModelNotFoundError,
)
from src.core.interfaces import HealthStatus, IVisionProvider

logger = get_logger(__name__)

T = TypeVar("T")

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".tiff": "image/tiff",
    ".bmp": "image/bmp",
}


def guess_mime_type(file_name: str) -> str:
    """MIME type from the file extension, octet-stream when unknown."""
    suffix = "." + file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return MIME_TYPES.get(suffix, "application/octet-stream")


@dataclass
class CircuitBreakerState:
    """State for circuit breaker pattern."""

    provider: str = "llm"
    failures: int = 0
    last_failure_time: float = 0.0
    is_open: bool = False
    cooldown_seconds: int = 60
    failure_threshold: int = 3

    def record_failure(self) -> None:
        """Record a failure and potentially open the circuit."""
        self.failures += 1
        self.last_failure_time = time.time()

        if self.failures >= self.failure_threshold:
            self.is_open = True
            logger.warning(
                "circuit_breaker_opened",
                provider=self.provider,
                failures=self.failures,
                cooldown=self.cooldown_seconds,
            )

    def record_success(self) -> None:
        """Record a success and reset the circuit."""
        if self.is_open:
            logger.info("circuit_breaker_closed", provider=self.provider)
        self.failures = 0
        self.is_open = False

    def check(self) -> None:
        """
        Check if circuit allows requests.

        Raises CircuitBreakerOpenError if circuit is open and cooldown not elapsed.
        """
        if not self.is_open:
            return

        elapsed = time.time() - self.last_failure_time
        if elapsed < self.cooldown_seconds:
            raise CircuitBreakerOpenError(self.provider, int(self.cooldown_seconds - elapsed))

        # Cooldown elapsed, allow one request (half-open state)
        logger.info("circuit_breaker_half_open", provider=self.provider)

    @property
    def cooldown_remaining(self) -> int:
        """Seconds remaining in cooldown."""
        if not self.is_open:
            return 0
        elapsed = time.time() - self.last_failure_time
        return max(0, int(self.cooldown_seconds - elapsed))


class BaseVisionProvider(IVisionProvider, ABC):
    """
    Base class for remote vision providers with resilience patterns.

    Provides:
    - One pooled httpx client per provider
    - Automatic retries with exponential backoff on timeouts and
      connection errors
    - Circuit breaker for cascading failure prevention
    """

    name = "vision"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        settings = get_settings()
        self.timeout = settings.llm.timeout
        self.max_tokens = settings.llm.max_tokens
        self.temperature = settings.llm.temperature
        self.circuit_breaker = CircuitBreakerState(
            provider=self.name,
            failure_threshold=settings.llm.failure_threshold,
            cooldown_seconds=settings.llm.cooldown_seconds,
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _post_json(
        self,
        url: str,
        payload: dict,
        headers: dict[str, str] | None = None,
        model: str | None = None,
    ) -> dict:
        """
        POST a JSON payload and return the decoded JSON body.

        httpx timeouts surface as TimeoutError and transport failures as
        ConnectionError so the retry policy can see them.
        """
        try:
            response = await self._get_client().post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise TimeoutError(str(e) or "request timed out") from e
        except httpx.TransportError as e:
            raise ConnectionError(str(e) or type(e).__name__) from e

        if response.status_code == 404:
            raise ModelNotFoundError(model or payload.get("model", "unknown"), self.name)
        if response.status_code >= 400:
            raise LLMUnavailableError(
                self.name, f"HTTP {response.status_code}: {response.text[:200]}"
            )
        return response.json()

    def _get_retry_decorator(self) -> Any:
        """Get tenacity retry decorator with current settings."""
        settings = get_settings()
        return retry(
            stop=stop_after_attempt(settings.llm.max_retries),
            wait=wait_exponential(
                multiplier=settings.llm.retry_delay,
                min=settings.llm.retry_delay,
                max=settings.llm.retry_delay * (settings.llm.retry_multiplier**3),
            ),
            retry=retry_if_exception_type((TimeoutError, ConnectionError)),
            before_sleep=self._log_retry,
            reraise=True,
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        """Log retry attempts."""
        logger.warning(
            "llm_retry",
            attempt=retry_state.attempt_number,
            error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        )

    async def _with_resilience(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute operation with retry and circuit breaker.

        Raises:
            CircuitBreakerOpenError: If circuit is open
            LLMTimeoutError: If operation times out
            LLMUnavailableError: If provider is unavailable
        """
        self.circuit_breaker.check()

        try:
            retry_decorator = self._get_retry_decorator()
            result = await retry_decorator(operation)(*args, **kwargs)

            self.circuit_breaker.record_success()
            return cast(T, result)

        except TimeoutError:
            self.circuit_breaker.record_failure()
            raise LLMTimeoutError(self.timeout) from None

        except ConnectionError as e:
            self.circuit_breaker.record_failure()
            raise LLMUnavailableError(self.name, str(e)) from e

        except LLMUnavailableError:
            self.circuit_breaker.record_failure()
            raise

        except Exception as e:
            # Don't trip circuit for other errors (e.g., invalid response)
            logger.error("llm_error", provider=self.name, error=str(e), error_type=type(e).__name__)
            raise

    async def _probe(self, url: str, headers: dict[str, str] | None = None) -> HealthStatus:
        """GET a cheap endpoint and report availability."""
        start_time = time.time()
        try:
            response = await self._get_client().get(url, headers=headers, timeout=10)
        except httpx.HTTPError as e:
            return HealthStatus(available=False, provider=self.name, error=str(e) or type(e).__name__)

        if response.status_code != 200:
            return HealthStatus(
                available=False,
                provider=self.name,
                model=getattr(self, "model", None),
                error=f"HTTP {response.status_code}",
            )
        return HealthStatus(
            available=True,
            provider=self.name,
            model=getattr(self, "model", None),
            response_time_ms=(time.time() - start_time) * 1000,
        )
