"""
Base embedding adapter interface
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Sequence, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rag_engine.constants.embedding_models import CHARS_PER_TOKEN, max_input_tokens
from rag_engine.core.exceptions.provider_errors import (
    ApiError,
    ConfigurationError,
    RateLimitError,
)
from rag_engine.schemas.provider import EmbeddingProviderConfig


logger = logging.getLogger(__name__)

T = TypeVar("T")

TRUNCATION_MARKER = "..."


class BaseEmbeddingAdapter(ABC):
    """
    Translates the provider-agnostic embed contract into one backend's wire shape.

    Subclasses implement ``_request_batch``; this class owns validation,
    input truncation, HTTP error classification and rate-limit retries.
    """

    provider_type: str = ""
    DEFAULT_ENDPOINT: str = ""
    DEFAULT_TIMEOUT: float = 60.0
    REQUIRES_API_KEY: bool = True

    def __init__(self,
                 config: EmbeddingProviderConfig,
                 http_client: Optional[httpx.AsyncClient] = None,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 timeout: Optional[float] = None):
        self.config = config
        self.http_client = http_client
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._validated = False

    @property
    def endpoint(self) -> str:
        return (self.config.endpoint or self.DEFAULT_ENDPOINT).rstrip("/")

    @property
    def max_input_chars(self) -> int:
        return max_input_tokens(self.config.model) * CHARS_PER_TOKEN

    def validate(self) -> None:
        """Fail fast with ConfigurationError before the first request."""
        if not self.config.model:
            raise ConfigurationError(f"{self.provider_type}: model is required")
        if not self.config.dimensions or self.config.dimensions <= 0:
            raise ConfigurationError(f"{self.provider_type}: dimensions must be positive")
        if self.REQUIRES_API_KEY and not self.config.api_key:
            raise ConfigurationError(f"{self.provider_type}: API key is required")
        if not self.endpoint:
            raise ConfigurationError(f"{self.provider_type}: endpoint is required")
        self._validated = True

    def truncate(self, text: str) -> str:
        limit = self.max_input_chars
        if len(text) <= limit:
            return text
        return text[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed texts, returning one vector per input in input order."""
        if not texts:
            return []
        if not self._validated:
            self.validate()

        prepared = [self.truncate(text or "") for text in texts]
        vectors = await self._embed_batch(prepared)

        if len(vectors) != len(prepared):
            raise ApiError(
                f"{self.provider_type}: expected {len(prepared)} embeddings, got {len(vectors)}"
            )
        for vector in vectors:
            if len(vector) != self.config.dimensions:
                raise ApiError(
                    f"{self.provider_type}: embedding has {len(vector)} dimensions, "
                    f"expected {self.config.dimensions}"
                )
        return vectors

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        return await self.with_retry(self._request_batch, texts)

    @abstractmethod
    async def _request_batch(self, texts: List[str]) -> List[List[float]]:
        """Send one request to the backend and return vectors in input order."""

    async def with_retry(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RateLimitError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            before_sleep=lambda retry_state: logger.warning(
                f"{self.provider_type}: rate limited, retry "
                f"{retry_state.attempt_number}/{self.max_attempts}"
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await fn(*args)
        return result

    # ------------------------------------------------------------------ #
    # HTTP helpers
    # ------------------------------------------------------------------ #
    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def post_json(self, path: str, payload: dict) -> Any:
        url = f"{self.endpoint}{path}"
        try:
            async with self._client() as client:
                response = await client.post(
                    url, json=payload, headers=self.headers(), timeout=self.timeout
                )
        except httpx.TimeoutException as e:
            raise ApiError(f"{self.provider_type}: request to {url} timed out") from e
        except httpx.ConnectError as e:
            raise self.connection_error(url, e) from e
        except httpx.HTTPError as e:
            raise ApiError(f"{self.provider_type}: request failed: {e}") from e

        self.classify_response(response)
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"{self.provider_type}: response is not valid JSON") from e

    def connection_error(self, url: str, error: Exception) -> Exception:
        return ApiError(f"{self.provider_type}: could not connect to {url}: {error}")

    def classify_response(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        status = response.status_code
        detail = self.error_detail(response)
        if status == 429:
            raise RateLimitError(f"{self.provider_type}: rate limit exceeded: {detail}", status)
        if status in (401, 403):
            raise ConfigurationError(f"{self.provider_type}: invalid credentials: {detail}")
        raise ApiError(f"{self.provider_type}: HTTP {status}: {detail}", status)

    @staticmethod
    def error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return str(error.get("message", error))
            if error:
                return str(error)
            if body.get("message"):
                return str(body["message"])
        return str(body)[:200]
