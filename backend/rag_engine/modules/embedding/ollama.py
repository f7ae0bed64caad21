"""
Ollama embedding adapter
"""

import asyncio
from typing import List, Optional

import httpx

from rag_engine.core.exceptions.provider_errors import ApiError, ConfigurationError
from rag_engine.schemas.provider import EmbeddingProviderConfig
from .base import BaseEmbeddingAdapter


class OllamaEmbeddingAdapter(BaseEmbeddingAdapter):
    """
    Local Ollama server. One request per text, fanned out through a bounded
    worker pool; results keep input order.
    """

    provider_type = "ollama"
    DEFAULT_ENDPOINT = "http://localhost:11434"
    DEFAULT_TIMEOUT = 120.0
    REQUIRES_API_KEY = False

    def __init__(self, config: EmbeddingProviderConfig,
                 http_client: Optional[httpx.AsyncClient] = None,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 timeout: Optional[float] = None,
                 concurrency: int = 4):
        super().__init__(config, http_client=http_client, max_attempts=max_attempts,
                         base_delay=base_delay, timeout=timeout)
        self.concurrency = max(1, concurrency)

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def embed_single(text: str) -> List[float]:
            async with semaphore:
                return await self.with_retry(self._request_single, text)

        return list(await asyncio.gather(*(embed_single(text) for text in texts)))

    async def _request_batch(self, texts: List[str]) -> List[List[float]]:
        return [await self._request_single(text) for text in texts]

    async def _request_single(self, text: str) -> List[float]:
        body = await self.post_json("/api/embed", {"model": self.config.model, "input": text})
        embeddings = body.get("embeddings") if isinstance(body, dict) else None
        if not embeddings or not isinstance(embeddings, list):
            raise ApiError("ollama: response has no embeddings")
        return embeddings[0]

    def headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def connection_error(self, url: str, error: Exception) -> Exception:
        return ConfigurationError(
            f"ollama: cannot reach {url}, is the Ollama server running? ({error})"
        )

    def classify_response(self, response: httpx.Response) -> None:
        if response.status_code == 404:
            raise ConfigurationError(
                f"ollama: model '{self.config.model}' not found, "
                f"pull it first with `ollama pull {self.config.model}`"
            )
        super().classify_response(response)
