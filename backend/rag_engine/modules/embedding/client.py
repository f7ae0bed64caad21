"""
Provider-agnostic embedding client
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Type

import httpx

from rag_engine.core.config.settings import settings
from rag_engine.core.exceptions.provider_errors import ConfigurationError
from rag_engine.schemas.provider import EmbeddingProviderConfig
from .base import BaseEmbeddingAdapter
from .cohere import CohereEmbeddingAdapter
from .ollama import OllamaEmbeddingAdapter
from .openai import OpenAIEmbeddingAdapter


logger = logging.getLogger(__name__)


EMBEDDING_ADAPTERS: Dict[str, Type[BaseEmbeddingAdapter]] = {
    "openai": OpenAIEmbeddingAdapter,
    "cohere": CohereEmbeddingAdapter,
    "ollama": OllamaEmbeddingAdapter,
}


def get_embedding_adapter(config: EmbeddingProviderConfig, **kwargs) -> BaseEmbeddingAdapter:
    adapter_cls = EMBEDDING_ADAPTERS.get((config.provider_type or "").lower())
    if adapter_cls is None:
        raise ConfigurationError(f"Unsupported embedding provider type: {config.provider_type}")
    if adapter_cls is not OllamaEmbeddingAdapter:
        kwargs.pop("concurrency", None)
    return adapter_cls(config, **kwargs)


class EmbeddingClient:
    """
    Facade over one configured embedding provider.

    Large inputs are split into batches that are embedded concurrently;
    vectors are returned in the order of the input texts.
    """

    def __init__(self,
                 config: EmbeddingProviderConfig,
                 http_client: Optional[httpx.AsyncClient] = None,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 timeout: Optional[float] = None,
                 batch_size: int = 96,
                 concurrency: int = 4):
        self.config = config
        self.batch_size = max(1, batch_size)
        self.concurrency = max(1, concurrency)
        self.adapter = get_embedding_adapter(
            config,
            http_client=http_client,
            max_attempts=max_attempts,
            base_delay=base_delay,
            timeout=timeout,
            concurrency=concurrency,
        )

    @classmethod
    def from_settings(cls, config: EmbeddingProviderConfig,
                      http_client: Optional[httpx.AsyncClient] = None) -> "EmbeddingClient":
        return cls(
            config,
            http_client=http_client,
            max_attempts=settings.EMBEDDING_MAX_ATTEMPTS,
            base_delay=settings.EMBEDDING_RETRY_BASE_DELAY,
            batch_size=settings.EMBEDDING_BATCH_SIZE,
            concurrency=settings.EMBEDDING_CONCURRENCY,
        )

    @property
    def provider(self) -> EmbeddingProviderConfig:
        return self.config

    @property
    def provider_id(self) -> Optional[str]:
        return self.config.id

    @property
    def dimensions(self) -> int:
        return self.config.dimensions

    @property
    def similarity_threshold(self) -> float:
        return self.config.effective_similarity_threshold

    def validate(self) -> None:
        self.adapter.validate()

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        texts = list(texts)
        if len(texts) <= self.batch_size:
            return await self.adapter.embed(texts)

        batches = [texts[i:i + self.batch_size] for i in range(0, len(texts), self.batch_size)]
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(batch: List[str]) -> List[List[float]]:
            async with semaphore:
                return await self.adapter.embed(batch)

        logger.debug(f"Embedding {len(texts)} texts in {len(batches)} batches")
        results = await asyncio.gather(*(run(batch) for batch in batches))
        return [vector for batch in results for vector in batch]

    async def embed_one(self, text: str) -> List[float]:
        vectors = await self.embed([text])
        return vectors[0]
