"""
Cohere embedding adapter
"""

from typing import List

from rag_engine.core.exceptions.provider_errors import ApiError
from .base import BaseEmbeddingAdapter


class CohereEmbeddingAdapter(BaseEmbeddingAdapter):
    """Batch REST; v3 models nest vectors under ``embeddings.float``."""

    provider_type = "cohere"
    DEFAULT_ENDPOINT = "https://api.cohere.com/v1"
    DEFAULT_TIMEOUT = 60.0

    async def _request_batch(self, texts: List[str]) -> List[List[float]]:
        payload = {
            "model": self.config.model,
            "texts": texts,
            "input_type": "search_document",
            "truncate": "END",
        }
        if "v3" in self.config.model:
            payload["embedding_types"] = ["float"]

        body = await self.post_json("/embed", payload)
        embeddings = body.get("embeddings") if isinstance(body, dict) else None
        if isinstance(embeddings, dict):
            embeddings = embeddings.get("float")
        if not isinstance(embeddings, list):
            raise ApiError("cohere: response has no embeddings")
        return embeddings
