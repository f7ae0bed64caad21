"""
OpenAI embedding adapter
"""

from typing import List

from rag_engine.core.exceptions.provider_errors import ApiError
from .base import BaseEmbeddingAdapter


class OpenAIEmbeddingAdapter(BaseEmbeddingAdapter):
    """Batch REST; results carry an index and may come back out of order."""

    provider_type = "openai"
    DEFAULT_ENDPOINT = "https://api.openai.com/v1"
    DEFAULT_TIMEOUT = 60.0

    async def _request_batch(self, texts: List[str]) -> List[List[float]]:
        payload = {
            "model": self.config.model,
            "input": texts,
            "dimensions": self.config.dimensions,
        }
        body = await self.post_json("/embeddings", payload)

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise ApiError("openai: response has no 'data' list")
        try:
            ordered = sorted(data, key=lambda item: item["index"])
            return [item["embedding"] for item in ordered]
        except (KeyError, TypeError) as e:
            raise ApiError(f"openai: malformed embedding entry: {e}") from e
