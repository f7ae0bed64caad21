from .base import BaseEmbeddingAdapter
from .client import EMBEDDING_ADAPTERS, EmbeddingClient, get_embedding_adapter
from .cohere import CohereEmbeddingAdapter
from .ollama import OllamaEmbeddingAdapter
from .openai import OpenAIEmbeddingAdapter

__all__ = [
    "BaseEmbeddingAdapter",
    "CohereEmbeddingAdapter",
    "EMBEDDING_ADAPTERS",
    "EmbeddingClient",
    "OllamaEmbeddingAdapter",
    "OpenAIEmbeddingAdapter",
    "get_embedding_adapter",
]
