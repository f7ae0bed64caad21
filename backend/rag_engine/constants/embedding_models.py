"""
Centralized configuration for embedding and language model providers.
This is the single source of truth for supported provider types, model
dimensions, input caps and similarity thresholds.
"""

from typing import Dict, List, Optional, TypedDict


# Token counts are estimated from character length, never tokenized.
CHARS_PER_TOKEN = 3

DEFAULT_MAX_INPUT_TOKENS = 512
MAX_DIMENSIONS = 4096
GLOBAL_SIMILARITY_THRESHOLD = 0.3

DEFAULT_CHUNK_SIZE_TOKENS = 512
DEFAULT_CHUNK_OVERLAP_FRACTION = 0.1


class EmbeddingModelInfo(TypedDict):
    """Information about an embedding model"""
    value: str
    dimensions: int
    max_input_tokens: int
    similarity_threshold: float


EMBEDDING_PROVIDER_TYPES: List[str] = [
    "openai",
    "cohere",
    "ollama",
]

EMBEDDING_MODELS: Dict[str, List[EmbeddingModelInfo]] = {
    "openai": [
        {"value": "text-embedding-3-small", "dimensions": 1536, "max_input_tokens": 8191, "similarity_threshold": 0.28},
        {"value": "text-embedding-3-large", "dimensions": 3072, "max_input_tokens": 8191, "similarity_threshold": 0.28},
        {"value": "text-embedding-ada-002", "dimensions": 1536, "max_input_tokens": 8191, "similarity_threshold": 0.28},
    ],
    "cohere": [
        {"value": "embed-english-v3.0", "dimensions": 1024, "max_input_tokens": 512, "similarity_threshold": 0.30},
        {"value": "embed-multilingual-v3.0", "dimensions": 1024, "max_input_tokens": 512, "similarity_threshold": 0.30},
        {"value": "embed-english-light-v3.0", "dimensions": 384, "max_input_tokens": 512, "similarity_threshold": 0.28},
        {"value": "embed-multilingual-light-v3.0", "dimensions": 384, "max_input_tokens": 512, "similarity_threshold": 0.28},
    ],
    "ollama": [
        {"value": "embeddinggemma", "dimensions": 768, "max_input_tokens": 2048, "similarity_threshold": 0.38},
        {"value": "nomic-embed-text", "dimensions": 768, "max_input_tokens": 600, "similarity_threshold": 0.42},
        {"value": "mxbai-embed-large", "dimensions": 1024, "max_input_tokens": 512, "similarity_threshold": 0.35},
        {"value": "all-minilm", "dimensions": 384, "max_input_tokens": 256, "similarity_threshold": 0.30},
        {"value": "snowflake-arctic-embed", "dimensions": 1024, "max_input_tokens": 512, "similarity_threshold": 0.32},
    ],
}

PROVIDER_TYPE_THRESHOLDS: Dict[str, float] = {
    "openai": 0.28,
    "cohere": 0.30,
    "ollama": 0.35,
}

LLM_PROVIDER_TYPES: List[str] = [
    "openai",
    "anthropic",
    "ollama",
    "azure_openai",
    "bedrock",
    "cohere",
]


def _model_info(model: Optional[str]) -> Optional[EmbeddingModelInfo]:
    if not model:
        return None
    # ollama model names may carry a tag, e.g. "nomic-embed-text:latest"
    name = model.split(":", 1)[0]
    for models in EMBEDDING_MODELS.values():
        for info in models:
            if info["value"] == name:
                return info
    return None


def model_dimensions(model: Optional[str]) -> Optional[int]:
    info = _model_info(model)
    return info["dimensions"] if info else None


def max_input_tokens(model: Optional[str]) -> int:
    info = _model_info(model)
    return info["max_input_tokens"] if info else DEFAULT_MAX_INPUT_TOKENS


def default_similarity_threshold(provider_type: Optional[str], model: Optional[str]) -> float:
    """Model default, else provider type default, else the global fallback."""
    info = _model_info(model)
    if info:
        return info["similarity_threshold"]
    return PROVIDER_TYPE_THRESHOLDS.get(provider_type or "", GLOBAL_SIMILARITY_THRESHOLD)
