"""
Application-wide constants and configuration values.
"""

from .embedding_models import (
    CHARS_PER_TOKEN,
    DEFAULT_CHUNK_OVERLAP_FRACTION,
    DEFAULT_CHUNK_SIZE_TOKENS,
    EMBEDDING_MODELS,
    EMBEDDING_PROVIDER_TYPES,
    GLOBAL_SIMILARITY_THRESHOLD,
    LLM_PROVIDER_TYPES,
    MAX_DIMENSIONS,
    PROVIDER_TYPE_THRESHOLDS,
    default_similarity_threshold,
    max_input_tokens,
    model_dimensions,
)

__all__ = [
    "CHARS_PER_TOKEN",
    "DEFAULT_CHUNK_OVERLAP_FRACTION",
    "DEFAULT_CHUNK_SIZE_TOKENS",
    "EMBEDDING_MODELS",
    "EMBEDDING_PROVIDER_TYPES",
    "GLOBAL_SIMILARITY_THRESHOLD",
    "LLM_PROVIDER_TYPES",
    "MAX_DIMENSIONS",
    "PROVIDER_TYPE_THRESHOLDS",
    "default_similarity_threshold",
    "max_input_tokens",
    "model_dimensions",
]
