"""
Pure selection and conversion helpers over provider records.

Callers load the provider collection once and pass the chosen configuration
explicitly; nothing here reads global state.
"""

from typing import Iterable, Optional, TypeVar

from rag_engine.core.utils.encryption_utils import decrypt_key
from rag_engine.db.models.providers import EmbeddingProviderModel, LlmProviderModel
from rag_engine.schemas.provider import EmbeddingProviderConfig, LlmProviderConfig


P = TypeVar("P")


def select_default_llm_provider(providers: Iterable[P]) -> Optional[P]:
    """First enabled provider flagged default, else the first enabled one."""
    enabled = [p for p in providers if getattr(p, "enabled", False)]
    return next((p for p in enabled if getattr(p, "is_default", False)), enabled[0] if enabled else None)


def select_embedding_provider(providers: Iterable[P]) -> Optional[P]:
    return next((p for p in providers if getattr(p, "enabled", False)), None)


def _api_key(connection_data: Optional[dict]) -> Optional[str]:
    token = (connection_data or {}).get("api_key")
    return decrypt_key(token) if token else None


def to_embedding_config(obj: EmbeddingProviderModel) -> EmbeddingProviderConfig:
    return EmbeddingProviderConfig(
        id=str(obj.id),
        name=obj.name,
        provider_type=obj.provider_type,
        model=obj.model,
        dimensions=obj.dimensions,
        chunk_size_tokens=obj.chunk_size_tokens,
        chunk_overlap_fraction=obj.chunk_overlap_fraction,
        similarity_threshold=obj.similarity_threshold,
        api_key=_api_key(obj.connection_data),
        endpoint=obj.endpoint,
        enabled=obj.enabled,
    )


def to_llm_config(obj: LlmProviderModel) -> LlmProviderConfig:
    return LlmProviderConfig(
        id=str(obj.id),
        name=obj.name,
        provider_type=obj.provider_type,
        model=obj.model,
        api_key=_api_key(obj.connection_data),
        endpoint=obj.endpoint,
        temperature=obj.temperature,
        max_tokens=obj.max_tokens,
        timeout_seconds=obj.timeout_seconds,
        enabled=obj.enabled,
        is_default=obj.is_default,
    )


def embedding_signature(config: Optional[EmbeddingProviderConfig]) -> Optional[tuple]:
    """Fields whose change invalidates every stored embedding."""
    if config is None:
        return None
    return (config.id, config.provider_type, config.model, config.dimensions,
            config.chunk_size_tokens, config.chunk_overlap_fraction)
