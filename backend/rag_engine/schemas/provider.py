from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rag_engine.constants.embedding_models import (
    DEFAULT_CHUNK_OVERLAP_FRACTION,
    DEFAULT_CHUNK_SIZE_TOKENS,
    EMBEDDING_PROVIDER_TYPES,
    LLM_PROVIDER_TYPES,
    MAX_DIMENSIONS,
    default_similarity_threshold,
    model_dimensions,
)


def _check_dimensions(value: Optional[int]) -> Optional[int]:
    if value is not None and not 0 < value <= MAX_DIMENSIONS:
        raise ValueError(f"dimensions must be between 1 and {MAX_DIMENSIONS}")
    return value


# --------------------------------------------------------------------------- #
# Embedding providers
# --------------------------------------------------------------------------- #
class EmbeddingProviderBase(BaseModel):
    name: str = Field(..., max_length=255)
    provider_type: str
    model: str
    dimensions: Optional[int] = None
    chunk_size_tokens: int = Field(DEFAULT_CHUNK_SIZE_TOKENS, gt=0)
    chunk_overlap_fraction: float = Field(DEFAULT_CHUNK_OVERLAP_FRACTION, ge=0, lt=1)
    similarity_threshold: Optional[float] = Field(None, ge=0, le=1)
    endpoint: Optional[str] = None
    enabled: bool = False

    @field_validator("provider_type")
    @classmethod
    def check_provider_type(cls, value: str) -> str:
        value = value.lower()
        if value not in EMBEDDING_PROVIDER_TYPES:
            raise ValueError(f"unknown embedding provider type: {value}")
        return value

    @field_validator("dimensions")
    @classmethod
    def check_dimensions(cls, value: Optional[int]) -> Optional[int]:
        return _check_dimensions(value)

    @model_validator(mode="after")
    def default_dimensions(self):
        if self.dimensions is None:
            self.dimensions = model_dimensions(self.model)
        if self.dimensions is None:
            raise ValueError(f"dimensions are required for model {self.model}")
        return self


class EmbeddingProviderCreate(EmbeddingProviderBase):
    api_key: Optional[str] = None


class EmbeddingProviderUpdate(BaseModel):
    name: Optional[str] = None
    model: Optional[str] = None
    dimensions: Optional[int] = None
    chunk_size_tokens: Optional[int] = Field(None, gt=0)
    chunk_overlap_fraction: Optional[float] = Field(None, ge=0, lt=1)
    similarity_threshold: Optional[float] = Field(None, ge=0, le=1)
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator("dimensions")
    @classmethod
    def check_dimensions(cls, value: Optional[int]) -> Optional[int]:
        return _check_dimensions(value)


class EmbeddingProviderRead(BaseModel):
    id: UUID
    name: str
    provider_type: str
    model: str
    dimensions: int
    chunk_size_tokens: int
    chunk_overlap_fraction: float
    similarity_threshold: Optional[float] = None
    endpoint: Optional[str] = None
    masked_api_key: Optional[str] = None
    enabled: bool

    model_config = ConfigDict(from_attributes=True)


class EmbeddingProviderConfig(BaseModel):
    """Runtime view of an embedding provider, credentials decrypted."""

    id: Optional[str] = None
    name: str = ""
    provider_type: str
    model: str
    dimensions: int
    chunk_size_tokens: int = DEFAULT_CHUNK_SIZE_TOKENS
    chunk_overlap_fraction: float = DEFAULT_CHUNK_OVERLAP_FRACTION
    similarity_threshold: Optional[float] = None
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    enabled: bool = True

    @property
    def effective_similarity_threshold(self) -> float:
        if self.similarity_threshold is not None:
            return self.similarity_threshold
        return default_similarity_threshold(self.provider_type, self.model)


# --------------------------------------------------------------------------- #
# Language model providers
# --------------------------------------------------------------------------- #
def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class LlmProviderBase(BaseModel):
    name: str = Field(..., max_length=255)
    provider_type: str
    model: str
    endpoint: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2048
    timeout_seconds: float = Field(120, gt=0)
    enabled: bool = True
    is_default: bool = False

    @field_validator("provider_type")
    @classmethod
    def check_provider_type(cls, value: str) -> str:
        value = value.lower()
        if value not in LLM_PROVIDER_TYPES:
            raise ValueError(f"unknown llm provider type: {value}")
        return value

    @field_validator("temperature")
    @classmethod
    def clamp_temperature(cls, value: float) -> float:
        return _clamp(value, 0.0, 2.0)

    @field_validator("max_tokens")
    @classmethod
    def clamp_max_tokens(cls, value: int) -> int:
        return int(_clamp(value, 1, 128000))


class LlmProviderCreate(LlmProviderBase):
    api_key: Optional[str] = None


class LlmProviderUpdate(BaseModel):
    name: Optional[str] = None
    model: Optional[str] = None
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout_seconds: Optional[float] = Field(None, gt=0)
    enabled: Optional[bool] = None
    is_default: Optional[bool] = None

    @field_validator("temperature")
    @classmethod
    def clamp_temperature(cls, value: Optional[float]) -> Optional[float]:
        return None if value is None else _clamp(value, 0.0, 2.0)

    @field_validator("max_tokens")
    @classmethod
    def clamp_max_tokens(cls, value: Optional[int]) -> Optional[int]:
        return None if value is None else int(_clamp(value, 1, 128000))


class LlmProviderRead(BaseModel):
    id: UUID
    name: str
    provider_type: str
    model: str
    endpoint: Optional[str] = None
    masked_api_key: Optional[str] = None
    temperature: float
    max_tokens: int
    timeout_seconds: float
    enabled: bool
    is_default: bool

    model_config = ConfigDict(from_attributes=True)


class LlmProviderConfig(BaseModel):
    id: Optional[str] = None
    name: str = ""
    provider_type: str
    model: str
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2048
    timeout_seconds: float = 120
    enabled: bool = True
    is_default: bool = False
