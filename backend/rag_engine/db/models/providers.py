from typing import Optional

from sqlalchemy import Boolean, Float, Integer, PrimaryKeyConstraint, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from rag_engine.db.base import Base


class _ConnectionDataMixin:
    """Credentials live in ``connection_data``: encrypted api_key, masked_api_key, endpoint."""

    connection_data: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)

    @property
    def endpoint(self) -> Optional[str]:
        return (self.connection_data or {}).get("endpoint")

    @property
    def masked_api_key(self) -> Optional[str]:
        return (self.connection_data or {}).get("masked_api_key")


class EmbeddingProviderModel(_ConnectionDataMixin, Base):
    __tablename__ = 'embedding_providers'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='embedding_providers_pk'),
    )

    name: Mapped[str] = mapped_column(String(255))
    provider_type: Mapped[str] = mapped_column(String(50))
    model: Mapped[str] = mapped_column(String(255))
    dimensions: Mapped[int] = mapped_column(Integer)
    chunk_size_tokens: Mapped[int] = mapped_column(Integer, default=512)
    chunk_overlap_fraction: Mapped[float] = mapped_column(Float, default=0.1)
    similarity_threshold: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)


class LlmProviderModel(_ConnectionDataMixin, Base):
    __tablename__ = 'llm_providers'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='llm_providers_pk'),
    )

    name: Mapped[str] = mapped_column(String(255))
    provider_type: Mapped[str] = mapped_column(String(50))
    model: Mapped[str] = mapped_column(String(255))
    temperature: Mapped[float] = mapped_column(Float, default=0.7)
    max_tokens: Mapped[int] = mapped_column(Integer, default=2048)
    timeout_seconds: Mapped[float] = mapped_column(Float, default=120)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
