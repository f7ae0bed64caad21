from datetime import datetime
from typing import Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, Index, Integer, PrimaryKeyConstraint, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from rag_engine.db.base import Base


class ChunkModel(Base):
    __tablename__ = 'chunks'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='chunks_pk'),
        UniqueConstraint('parent_type', 'parent_id', 'chunk_index', name='chunks_parent_index_unique'),
        Index('chunks_parent_idx', 'parent_type', 'parent_id'),
        Index('chunks_provider_idx', 'embedding_provider_id'),
    )

    parent_type: Mapped[str] = mapped_column(String(32))
    parent_id: Mapped[str] = mapped_column(String(64))
    chunk_index: Mapped[int] = mapped_column(Integer)
    content: Mapped[str] = mapped_column(Text)
    token_count: Mapped[int] = mapped_column(Integer, default=0)
    # dimension-less so providers with different sizes can share the table
    embedding = mapped_column(Vector(), nullable=True)
    embedding_provider_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    embedded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    chunk_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSONB, nullable=True)
