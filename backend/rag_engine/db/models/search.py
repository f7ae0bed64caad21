from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, PrimaryKeyConstraint, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from rag_engine.db.base import Base


class SearchDocumentModel(Base):
    """Snapshot of an external document, kept for ranking and display."""

    __tablename__ = 'search_documents'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='search_documents_pk'),
        UniqueConstraint('doc_type', 'doc_id', name='search_documents_ref_unique'),
        Index('search_documents_scope_idx', 'scope_id'),
    )

    doc_type: Mapped[str] = mapped_column(String(32))
    doc_id: Mapped[str] = mapped_column(String(64))
    slug: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    title: Mapped[str] = mapped_column(Text, default="")
    body: Mapped[str] = mapped_column(Text, default="")
    answers_text: Mapped[str] = mapped_column(Text, default="")
    scope_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    author_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    tags: Mapped[list[str]] = mapped_column(ARRAY(String), default=list)
    vote_score: Mapped[int] = mapped_column(Integer, default=0)
    source_created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    source_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    payload: Mapped[dict] = mapped_column(JSONB)


class SearchSettingModel(Base):
    """Global retrieval limits (scope_id NULL) and per-scope overrides."""

    __tablename__ = 'search_settings'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='search_settings_pk'),
        UniqueConstraint('scope_id', name='search_settings_scope_unique'),
    )

    scope_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    rag_chunk_limit: Mapped[int] = mapped_column(Integer, default=10)
    similar_questions_limit: Mapped[int] = mapped_column(Integer, default=3)
