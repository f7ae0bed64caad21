"""
Postgres + pgvector chunk store
"""

import hashlib
import logging
import uuid
from typing import Iterable, List, Optional, Sequence, Set

from sqlalchemy import and_, delete, func, or_, select, tuple_, update
from sqlalchemy.ext.asyncio import AsyncSession

from rag_engine.db.models.chunk import ChunkModel
from rag_engine.schemas.chunk import ChunkMatch, ChunkMetadata, ChunkRecord, ParentRef
from .base import BaseChunkStore, escape_like, validate_chunk_set


logger = logging.getLogger(__name__)


def advisory_lock_key(parent: ParentRef) -> int:
    digest = hashlib.blake2b(f"{parent.type}:{parent.id}".encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def to_record(row: ChunkModel) -> ChunkRecord:
    embedding = row.embedding
    return ChunkRecord(
        id=str(row.id),
        parent_type=row.parent_type,
        parent_id=row.parent_id,
        chunk_index=row.chunk_index,
        content=row.content,
        token_count=row.token_count or 0,
        embedding=[float(x) for x in embedding] if embedding is not None else None,
        embedding_provider_id=row.embedding_provider_id,
        embedded_at=row.embedded_at,
        metadata=ChunkMetadata(**row.chunk_metadata) if row.chunk_metadata else None,
    )


def to_row(record: ChunkRecord) -> ChunkModel:
    return ChunkModel(
        id=uuid.UUID(record.id),
        parent_type=record.parent_type,
        parent_id=record.parent_id,
        chunk_index=record.chunk_index,
        content=record.content,
        token_count=record.token_count,
        embedding=record.embedding,
        embedding_provider_id=record.embedding_provider_id,
        embedded_at=record.embedded_at,
        chunk_metadata=record.metadata.model_dump() if record.metadata else None,
    )


class PgVectorChunkStore(BaseChunkStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    def _parent_clause(self, parent: ParentRef):
        return and_(ChunkModel.parent_type == parent.type, ChunkModel.parent_id == parent.id)

    async def replace_chunks(self, parent: ParentRef, chunks: Sequence[ChunkRecord]) -> None:
        validate_chunk_set(parent, chunks)
        try:
            # serializes writers of the same parent until commit
            await self.db.execute(select(func.pg_advisory_xact_lock(advisory_lock_key(parent))))
            await self.db.execute(delete(ChunkModel).where(self._parent_clause(parent)))
            self.db.add_all([to_row(chunk) for chunk in chunks])
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.debug(f"Replaced chunks for {parent.type}:{parent.id} with {len(chunks)} chunks")

    async def get_for_parent(self, parent: ParentRef) -> List[ChunkRecord]:
        result = await self.db.execute(
            select(ChunkModel)
            .where(self._parent_clause(parent))
            .order_by(ChunkModel.chunk_index.asc())
        )
        return [to_record(row) for row in result.scalars().all()]

    async def delete_for_parent(self, parent: ParentRef) -> int:
        result = await self.db.execute(delete(ChunkModel).where(self._parent_clause(parent)))
        await self.db.commit()
        return result.rowcount or 0

    async def nearest(self,
                      vector: Sequence[float],
                      limit: int,
                      provider_id: Optional[str] = None,
                      parent_types: Optional[Iterable[str]] = None) -> List[ChunkMatch]:
        if limit <= 0:
            return []
        distance = ChunkModel.embedding.cosine_distance(list(vector)).label("distance")
        query = select(ChunkModel, distance).where(ChunkModel.embedding.is_not(None))
        if provider_id is not None:
            query = query.where(ChunkModel.embedding_provider_id == provider_id)
        if parent_types:
            query = query.where(ChunkModel.parent_type.in_(list(parent_types)))
        query = query.order_by(distance.asc()).limit(limit)

        result = await self.db.execute(query)
        return [
            ChunkMatch(chunk=to_record(row), distance=float(dist))
            for row, dist in result.all()
        ]

    async def search_content(self,
                             text: str,
                             limit: int,
                             parent_types: Optional[Iterable[str]] = None,
                             parents: Optional[Set[ParentRef]] = None) -> List[ChunkRecord]:
        needle = (text or "").strip()
        if not needle or limit <= 0:
            return []
        if parents is not None and not parents:
            return []
        query = select(ChunkModel).where(
            ChunkModel.content.ilike(f"%{escape_like(needle)}%", escape="\\")
        )
        if parent_types:
            query = query.where(ChunkModel.parent_type.in_(list(parent_types)))
        if parents is not None:
            query = query.where(
                tuple_(ChunkModel.parent_type, ChunkModel.parent_id).in_(
                    [(p.type, p.id) for p in parents]
                )
            )
        query = query.order_by(
            ChunkModel.parent_type, ChunkModel.parent_id, ChunkModel.chunk_index
        ).limit(limit)
        result = await self.db.execute(query)
        return [to_record(row) for row in result.scalars().all()]

    async def purge_other_providers(self, provider_id: str) -> int:
        result = await self.db.execute(
            delete(ChunkModel).where(
                ChunkModel.embedding_provider_id.is_not(None),
                ChunkModel.embedding_provider_id != provider_id,
            )
        )
        await self.db.commit()
        return result.rowcount or 0

    async def embedded_parents(self, provider_id: str) -> Set[ParentRef]:
        not_current = or_(
            ChunkModel.embedding.is_(None),
            ChunkModel.embedding_provider_id.is_(None),
            ChunkModel.embedding_provider_id != provider_id,
        )
        result = await self.db.execute(
            select(ChunkModel.parent_type, ChunkModel.parent_id)
            .group_by(ChunkModel.parent_type, ChunkModel.parent_id)
            .having(func.count().filter(not_current) == 0)
        )
        return {ParentRef(parent_type, parent_id) for parent_type, parent_id in result.all()}

    async def mark_stale(self, parent: ParentRef) -> int:
        result = await self.db.execute(
            update(ChunkModel)
            .where(self._parent_clause(parent))
            .values(embedding=None, embedding_provider_id=None, embedded_at=None)
        )
        await self.db.commit()
        return result.rowcount or 0
