"""
Postgres document catalog with weighted full-text ranking
"""

import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import and_, case, delete, func, literal, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from rag_engine.db.models.search import SearchDocumentModel
from rag_engine.schemas.chunk import ParentRef
from rag_engine.schemas.document import DocumentSnapshot
from rag_engine.schemas.search import KeywordMatch, SearchFilters, SearchSort
from .base import BaseDocumentCatalog, escape_like


logger = logging.getLogger(__name__)

TS_CONFIG = "english"


def _weighted(column, weight: str):
    return func.setweight(func.to_tsvector(TS_CONFIG, func.coalesce(column, "")), weight)


def search_vector():
    """Title weighted A, body B, answers C."""
    m = SearchDocumentModel
    return _weighted(m.title, "A").op("||")(_weighted(m.body, "B")).op("||")(
        _weighted(m.answers_text, "C")
    )


def to_snapshot(row: SearchDocumentModel) -> DocumentSnapshot:
    return DocumentSnapshot.model_validate(row.payload)


class PgDocumentCatalog(BaseDocumentCatalog):

    def __init__(self, db: AsyncSession):
        self.db = db

    def _ref_clause(self, ref: ParentRef):
        return and_(
            SearchDocumentModel.doc_type == ref.type,
            SearchDocumentModel.doc_id == ref.id,
        )

    async def upsert(self, snapshot: DocumentSnapshot) -> None:
        values = {
            "doc_type": snapshot.type.value,
            "doc_id": snapshot.id,
            "slug": snapshot.slug,
            "title": snapshot.title,
            "body": snapshot.body,
            "answers_text": "\n\n".join(a.body for a in snapshot.answers),
            "scope_id": snapshot.scope_id,
            "author_id": snapshot.author_id,
            "tags": list(snapshot.tags),
            "vote_score": snapshot.vote_score,
            "source_created_at": snapshot.created_at,
            "source_updated_at": snapshot.updated_at,
            "payload": snapshot.model_dump(mode="json"),
        }
        stmt = insert(SearchDocumentModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            constraint="search_documents_ref_unique",
            set_={k: stmt.excluded[k] for k in values if k not in ("doc_type", "doc_id")},
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def remove(self, ref: ParentRef) -> bool:
        result = await self.db.execute(delete(SearchDocumentModel).where(self._ref_clause(ref)))
        await self.db.commit()
        return bool(result.rowcount)

    async def get(self, ref: ParentRef) -> Optional[DocumentSnapshot]:
        result = await self.db.execute(select(SearchDocumentModel).where(self._ref_clause(ref)))
        row = result.scalars().first()
        return to_snapshot(row) if row else None

    def _filtered(self, query, filters: SearchFilters, types: Optional[Iterable[str]]):
        m = SearchDocumentModel
        if types:
            query = query.where(m.doc_type.in_(list(types)))
        if filters.scope_id:
            query = query.where(m.scope_id == filters.scope_id)
        if filters.author_id:
            query = query.where(m.author_id == filters.author_id)
        if filters.tags:
            query = query.where(m.tags.overlap(list(filters.tags)))
        return query

    async def keyword_search(self,
                             query: str,
                             filters: SearchFilters,
                             sort: SearchSort,
                             offset: int,
                             limit: int,
                             types: Optional[Iterable[str]] = None) -> Tuple[List[KeywordMatch], int]:
        m = SearchDocumentModel
        query = (query or "").strip()
        if query:
            ts_query = func.plainto_tsquery(TS_CONFIG, query)
            vector = search_vector()
            rank = func.ts_rank(vector, ts_query).label("rank")
            stmt = select(m, rank).where(vector.op("@@")(ts_query))
        else:
            rank = literal(0.0).label("rank")
            stmt = select(m, rank)
        stmt = self._filtered(stmt, filters, types)

        total_result = await self.db.execute(select(func.count()).select_from(stmt.subquery()))
        total = total_result.scalar_one()

        if sort == SearchSort.OLDEST:
            stmt = stmt.order_by(m.source_created_at.asc())
        elif sort == SearchSort.NEWEST:
            stmt = stmt.order_by(m.source_created_at.desc())
        elif sort == SearchSort.VOTES:
            stmt = stmt.order_by(m.vote_score.desc(), m.source_created_at.desc())
        elif sort == SearchSort.ACTIVITY:
            stmt = stmt.order_by(m.source_updated_at.desc())
        else:
            stmt = stmt.order_by(rank.desc(), m.source_created_at.desc())

        result = await self.db.execute(stmt.offset(offset).limit(limit))
        matches = [KeywordMatch(snapshot=to_snapshot(row), rank=float(score)) for row, score in result.all()]
        return matches, total

    async def suggest(self, query: str, scope_id: Optional[str], limit: int,
                      types: Optional[Iterable[str]] = None) -> List[DocumentSnapshot]:
        m = SearchDocumentModel
        needle = (query or "").strip()
        if not needle:
            return []
        escaped = escape_like(needle)
        stmt = select(m).where(m.title.ilike(f"%{escaped}%", escape="\\"))
        if types:
            stmt = stmt.where(m.doc_type.in_(list(types)))
        if scope_id:
            stmt = stmt.where(m.scope_id == scope_id)
        prefix_first = case((m.title.ilike(f"{escaped}%", escape="\\"), 0), else_=1)
        stmt = stmt.order_by(prefix_first, func.length(m.title)).limit(limit)
        result = await self.db.execute(stmt)
        return [to_snapshot(row) for row in result.scalars().all()]

    async def list_refs(self, types: Optional[Iterable[str]] = None,
                        scope_id: Optional[str] = None) -> List[ParentRef]:
        m = SearchDocumentModel
        stmt = select(m.doc_type, m.doc_id)
        if types:
            stmt = stmt.where(m.doc_type.in_(list(types)))
        if scope_id is not None:
            stmt = stmt.where(m.scope_id == scope_id)
        result = await self.db.execute(stmt)
        return [ParentRef(doc_type, doc_id) for doc_type, doc_id in result.all()]
