"""
Search orchestration: picks lexical or semantic retrieval per request
"""

import logging
import math
from typing import List, Optional

from rag_engine.modules.embedding.client import EmbeddingClient
from rag_engine.modules.store.base import BaseDocumentCatalog
from rag_engine.schemas.chunk import ParentRef
from rag_engine.schemas.document import DocumentType
from rag_engine.schemas.search import (
    HitSource,
    KeywordMatch,
    SearchHit,
    SearchMode,
    SearchRequest,
    SearchResponse,
    SearchSort,
)
from rag_engine.services.vector_search import FAN_OUT, MAX_LIMIT, VectorSearchService


logger = logging.getLogger(__name__)

SEARCH_TYPES = (DocumentType.QUESTION.value, DocumentType.ARTICLE.value)


def total_pages(total: int, per_page: int) -> int:
    return math.ceil(total / per_page) if total else 0


class HybridSearchService:
    """
    Resolves a search request in one of four modes:

    - ``none``: blank query and no filters, nothing to search for.
    - ``vector``: non-blank query ranked by relevance with an embedding
      provider available and at least one semantic hit.
    - ``keyword``: everything else, including every vector miss or failure.
    - ``error``: an unexpected failure, reported instead of raised.
    """

    def __init__(self,
                 vector_search: VectorSearchService,
                 catalog: BaseDocumentCatalog,
                 timeout: Optional[float] = None):
        self.vector_search = vector_search
        self.catalog = catalog
        self.timeout = timeout

    async def search(self, request: SearchRequest,
                     embedder: Optional[EmbeddingClient] = None) -> SearchResponse:
        query = (request.query or "").strip()
        try:
            if not query and request.filters.is_empty:
                return self._response(request, query, SearchMode.NONE)

            sort = request.sort or (SearchSort.RELEVANCE if query else SearchSort.NEWEST)
            if query and sort == SearchSort.RELEVANCE and embedder is not None:
                response = await self._vector_search(request, query, embedder)
                if response is not None:
                    return response

            return await self._keyword_search(request, query, sort)
        except Exception:
            logger.exception(f"Search failed for query '{query}'")
            return self._response(request, query, SearchMode.ERROR)

    async def _vector_search(self, request: SearchRequest, query: str,
                             embedder: EmbeddingClient) -> Optional[SearchResponse]:
        filters = request.filters
        outcome = await self.vector_search.search(
            query,
            embedder,
            types=SEARCH_TYPES,
            scope_id=filters.scope_id,
            limit=min(request.offset + request.per_page * FAN_OUT, MAX_LIMIT),
            timeout=self.timeout,
        )
        if not outcome.ok:
            logger.info(f"Vector search unavailable ({outcome.failure.value}), using keyword search")
            return None
        if not outcome.value:
            return None

        snapshots = await self.catalog.get_many(ParentRef(hit.type, hit.id) for hit in outcome.value)
        ranked = []
        for hit in outcome.value:
            snapshot = snapshots.get(ParentRef(hit.type, hit.id))
            if snapshot is not None and filters.matches(snapshot):
                ranked.append((hit, snapshot))
        if not ranked:
            return None

        page = ranked[request.offset:request.offset + request.per_page]
        hits = [
            SearchHit(
                id=hit.id,
                type=hit.type,
                score=hit.score,
                source=HitSource.from_snapshot(snapshot),
                vector_rank=request.offset + position + 1,
                vector_score=hit.score,
            )
            for position, (hit, snapshot) in enumerate(page)
        ]
        return self._response(request, query, SearchMode.VECTOR, hits, len(ranked))

    async def _keyword_search(self, request: SearchRequest, query: str,
                              sort: SearchSort) -> SearchResponse:
        matches, total = await self.catalog.keyword_search(
            query,
            request.filters,
            sort,
            request.offset,
            request.per_page,
            types=SEARCH_TYPES,
        )
        hits = [self._keyword_hit(match, request.offset + position + 1)
                for position, match in enumerate(matches)]
        return self._response(request, query, SearchMode.KEYWORD, hits, total)

    @staticmethod
    def _keyword_hit(match: KeywordMatch, rank: int) -> SearchHit:
        snapshot = match.snapshot
        return SearchHit(
            id=snapshot.id,
            type=snapshot.type.value,
            score=match.rank,
            source=HitSource.from_snapshot(snapshot),
            keyword_rank=rank,
        )

    @staticmethod
    def _response(request: SearchRequest, query: str, mode: SearchMode,
                  hits: Optional[List[SearchHit]] = None, total: int = 0) -> SearchResponse:
        return SearchResponse(
            hits=hits or [],
            total=total,
            page=request.page,
            per_page=request.per_page,
            total_pages=total_pages(total, request.per_page),
            mode=mode,
            query=query,
        )
