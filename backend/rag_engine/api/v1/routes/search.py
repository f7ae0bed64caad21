from typing import Optional

from fastapi import APIRouter, Query
from fastapi_injector import Injected

from rag_engine.core.exceptions.error_messages import ErrorKey
from rag_engine.core.exceptions.exception_classes import AppException
from rag_engine.schemas.chunk import ParentRef
from rag_engine.schemas.document import DocumentType
from rag_engine.schemas.search import (
    DEFAULT_PER_PAGE,
    SearchFilters,
    SearchRequest,
    SearchResponse,
    SearchSort,
    Suggestion,
    VectorHit,
)
from rag_engine.services.hybrid_search import HybridSearchService
from rag_engine.services.provider_resolver import ProviderResolver
from rag_engine.services.search_settings import SearchSettingsService
from rag_engine.services.suggestions import SuggestionService
from rag_engine.services.vector_search import VectorSearchService


router = APIRouter()


@router.get("", response_model=SearchResponse)
async def search(
    q: str = "",
    scope_id: Optional[str] = None,
    author_id: Optional[str] = None,
    tags: list[str] = Query(default=[]),
    sort: Optional[SearchSort] = None,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
    service: HybridSearchService = Injected(HybridSearchService),
    resolver: ProviderResolver = Injected(ProviderResolver),
):
    request = SearchRequest(
        query=q,
        filters=SearchFilters(scope_id=scope_id, author_id=author_id, tags=tags),
        sort=sort,
        page=page,
        per_page=per_page,
    )
    embedder = await resolver.embedding_client() if request.query.strip() else None
    return await service.search(request, embedder)


@router.get("/suggest", response_model=list[Suggestion])
async def suggest(
    q: str = "",
    scope_id: Optional[str] = None,
    service: SuggestionService = Injected(SuggestionService),
):
    return await service.suggest(q, scope_id)


@router.get("/similar/{document_type}/{document_id}", response_model=list[VectorHit])
async def similar(
    document_type: DocumentType,
    document_id: str,
    service: VectorSearchService = Injected(VectorSearchService),
    resolver: ProviderResolver = Injected(ProviderResolver),
    search_settings: SearchSettingsService = Injected(SearchSettingsService),
):
    document = await service.catalog.get(ParentRef(document_type.value, document_id))
    if document is None:
        raise AppException(ErrorKey.DOCUMENT_NOT_FOUND, status_code=404)

    limit = await search_settings.similar_questions_limit()
    if limit <= 0:
        return []
    outcome = await service.find_similar(document, await resolver.embedding_client(), limit=limit)
    return outcome.value if outcome.ok else []
