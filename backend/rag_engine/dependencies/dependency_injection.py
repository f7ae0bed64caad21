import logging
from contextlib import asynccontextmanager

from fastapi_injector import request_scope
from injector import Module, provider, singleton
from sqlalchemy.ext.asyncio import AsyncSession

from rag_engine.core.config.settings import settings
from rag_engine.db.session import session_manager
from rag_engine.modules.store.base import BaseChunkStore, BaseDocumentCatalog
from rag_engine.modules.store.memory import InMemoryChunkStore, InMemoryDocumentCatalog
from rag_engine.modules.store.pgvector import PgVectorChunkStore
from rag_engine.modules.store.postgres_catalog import PgDocumentCatalog
from rag_engine.repositories.embedding_providers import EmbeddingProviderRepository
from rag_engine.repositories.llm_providers import LlmProviderRepository
from rag_engine.repositories.search_settings import SearchSettingsRepository
from rag_engine.services.answer_service import AnswerService
from rag_engine.services.chunk_service import ChunkService
from rag_engine.services.document_embedding import DocumentEmbeddingService
from rag_engine.services.embedding_providers import EmbeddingProviderService
from rag_engine.services.hybrid_search import HybridSearchService
from rag_engine.services.llm_providers import LlmProviderService
from rag_engine.services.provider_resolver import ProviderResolver
from rag_engine.services.search_settings import SearchSettingsService
from rag_engine.services.suggestions import SuggestionService
from rag_engine.services.vector_search import VectorSearchService


logger = logging.getLogger(__name__)


def uses_pgvector() -> bool:
    return settings.VECTOR_STORE.lower() == "pgvector"


@asynccontextmanager
async def pg_document_stores():
    """Store pair on its own session, closed when the document is done."""
    async with session_manager.get_session_factory()() as session:
        yield PgVectorChunkStore(session), PgDocumentCatalog(session)


class Dependencies(Module):

    # ------------------------------------------------------------------
    # PROVIDERS
    # ------------------------------------------------------------------
    @provider
    @request_scope
    def provide_session(self) -> AsyncSession:
        """A fresh AsyncSession per request, cleaned up by fastapi-injector."""
        return session_manager.get_session_factory()()

    @provider
    @singleton
    def provide_memory_chunk_store(self) -> InMemoryChunkStore:
        return InMemoryChunkStore()

    @provider
    @singleton
    def provide_memory_catalog(self) -> InMemoryDocumentCatalog:
        return InMemoryDocumentCatalog()

    @provider
    @request_scope
    def provide_chunk_store(self, session: AsyncSession, memory: InMemoryChunkStore) -> BaseChunkStore:
        if uses_pgvector():
            return PgVectorChunkStore(session)
        return memory

    @provider
    @request_scope
    def provide_catalog(self, session: AsyncSession, memory: InMemoryDocumentCatalog) -> BaseDocumentCatalog:
        if uses_pgvector():
            return PgDocumentCatalog(session)
        return memory

    @provider
    @request_scope
    def provide_vector_search(self, store: BaseChunkStore,
                              catalog: BaseDocumentCatalog) -> VectorSearchService:
        return VectorSearchService(store, catalog)

    @provider
    @request_scope
    def provide_hybrid_search(self, vector_search: VectorSearchService,
                              catalog: BaseDocumentCatalog) -> HybridSearchService:
        return HybridSearchService(vector_search, catalog, timeout=settings.SEARCH_TIMEOUT_SECONDS)

    @provider
    @request_scope
    def provide_suggestions(self, catalog: BaseDocumentCatalog) -> SuggestionService:
        return SuggestionService(catalog)

    @provider
    @request_scope
    def provide_answer_service(self, store: BaseChunkStore,
                               catalog: BaseDocumentCatalog) -> AnswerService:
        return AnswerService(store, catalog, timeout=settings.ANSWER_TIMEOUT_SECONDS)

    @provider
    @request_scope
    def provide_document_embedding(self, store: BaseChunkStore,
                                   catalog: BaseDocumentCatalog) -> DocumentEmbeddingService:
        return DocumentEmbeddingService(
            store,
            catalog,
            chunker=ChunkService(),
            concurrency=settings.EMBEDDING_CONCURRENCY,
            document_scope=pg_document_stores if uses_pgvector() else None,
        )

    def configure(self, binder):
        binder.bind(EmbeddingProviderService, scope=request_scope)
        binder.bind(EmbeddingProviderRepository, scope=request_scope)

        binder.bind(LlmProviderService, scope=request_scope)
        binder.bind(LlmProviderRepository, scope=request_scope)

        binder.bind(SearchSettingsService, scope=request_scope)
        binder.bind(SearchSettingsRepository, scope=request_scope)

        binder.bind(ProviderResolver, scope=request_scope)
