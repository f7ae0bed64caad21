from fastapi import APIRouter

from rag_engine.api.v1.routes import answers, embedding_providers, embeddings, health, llm_providers, search, search_settings


router = APIRouter()

router.include_router(health.router, prefix="/health", tags=["Health"])
router.include_router(search.router, prefix="/search", tags=["Search"])
router.include_router(answers.router, prefix="/answers", tags=["Answers"])
router.include_router(embeddings.router, prefix="/embeddings", tags=["Embeddings"])
router.include_router(embedding_providers.router, prefix="/embedding-providers", tags=["EmbeddingProviders"])
router.include_router(llm_providers.router, prefix="/llm-providers", tags=["LlmProviders"])
router.include_router(search_settings.router, prefix="/search-settings", tags=["SearchSettings"])
