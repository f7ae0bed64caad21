from fastapi import APIRouter
from fastapi_injector import Injected

from rag_engine.schemas.answer import AnswerRequest, AnswerResult
from rag_engine.services.answer_service import AnswerService
from rag_engine.services.provider_resolver import ProviderResolver
from rag_engine.services.search_settings import SearchSettingsService


router = APIRouter()


@router.post("", response_model=AnswerResult)
async def answer(
    data: AnswerRequest,
    service: AnswerService = Injected(AnswerService),
    resolver: ProviderResolver = Injected(ProviderResolver),
    search_settings: SearchSettingsService = Injected(SearchSettingsService),
):
    llm = await resolver.llm_client()
    if llm is None:
        return AnswerResult.empty(data.query.strip())

    chunk_limit = data.chunk_limit or await search_settings.effective_rag_chunk_limit(data.scope_id)
    return await service.answer(
        data.query,
        llm,
        embedder=await resolver.embedding_client(),
        scope_id=data.scope_id,
        chunk_limit=chunk_limit,
    )
