import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter
from fastapi_injector import Injected

from rag_engine.core.config.settings import settings
from rag_engine.schemas.provider import (
    EmbeddingProviderCreate,
    EmbeddingProviderRead,
    EmbeddingProviderUpdate,
)
from rag_engine.services.document_embedding import DocumentEmbeddingService
from rag_engine.services.embedding_providers import EmbeddingProviderService
from rag_engine.services.provider_resolver import ProviderResolver
from rag_engine.tasks.embedding_tasks import regenerate_all_embeddings_task


logger = logging.getLogger(__name__)

router = APIRouter()


async def regenerate_on_switch(before: Optional[tuple],
                               service: EmbeddingProviderService,
                               embeddings: DocumentEmbeddingService,
                               resolver: ProviderResolver):
    """Re-embeds everything when the active provider or its chunking changed."""
    if await service.active_signature() == before:
        return
    if settings.EMBEDDING_JOBS_ASYNC:
        task = regenerate_all_embeddings_task.delay(True)
        logger.info(f"Active embedding provider changed, queued regeneration {task.id}")
        return
    logger.info("Active embedding provider changed, regenerating embeddings")
    await embeddings.regenerate_all(await resolver.embedding_client())


@router.get("", response_model=list[EmbeddingProviderRead])
async def get_all(service: EmbeddingProviderService = Injected(EmbeddingProviderService)):
    return await service.get_all()


@router.get("/{provider_id}", response_model=EmbeddingProviderRead)
async def get(
    provider_id: UUID, service: EmbeddingProviderService = Injected(EmbeddingProviderService)
):
    return await service.get_by_id(provider_id)


@router.post("", response_model=EmbeddingProviderRead)
async def create(
    data: EmbeddingProviderCreate,
    service: EmbeddingProviderService = Injected(EmbeddingProviderService),
    embeddings: DocumentEmbeddingService = Injected(DocumentEmbeddingService),
    resolver: ProviderResolver = Injected(ProviderResolver),
):
    before = await service.active_signature()
    model = await service.create(data)
    await regenerate_on_switch(before, service, embeddings, resolver)
    return model


@router.patch("/{provider_id}", response_model=EmbeddingProviderRead)
async def update(
    provider_id: UUID,
    data: EmbeddingProviderUpdate,
    service: EmbeddingProviderService = Injected(EmbeddingProviderService),
    embeddings: DocumentEmbeddingService = Injected(DocumentEmbeddingService),
    resolver: ProviderResolver = Injected(ProviderResolver),
):
    before = await service.active_signature()
    model = await service.update(provider_id, data)
    await regenerate_on_switch(before, service, embeddings, resolver)
    return model


@router.delete("/{provider_id}")
async def delete(
    provider_id: UUID,
    service: EmbeddingProviderService = Injected(EmbeddingProviderService),
):
    return await service.delete(provider_id)
