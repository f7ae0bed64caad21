from typing import Union

from fastapi import APIRouter
from fastapi_injector import Injected

from rag_engine.core.config.settings import settings
from rag_engine.schemas.document import ContentChangedEvent
from rag_engine.schemas.embedding import (
    BatchEmbedResult,
    EmbedDocumentRequest,
    EmbedResult,
    QueuedTask,
    RegenerateRequest,
)
from rag_engine.services.document_embedding import DocumentEmbeddingService
from rag_engine.services.provider_resolver import ProviderResolver
from rag_engine.tasks.embedding_tasks import (
    content_changed_task,
    embed_document_task,
    regenerate_all_embeddings_task,
)


router = APIRouter()


@router.post("/documents", response_model=Union[EmbedResult, QueuedTask])
async def embed_document(
    data: EmbedDocumentRequest,
    service: DocumentEmbeddingService = Injected(DocumentEmbeddingService),
    resolver: ProviderResolver = Injected(ProviderResolver),
):
    if settings.EMBEDDING_JOBS_ASYNC:
        task = embed_document_task.delay(data.document.model_dump(mode="json"), data.force)
        return QueuedTask(task_id=task.id)
    return await service.embed_document(data.document, await resolver.embedding_client(), force=data.force)


@router.post("/events", response_model=Union[EmbedResult, QueuedTask])
async def content_changed(
    event: ContentChangedEvent,
    service: DocumentEmbeddingService = Injected(DocumentEmbeddingService),
    resolver: ProviderResolver = Injected(ProviderResolver),
):
    if settings.EMBEDDING_JOBS_ASYNC:
        task = content_changed_task.delay(event.model_dump(mode="json"))
        return QueuedTask(task_id=task.id)
    return await service.handle_content_changed(event, await resolver.embedding_client())


@router.post("/regenerate", response_model=Union[BatchEmbedResult, QueuedTask])
async def regenerate(
    data: RegenerateRequest,
    service: DocumentEmbeddingService = Injected(DocumentEmbeddingService),
    resolver: ProviderResolver = Injected(ProviderResolver),
):
    if settings.EMBEDDING_JOBS_ASYNC:
        task = regenerate_all_embeddings_task.delay(data.force)
        return QueuedTask(task_id=task.id)
    return await service.regenerate_all(await resolver.embedding_client(), force=data.force)
