import logging

from celery import shared_task
from fastapi_injector import RequestScopeFactory

from rag_engine.dependencies.injector import injector
from rag_engine.schemas.document import ContentChangedEvent, DocumentSnapshot
from rag_engine.services.document_embedding import DocumentEmbeddingService
from rag_engine.services.provider_resolver import ProviderResolver
from rag_engine.tasks.base import BaseTaskWithLogging, run_in_worker_loop


logger = logging.getLogger(__name__)


@shared_task(base=BaseTaskWithLogging)
def embed_document_task(document: dict, force: bool = False):
    """
    Celery task entry point.
    Regenerates the chunk set of one document.
    """
    return run_in_worker_loop(embed_document_async_with_scope(document, force))


async def embed_document_async_with_scope(document: dict, force: bool = False):
    request_scope_factory = injector.get(RequestScopeFactory)

    try:
        async with request_scope_factory.create_scope():
            result = await embed_document_async(DocumentSnapshot.model_validate(document), force)
            return {"status": "success", "result": result.model_dump(mode="json")}
    except Exception as e:
        logger.error(f"Error embedding document {document.get('type')}:{document.get('id')}: {e}")
        return {"status": "failed", "error": str(e)}


async def embed_document_async(document: DocumentSnapshot, force: bool = False):
    resolver = injector.get(ProviderResolver)
    service = injector.get(DocumentEmbeddingService)
    embedder = await resolver.embedding_client()
    return await service.embed_document(document, embedder, force=force)


@shared_task(base=BaseTaskWithLogging)
def content_changed_task(event: dict):
    """
    Celery task entry point.
    Reacts to a content change signal from the host application.
    """
    return run_in_worker_loop(content_changed_async_with_scope(event))


async def content_changed_async_with_scope(event: dict):
    request_scope_factory = injector.get(RequestScopeFactory)

    try:
        async with request_scope_factory.create_scope():
            resolver = injector.get(ProviderResolver)
            service = injector.get(DocumentEmbeddingService)
            embedder = await resolver.embedding_client()
            result = await service.handle_content_changed(
                ContentChangedEvent.model_validate(event), embedder
            )
            return {"status": "success", "result": result.model_dump(mode="json")}
    except Exception as e:
        logger.error(f"Error handling content change for {event.get('type')}:{event.get('id')}: {e}")
        return {"status": "failed", "error": str(e)}


@shared_task(base=BaseTaskWithLogging)
def regenerate_all_embeddings_task(force: bool = True):
    """
    Celery task entry point.
    Re-embeds every cataloged document with the enabled provider.
    """
    return run_in_worker_loop(regenerate_all_async_with_scope(force))


async def regenerate_all_async_with_scope(force: bool = True):
    request_scope_factory = injector.get(RequestScopeFactory)

    try:
        async with request_scope_factory.create_scope():
            resolver = injector.get(ProviderResolver)
            service = injector.get(DocumentEmbeddingService)
            embedder = await resolver.embedding_client()
            if embedder is None:
                return {"status": "skipped", "error": "No embedding provider is enabled"}
            batch = await service.regenerate_all(embedder, force=force)
            logger.info(
                f"Regeneration finished: {batch.succeeded} succeeded, "
                f"{batch.failed} failed, {batch.skipped} skipped"
            )
            return {"status": "success", "result": batch.model_dump(mode="json", exclude={"results"})}
    except Exception as e:
        logger.error(f"Error regenerating embeddings: {e}")
        return {"status": "failed", "error": str(e)}
    finally:
        logger.info("Embedding regeneration task finished.")
