import asyncio
import bisect
import logging
from datetime import datetime, timezone
from typing import AsyncContextManager, Callable, Iterable, List, Optional, Tuple

from rag_engine.core.exceptions.provider_errors import ProviderError
from rag_engine.core.utils.keyed_lock import KeyedLock
from rag_engine.modules.embedding.client import EmbeddingClient
from rag_engine.modules.store.base import BaseChunkStore, BaseDocumentCatalog
from rag_engine.schemas.chunk import ChunkMetadata, ChunkRecord, ParentRef
from rag_engine.schemas.document import ChangeKind, ContentChangedEvent, DocumentSnapshot
from rag_engine.schemas.embedding import BatchEmbedResult, EmbedResult
from rag_engine.services.chunk_service import ChunkService, TextChunk, normalize_whitespace
from rag_engine.services.content_extraction import TextSegment, document_segments


logger = logging.getLogger(__name__)

NO_PROVIDER_MESSAGE = "No embedding provider is enabled"

# one registry per process so concurrent requests share the per-document locks
document_locks = KeyedLock()

DocumentScope = Callable[[], AsyncContextManager[Tuple[BaseChunkStore, BaseDocumentCatalog]]]


class _SegmentIndex:
    """Maps character offsets of the joined, normalized text back to their segment."""

    def __init__(self, segments: List[TextSegment]):
        self.segments = []
        self.starts = []
        parts = []
        offset = 0
        for segment in segments:
            text = normalize_whitespace(segment.text)
            if not text:
                continue
            self.segments.append(segment)
            self.starts.append(offset)
            parts.append(text)
            offset += len(text) + 1
        self.text = " ".join(parts)

    def source_of(self, chunk: TextChunk) -> Optional[TextSegment]:
        if not self.segments:
            return None
        i = bisect.bisect_right(self.starts, chunk.start_char) - 1
        return self.segments[max(i, 0)]


class DocumentEmbeddingService:
    """
    Regenerates a document's chunk set: extract text, chunk, embed, then
    atomically replace the previous generation.

    Regeneration of one document is serialized; different documents run
    concurrently. Stores bound to a database session cannot be shared by
    concurrent documents, so batch runs over such stores pass a
    ``document_scope`` that opens a fresh store pair for every document.
    """

    def __init__(self,
                 store: BaseChunkStore,
                 catalog: BaseDocumentCatalog,
                 chunker: Optional[ChunkService] = None,
                 locks: Optional[KeyedLock] = None,
                 concurrency: int = 4,
                 document_scope: Optional[DocumentScope] = None):
        self.store = store
        self.catalog = catalog
        self.chunker = chunker or ChunkService()
        self.locks = locks or document_locks
        self.concurrency = max(1, concurrency)
        self.document_scope = document_scope

    def with_stores(self, store: BaseChunkStore, catalog: BaseDocumentCatalog) -> "DocumentEmbeddingService":
        return DocumentEmbeddingService(store, catalog, chunker=self.chunker,
                                        locks=self.locks, concurrency=self.concurrency)

    async def embed_document(self, document: DocumentSnapshot,
                             embedder: Optional[EmbeddingClient],
                             force: bool = False) -> EmbedResult:
        ref = document.ref
        if embedder is None:
            return self._result(ref, success=False, error=NO_PROVIDER_MESSAGE)

        await self.catalog.upsert(document)

        async with self.locks.hold(ref):
            if not force and await self._is_current(ref, embedder):
                logger.debug(f"Skipping {ref.type}:{ref.id}, already embedded by provider {embedder.provider_id}")
                return self._result(ref, success=True, skipped=True,
                                    chunk_count=len(await self.store.get_for_parent(ref)))
            try:
                records = await self._build_chunks(document, embedder)
                await self.store.replace_chunks(ref, records)
            except ProviderError as e:
                logger.error(f"Embedding failed for {ref.type}:{ref.id}: {e}")
                return self._result(ref, success=False, error=str(e))

        logger.info(f"Embedded {ref.type}:{ref.id} into {len(records)} chunks")
        return self._result(ref, success=True, chunk_count=len(records))

    async def _is_current(self, ref: ParentRef, embedder: EmbeddingClient) -> bool:
        chunks = await self.store.get_for_parent(ref)
        return bool(chunks) and all(
            c.embedding is not None and c.embedding_provider_id == embedder.provider_id
            for c in chunks
        )

    async def _build_chunks(self, document: DocumentSnapshot,
                            embedder: EmbeddingClient) -> List[ChunkRecord]:
        index = _SegmentIndex(document_segments(document))
        config = embedder.provider
        pieces = self.chunker.chunk_text(index.text, config.chunk_size_tokens,
                                         config.chunk_overlap_fraction)
        if not pieces:
            return []

        vectors = await embedder.embed([piece.content for piece in pieces])
        embedded_at = datetime.now(timezone.utc)
        ref = document.ref

        records = []
        for piece, vector in zip(pieces, vectors):
            source = index.source_of(piece)
            records.append(ChunkRecord(
                parent_type=ref.type,
                parent_id=ref.id,
                chunk_index=piece.chunk_index,
                content=piece.content,
                token_count=piece.token_count,
                embedding=vector,
                embedding_provider_id=embedder.provider_id,
                embedded_at=embedded_at,
                metadata=ChunkMetadata(
                    source_type=source.source_type if source else ref.type,
                    source_id=source.source_id if source else ref.id,
                    position=piece.position.value,
                ),
            ))
        return records

    async def handle_content_changed(self, event: ContentChangedEvent,
                                     embedder: Optional[EmbeddingClient]) -> EmbedResult:
        ref = event.ref
        if event.change_kind == ChangeKind.DELETED:
            async with self.locks.hold(ref):
                removed = await self.store.delete_for_parent(ref)
            await self.catalog.remove(ref)
            logger.info(f"Removed {removed} chunks of deleted {ref.type}:{ref.id}")
            return self._result(ref, success=True)

        snapshot = await self.catalog.get(ref)
        if snapshot is None:
            if not event.text:
                return self._result(ref, success=False, error="Document not found")
            snapshot = DocumentSnapshot(type=event.type, id=event.id)
        if event.text:
            snapshot.body = event.text
        if event.scope_id is not None:
            snapshot.scope_id = event.scope_id
        snapshot.updated_at = datetime.now(timezone.utc)

        if embedder is None:
            await self.catalog.upsert(snapshot)
            async with self.locks.hold(ref):
                stale = await self.store.mark_stale(ref)
            if stale:
                logger.info(f"Marked {stale} chunks of {ref.type}:{ref.id} stale, no provider to re-embed")
            return self._result(ref, success=False, error=NO_PROVIDER_MESSAGE)
        return await self.embed_document(snapshot, embedder, force=True)

    async def embed_many(self, documents: Iterable[DocumentSnapshot],
                         embedder: Optional[EmbeddingClient],
                         force: bool = False) -> BatchEmbedResult:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(document: DocumentSnapshot) -> EmbedResult:
            async with semaphore:
                try:
                    if self.document_scope is None:
                        return await self.embed_document(document, embedder, force=force)
                    async with self.document_scope() as (store, catalog):
                        return await self.with_stores(store, catalog).embed_document(
                            document, embedder, force=force
                        )
                except Exception as e:
                    logger.exception(f"Unexpected error embedding {document.type.value}:{document.id}")
                    return self._result(document.ref, success=False, error=str(e))

        results = await asyncio.gather(*(run(document) for document in documents))
        batch = BatchEmbedResult(results=list(results))
        for result in results:
            if result.skipped:
                batch.skipped += 1
            elif result.success:
                batch.succeeded += 1
            else:
                batch.failed += 1
        logger.info(
            f"Batch embedding finished: {batch.succeeded} succeeded, "
            f"{batch.failed} failed, {batch.skipped} skipped"
        )
        return batch

    async def regenerate_all(self, embedder: Optional[EmbeddingClient],
                             force: bool = True) -> BatchEmbedResult:
        if embedder is None:
            logger.warning("Regeneration requested but no embedding provider is enabled")
            return BatchEmbedResult()

        purged = await self.store.purge_other_providers(embedder.provider_id)
        if purged:
            logger.info(f"Purged {purged} chunks embedded by other providers")

        refs = await self.catalog.list_refs()
        if not force:
            current = await self.store.embedded_parents(embedder.provider_id)
            refs = [ref for ref in refs if ref not in current]
        snapshots = await self.catalog.get_many(refs)
        return await self.embed_many(snapshots.values(), embedder, force=force)

    @staticmethod
    def _result(ref: ParentRef, **kwargs) -> EmbedResult:
        return EmbedResult(document_type=ref.type, document_id=ref.id, **kwargs)
