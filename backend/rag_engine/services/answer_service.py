"""
Retrieval-augmented answers with citations
"""

import logging
from typing import Dict, List, Optional, Set

from rag_engine.core.exceptions.provider_errors import ProviderError
from rag_engine.core.utils.llm_utils import truncate
from rag_engine.modules.embedding.client import EmbeddingClient
from rag_engine.modules.store.base import BaseChunkStore, BaseDocumentCatalog
from rag_engine.schemas.answer import AnswerResult, AnswerSource
from rag_engine.schemas.chunk import ChunkRecord, ParentRef
from rag_engine.schemas.document import DocumentSnapshot, DocumentType
from rag_engine.services.answer_prompts import (
    ANSWER_SCHEMA,
    FALLBACK_SYSTEM_PROMPT,
    RAG_SYSTEM_PROMPT,
    create_fallback_prompt,
    create_rag_prompt,
)
from rag_engine.services.llm_client import LlmClient
from rag_engine.services.vector_search import FAN_OUT


logger = logging.getLogger(__name__)

ANSWER_TYPES = (DocumentType.QUESTION.value, DocumentType.ARTICLE.value)
EXCERPT_LENGTH = 200
SOURCE_SEPARATOR = "\n\n---\n\n"


def format_chunk(number: int, chunk: ChunkRecord, snapshot: Optional[DocumentSnapshot]) -> str:
    title = snapshot.title if snapshot and snapshot.title else "Untitled"
    return (
        f"[Source {number}]\n"
        f"Type: {chunk.parent_type}\n"
        f"ID: {chunk.parent_id}\n"
        f"Title: {title}\n\n"
        f"{chunk.content}"
    )


class AnswerService:
    """
    Answers a question from the knowledge base.

    Relevant chunks are retrieved (semantic first, lexical otherwise) and handed
    to the default language model as numbered sources. Without retrieved
    context the model answers from general knowledge. Any failure ends in
    an empty result, never an exception.
    """

    def __init__(self,
                 store: BaseChunkStore,
                 catalog: BaseDocumentCatalog,
                 timeout: Optional[float] = None):
        self.store = store
        self.catalog = catalog
        self.timeout = timeout

    async def answer(self,
                     query: str,
                     llm: Optional[LlmClient],
                     embedder: Optional[EmbeddingClient] = None,
                     scope_id: Optional[str] = None,
                     chunk_limit: int = 10) -> AnswerResult:
        query = (query or "").strip()
        if llm is None:
            logger.info("No language model provider is configured, skipping answer")
            return AnswerResult.empty(query)

        try:
            chunks = await self.retrieve(query, embedder, scope_id, chunk_limit) if query else []
            if not chunks:
                return await self._general_answer(query, llm)
            return await self._grounded_answer(query, chunks, llm)
        except ProviderError as e:
            logger.error(f"Answer generation failed: {e}")
            return AnswerResult.empty(query)
        except Exception:
            logger.exception(f"Unexpected error answering '{query}'")
            return AnswerResult.empty(query)

    async def retrieve(self,
                       query: str,
                       embedder: Optional[EmbeddingClient],
                       scope_id: Optional[str],
                       chunk_limit: int) -> List[ChunkRecord]:
        parents: Optional[Set[ParentRef]] = None
        if scope_id:
            parents = set(await self.catalog.list_refs(ANSWER_TYPES, scope_id=scope_id))
            if not parents:
                return []

        if embedder is not None:
            try:
                chunks = await self._vector_chunks(query, embedder, parents, chunk_limit)
            except ProviderError as e:
                logger.warning(f"Chunk vector search failed, using content match: {e}")
            else:
                if chunks:
                    return chunks

        return await self.store.search_content(query, chunk_limit, ANSWER_TYPES, parents)

    async def _vector_chunks(self,
                             query: str,
                             embedder: EmbeddingClient,
                             parents: Optional[Set[ParentRef]],
                             chunk_limit: int) -> List[ChunkRecord]:
        vector = await embedder.embed_one(query)
        matches = await self.store.nearest(
            vector,
            chunk_limit * FAN_OUT,
            provider_id=embedder.provider_id,
            parent_types=ANSWER_TYPES,
        )
        threshold = embedder.similarity_threshold
        chunks = [
            m.chunk for m in matches
            if m.similarity >= threshold and (parents is None or m.chunk.parent in parents)
        ]
        return chunks[:chunk_limit]

    async def _general_answer(self, query: str, llm: LlmClient) -> AnswerResult:
        data = await llm.generate_json(
            create_fallback_prompt(query),
            system=FALLBACK_SYSTEM_PROMPT,
            schema=ANSWER_SCHEMA,
            timeout=self.timeout,
        )
        return AnswerResult(
            answer=str(data.get("answer") or ""),
            query=query,
            from_knowledge_base=False,
        )

    async def _grounded_answer(self, query: str, chunks: List[ChunkRecord],
                               llm: LlmClient) -> AnswerResult:
        snapshots = await self.catalog.get_many({chunk.parent for chunk in chunks})
        context = SOURCE_SEPARATOR.join(
            format_chunk(number, chunk, snapshots.get(chunk.parent))
            for number, chunk in enumerate(chunks, start=1)
        )
        data = await llm.generate_json(
            create_rag_prompt(query, context),
            system=RAG_SYSTEM_PROMPT,
            schema=ANSWER_SCHEMA,
            timeout=self.timeout,
        )
        sources = await self.resolve_sources(data.get("sources"), chunks, snapshots)
        logger.info(f"Answered '{query}' from {len(chunks)} chunks with {len(sources)} sources")
        return AnswerResult(
            answer=str(data.get("answer") or ""),
            sources=sources,
            chunks_used=len(chunks),
            from_knowledge_base=True,
            query=query,
        )

    async def resolve_sources(self,
                              cited,
                              chunks: List[ChunkRecord],
                              snapshots: Dict[ParentRef, DocumentSnapshot]) -> List[AnswerSource]:
        """
        Maps the model's citations to navigable sources.

        A citation keeps its place even when its document cannot be found; the
        slug then falls back to the cited id.
        """
        if not isinstance(cited, list) or not cited:
            return self.chunk_sources(chunks, snapshots)

        ids_to_type = {chunk.parent_id: chunk.parent_type for chunk in chunks}
        sources = []
        for number, item in enumerate(cited, start=1):
            if not isinstance(item, dict) or item.get("id") in (None, ""):
                continue
            doc_id = str(item["id"])
            doc_type = str(item.get("type") or ids_to_type.get(doc_id, "")).lower()
            ref = ParentRef(doc_type, doc_id)

            snapshot = snapshots.get(ref)
            if snapshot is None and doc_type:
                snapshot = await self.catalog.get(ref)

            sources.append(AnswerSource(
                number=item.get("number") or number,
                type=doc_type,
                id=doc_id,
                slug=(snapshot.slug if snapshot and snapshot.slug else doc_id),
                title=item.get("title") or (snapshot.title if snapshot else None),
                excerpt=item.get("excerpt"),
            ))
        return sources

    @staticmethod
    def chunk_sources(chunks: List[ChunkRecord],
                      snapshots: Dict[ParentRef, DocumentSnapshot]) -> List[AnswerSource]:
        sources = []
        seen = set()
        for chunk in chunks:
            if chunk.parent in seen:
                continue
            seen.add(chunk.parent)
            snapshot = snapshots.get(chunk.parent)
            sources.append(AnswerSource(
                number=len(sources) + 1,
                type=chunk.parent_type,
                id=chunk.parent_id,
                slug=(snapshot.slug if snapshot and snapshot.slug else chunk.parent_id),
                title=snapshot.title if snapshot else None,
                excerpt=truncate(chunk.content, EXCERPT_LENGTH),
            ))
        return sources
