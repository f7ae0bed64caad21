import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from rag_engine.constants.embedding_models import GLOBAL_SIMILARITY_THRESHOLD
from rag_engine.core.exceptions.provider_errors import (
    ApiError,
    ConfigurationError,
    ProviderError,
    RateLimitError,
)
from rag_engine.modules.embedding.client import EmbeddingClient
from rag_engine.modules.store.base import BaseChunkStore, BaseDocumentCatalog
from rag_engine.schemas.chunk import ChunkMatch, ParentRef
from rag_engine.schemas.document import DocumentSnapshot, DocumentType
from rag_engine.schemas.result import FailureReason, Outcome
from rag_engine.schemas.search import VectorHit
from rag_engine.services.content_extraction import extract_content


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# neighbours fetched per requested hit, several chunks usually share a parent
FAN_OUT = 3
DEFAULT_TYPES = (DocumentType.QUESTION.value, DocumentType.ARTICLE.value)
SIMILAR_QUERY_CHARS = 1000


def failure_reason(error: ProviderError) -> FailureReason:
    if isinstance(error, RateLimitError):
        return FailureReason.RATE_LIMITED
    if isinstance(error, ConfigurationError):
        return FailureReason.CONFIGURATION
    if isinstance(error, ApiError):
        return FailureReason.API
    return FailureReason.INTERNAL


class VectorSearchService:
    """
    Semantic search over embedded chunks.

    Chunk neighbours are collapsed to one hit per parent document carrying the
    best chunk similarity. Provider problems come back as failed outcomes so
    callers can fall back to lexical search.
    """

    def __init__(self, store: BaseChunkStore, catalog: BaseDocumentCatalog):
        self.store = store
        self.catalog = catalog

    async def search(self,
                     query: str,
                     embedder: Optional[EmbeddingClient],
                     types: Optional[Iterable[str]] = None,
                     scope_id: Optional[str] = None,
                     limit: int = DEFAULT_LIMIT,
                     offset: int = 0,
                     threshold: Optional[float] = None,
                     timeout: Optional[float] = None) -> Outcome[List[VectorHit]]:
        query = (query or "").strip()
        if not query:
            return Outcome.success([])
        if embedder is None:
            return Outcome.fail(FailureReason.NO_PROVIDER, "No embedding provider is enabled")

        limit = min(max(limit, 1), MAX_LIMIT)
        offset = max(offset, 0)
        types = list(types) if types else list(DEFAULT_TYPES)

        try:
            if timeout:
                vector = await asyncio.wait_for(embedder.embed_one(query), timeout=timeout)
            else:
                vector = await embedder.embed_one(query)
        except asyncio.TimeoutError:
            logger.warning(f"Query embedding timed out after {timeout}s")
            return Outcome.fail(FailureReason.TIMEOUT, f"Query embedding exceeded {timeout}s")
        except ProviderError as e:
            logger.warning(f"Query embedding failed: {e}")
            return Outcome.fail(failure_reason(e), str(e))

        try:
            matches = await self.store.nearest(
                vector,
                (limit + offset) * FAN_OUT,
                provider_id=embedder.provider_id,
                parent_types=types,
            )
            hits = await self._group(matches, scope_id)
        except Exception as e:
            logger.exception(f"Vector lookup failed for query '{query}'")
            return Outcome.fail(FailureReason.INTERNAL, str(e))

        if threshold is None:
            threshold = embedder.similarity_threshold
        if threshold is None:
            threshold = GLOBAL_SIMILARITY_THRESHOLD

        hits = [hit for hit in hits if hit.score >= threshold]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        logger.debug(f"Vector search '{query}': {len(hits)} hits above {threshold}")
        return Outcome.success(hits[offset:offset + limit])

    async def _group(self, matches: List[ChunkMatch], scope_id: Optional[str]) -> List[VectorHit]:
        best: Dict[ParentRef, VectorHit] = {}
        for match in matches:
            parent = match.chunk.parent
            score = match.similarity
            current = best.get(parent)
            if current is None or score > current.score:
                best[parent] = VectorHit(type=parent.type, id=parent.id, score=score,
                                         chunk_id=match.chunk.id)

        if scope_id and best:
            snapshots = await self.catalog.get_many(best.keys())
            best = {
                ref: hit for ref, hit in best.items()
                if ref in snapshots and snapshots[ref].scope_id == scope_id
            }
        return list(best.values())

    async def find_similar(self,
                           document: DocumentSnapshot,
                           embedder: Optional[EmbeddingClient],
                           limit: int = 3,
                           threshold: Optional[float] = None) -> Outcome[List[VectorHit]]:
        """Documents of the same type that read like ``document``, excluding itself."""
        body = extract_content(document.body, document.content_type)
        query = f"{document.title}\n\n{body}".strip()[:SIMILAR_QUERY_CHARS]
        outcome = await self.search(
            query,
            embedder,
            types=[document.type.value],
            scope_id=document.scope_id,
            limit=limit + 1,
            threshold=threshold,
        )
        if not outcome.ok:
            return outcome
        related = [hit for hit in outcome.value if hit.id != document.id]
        return Outcome.success(related[:limit])
