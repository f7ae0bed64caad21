"""
In-process chunk store and document catalog
"""

import asyncio
import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from rag_engine.schemas.chunk import ChunkMatch, ChunkRecord, ParentRef
from rag_engine.schemas.document import DocumentSnapshot
from rag_engine.schemas.search import KeywordMatch, SearchFilters, SearchSort
from .base import BaseChunkStore, BaseDocumentCatalog, validate_chunk_set


logger = logging.getLogger(__name__)


class InMemoryChunkStore(BaseChunkStore):
    """
    Chunks grouped per parent in an immutable mapping.

    Writers build a new mapping under a lock and swap it in; readers work on
    whichever mapping was current when they started.
    """

    def __init__(self):
        self._chunks: Dict[ParentRef, Tuple[ChunkRecord, ...]] = {}
        self._lock = asyncio.Lock()

    async def replace_chunks(self, parent: ParentRef, chunks: Sequence[ChunkRecord]) -> None:
        validate_chunk_set(parent, chunks)
        frozen = tuple(
            sorted((c.model_copy(deep=True) for c in chunks), key=lambda c: c.chunk_index)
        )
        async with self._lock:
            updated = dict(self._chunks)
            if frozen:
                updated[parent] = frozen
            else:
                updated.pop(parent, None)
            self._chunks = updated
        logger.debug(f"Replaced chunks for {parent.type}:{parent.id} with {len(frozen)} chunks")

    async def get_for_parent(self, parent: ParentRef) -> List[ChunkRecord]:
        return [c.model_copy(deep=True) for c in self._chunks.get(parent, ())]

    async def delete_for_parent(self, parent: ParentRef) -> int:
        async with self._lock:
            updated = dict(self._chunks)
            removed = updated.pop(parent, ())
            self._chunks = updated
        return len(removed)

    async def nearest(self,
                      vector: Sequence[float],
                      limit: int,
                      provider_id: Optional[str] = None,
                      parent_types: Optional[Iterable[str]] = None) -> List[ChunkMatch]:
        if limit <= 0:
            return []
        types = set(parent_types) if parent_types else None
        candidates = [
            chunk
            for parent, chunks in self._chunks.items()
            if types is None or parent.type in types
            for chunk in chunks
            if chunk.embedding is not None
            and (provider_id is None or chunk.embedding_provider_id == provider_id)
            and len(chunk.embedding) == len(vector)
        ]
        if not candidates:
            return []

        query = np.asarray(vector, dtype=np.float32)
        matrix = np.asarray([c.embedding for c in candidates], dtype=np.float32)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        norms = np.where(norms == 0, 1, norms)  # Avoid division by zero
        distances = 1.0 - (matrix @ query) / norms

        order = np.argsort(distances, kind="stable")[:limit]
        return [
            ChunkMatch(chunk=candidates[i].model_copy(deep=True), distance=float(distances[i]))
            for i in order
        ]

    async def search_content(self,
                             text: str,
                             limit: int,
                             parent_types: Optional[Iterable[str]] = None,
                             parents: Optional[Set[ParentRef]] = None) -> List[ChunkRecord]:
        needle = (text or "").strip().lower()
        if not needle or limit <= 0:
            return []
        types = set(parent_types) if parent_types else None
        found = []
        for parent, chunks in self._chunks.items():
            if types is not None and parent.type not in types:
                continue
            if parents is not None and parent not in parents:
                continue
            for chunk in chunks:
                if needle in chunk.content.lower():
                    found.append(chunk.model_copy(deep=True))
                    if len(found) >= limit:
                        return found
        return found

    async def purge_other_providers(self, provider_id: str) -> int:
        removed = 0
        async with self._lock:
            updated = {}
            for parent, chunks in self._chunks.items():
                kept = tuple(
                    c for c in chunks
                    if c.embedding_provider_id is None or c.embedding_provider_id == provider_id
                )
                removed += len(chunks) - len(kept)
                if kept:
                    updated[parent] = kept
            self._chunks = updated
        return removed

    async def embedded_parents(self, provider_id: str) -> Set[ParentRef]:
        return {
            parent
            for parent, chunks in self._chunks.items()
            if chunks and all(
                c.embedding is not None and c.embedding_provider_id == provider_id for c in chunks
            )
        }

    async def mark_stale(self, parent: ParentRef) -> int:
        async with self._lock:
            chunks = self._chunks.get(parent)
            if not chunks:
                return 0
            stale = []
            for chunk in chunks:
                copy = chunk.model_copy(deep=True)
                copy.mark_stale()
                stale.append(copy)
            updated = dict(self._chunks)
            updated[parent] = tuple(stale)
            self._chunks = updated
        return len(stale)


_TERM_RE = re.compile(r"\w+", re.UNICODE)

FIELD_WEIGHTS = (("title", 1.0), ("body", 0.4), ("answers", 0.2))


def _terms(text: str) -> List[str]:
    return _TERM_RE.findall((text or "").lower())


def _keyword_rank(terms: Sequence[str], snapshot: DocumentSnapshot) -> float:
    """Every term must appear somewhere; each contributes the weights of the fields holding it."""
    fields = {
        "title": set(_terms(snapshot.title)),
        "body": set(_terms(snapshot.body)),
        "answers": set(_terms(" ".join(a.body for a in snapshot.answers))),
    }
    score = 0.0
    for term in terms:
        term_score = sum(weight for name, weight in FIELD_WEIGHTS if term in fields[name])
        if term_score == 0:
            return 0.0
        score += term_score
    return score


def sort_matches(matches: List[KeywordMatch], sort: SearchSort) -> List[KeywordMatch]:
    if sort == SearchSort.OLDEST:
        return sorted(matches, key=lambda m: m.snapshot.created_at)
    if sort == SearchSort.NEWEST:
        return sorted(matches, key=lambda m: m.snapshot.created_at, reverse=True)
    if sort == SearchSort.VOTES:
        return sorted(matches, key=lambda m: (m.snapshot.vote_score, m.snapshot.created_at), reverse=True)
    if sort == SearchSort.ACTIVITY:
        return sorted(matches, key=lambda m: m.snapshot.updated_at, reverse=True)
    return sorted(matches, key=lambda m: (m.rank, m.snapshot.created_at), reverse=True)


class InMemoryDocumentCatalog(BaseDocumentCatalog):

    def __init__(self):
        self._documents: Dict[ParentRef, DocumentSnapshot] = {}

    async def upsert(self, snapshot: DocumentSnapshot) -> None:
        self._documents[snapshot.ref] = snapshot.model_copy(deep=True)

    async def remove(self, ref: ParentRef) -> bool:
        return self._documents.pop(ref, None) is not None

    async def get(self, ref: ParentRef) -> Optional[DocumentSnapshot]:
        snapshot = self._documents.get(ParentRef(*ref))
        return snapshot.model_copy(deep=True) if snapshot else None

    async def keyword_search(self,
                             query: str,
                             filters: SearchFilters,
                             sort: SearchSort,
                             offset: int,
                             limit: int,
                             types: Optional[Iterable[str]] = None) -> Tuple[List[KeywordMatch], int]:
        allowed = set(types) if types else None
        terms = list(dict.fromkeys(_terms(query)))
        matches = []
        for ref, snapshot in self._documents.items():
            if allowed is not None and ref.type not in allowed:
                continue
            if not filters.matches(snapshot):
                continue
            rank = _keyword_rank(terms, snapshot) if terms else 0.0
            if terms and rank <= 0:
                continue
            matches.append(KeywordMatch(snapshot=snapshot.model_copy(deep=True), rank=rank))

        ordered = sort_matches(matches, sort)
        return ordered[offset:offset + limit], len(ordered)

    async def suggest(self, query: str, scope_id: Optional[str], limit: int,
                      types: Optional[Iterable[str]] = None) -> List[DocumentSnapshot]:
        needle = (query or "").strip().lower()
        if not needle:
            return []
        allowed = set(types) if types else None
        found = []
        for ref, snapshot in self._documents.items():
            if allowed is not None and ref.type not in allowed:
                continue
            if scope_id and snapshot.scope_id != scope_id:
                continue
            position = snapshot.title.lower().find(needle)
            if position >= 0:
                found.append((position, len(snapshot.title), snapshot))
        found.sort(key=lambda item: (item[0], item[1]))
        return [snapshot.model_copy(deep=True) for _, _, snapshot in found[:limit]]

    async def list_refs(self, types: Optional[Iterable[str]] = None,
                        scope_id: Optional[str] = None) -> List[ParentRef]:
        allowed = set(types) if types else None
        return [
            ref for ref, snapshot in self._documents.items()
            if (allowed is None or ref.type in allowed)
            and (scope_id is None or snapshot.scope_id == scope_id)
        ]
