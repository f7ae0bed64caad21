"""
Storage interfaces for chunks and the document catalog
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from rag_engine.schemas.chunk import ChunkMatch, ChunkRecord, ParentRef
from rag_engine.schemas.document import DocumentSnapshot
from rag_engine.schemas.search import KeywordMatch, SearchFilters, SearchSort


def validate_chunk_set(parent: ParentRef, chunks: Sequence[ChunkRecord]) -> None:
    seen = set()
    for chunk in chunks:
        if chunk.parent != parent:
            raise ValueError(f"Chunk {chunk.id} belongs to {chunk.parent}, not {parent}")
        if chunk.chunk_index in seen:
            raise ValueError(f"Duplicate chunk_index {chunk.chunk_index} for {parent}")
        seen.add(chunk.chunk_index)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BaseChunkStore(ABC):
    """Persisted chunks with their embeddings."""

    @abstractmethod
    async def replace_chunks(self, parent: ParentRef, chunks: Sequence[ChunkRecord]) -> None:
        """Swap the whole chunk set of ``parent``; readers never see a mix of generations."""

    @abstractmethod
    async def get_for_parent(self, parent: ParentRef) -> List[ChunkRecord]:
        pass

    @abstractmethod
    async def delete_for_parent(self, parent: ParentRef) -> int:
        pass

    @abstractmethod
    async def nearest(self,
                      vector: Sequence[float],
                      limit: int,
                      provider_id: Optional[str] = None,
                      parent_types: Optional[Iterable[str]] = None) -> List[ChunkMatch]:
        """Embedded chunks ordered by ascending cosine distance."""

    @abstractmethod
    async def search_content(self,
                             text: str,
                             limit: int,
                             parent_types: Optional[Iterable[str]] = None,
                             parents: Optional[Set[ParentRef]] = None) -> List[ChunkRecord]:
        """Case-insensitive substring match over chunk content."""

    @abstractmethod
    async def purge_other_providers(self, provider_id: str) -> int:
        """Delete chunks embedded by any provider other than ``provider_id``."""

    @abstractmethod
    async def embedded_parents(self, provider_id: str) -> Set[ParentRef]:
        """Parents whose chunks are all embedded by ``provider_id``."""

    @abstractmethod
    async def mark_stale(self, parent: ParentRef) -> int:
        pass


class BaseDocumentCatalog(ABC):
    """Pre-resolved document snapshots supplied by the surrounding application."""

    @abstractmethod
    async def upsert(self, snapshot: DocumentSnapshot) -> None:
        pass

    @abstractmethod
    async def remove(self, ref: ParentRef) -> bool:
        pass

    @abstractmethod
    async def get(self, ref: ParentRef) -> Optional[DocumentSnapshot]:
        pass

    async def get_many(self, refs: Iterable[ParentRef]) -> Dict[ParentRef, DocumentSnapshot]:
        found = {}
        for ref in refs:
            snapshot = await self.get(ref)
            if snapshot is not None:
                found[ref] = snapshot
        return found

    @abstractmethod
    async def keyword_search(self,
                             query: str,
                             filters: SearchFilters,
                             sort: SearchSort,
                             offset: int,
                             limit: int,
                             types: Optional[Iterable[str]] = None) -> Tuple[List[KeywordMatch], int]:
        """Weighted lexical ranking (title > body > answers) with filters; returns (page, total)."""

    @abstractmethod
    async def suggest(self, query: str, scope_id: Optional[str], limit: int,
                      types: Optional[Iterable[str]] = None) -> List[DocumentSnapshot]:
        pass

    @abstractmethod
    async def list_refs(self, types: Optional[Iterable[str]] = None,
                        scope_id: Optional[str] = None) -> List[ParentRef]:
        pass
