import uuid
from datetime import datetime
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field


class ParentRef(NamedTuple):
    """Polymorphic reference to the document a chunk belongs to."""
    type: str
    id: str


class ChunkMetadata(BaseModel):
    source_type: str
    source_id: str
    position: str


class ChunkRecord(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    parent_type: str
    parent_id: str
    chunk_index: int = Field(..., ge=0)
    content: str
    token_count: int = 0
    embedding: Optional[list[float]] = None
    embedding_provider_id: Optional[str] = None
    embedded_at: Optional[datetime] = None
    metadata: Optional[ChunkMetadata] = None

    @property
    def parent(self) -> ParentRef:
        return ParentRef(self.parent_type, self.parent_id)

    @property
    def is_embedded(self) -> bool:
        return self.embedding is not None

    def mark_stale(self) -> None:
        self.embedding = None
        self.embedding_provider_id = None
        self.embedded_at = None


class ChunkMatch(BaseModel):
    chunk: ChunkRecord
    distance: float

    @property
    def similarity(self) -> float:
        return 1.0 - self.distance
