from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from rag_engine.schemas.document import DocumentSnapshot


DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


class SearchSort(str, Enum):
    RELEVANCE = "relevance"
    NEWEST = "newest"
    OLDEST = "oldest"
    VOTES = "votes"
    ACTIVITY = "activity"


class SearchMode(str, Enum):
    NONE = "none"
    KEYWORD = "keyword"
    VECTOR = "vector"
    ERROR = "error"


class SearchFilters(BaseModel):
    scope_id: Optional[str] = None
    author_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.scope_id or self.author_id or self.tags)

    def matches(self, snapshot: DocumentSnapshot) -> bool:
        if self.scope_id and snapshot.scope_id != self.scope_id:
            return False
        if self.author_id and snapshot.author_id != self.author_id:
            return False
        if self.tags and not set(self.tags) & set(snapshot.tags):
            return False
        return True


class SearchRequest(BaseModel):
    query: str = ""
    filters: SearchFilters = Field(default_factory=SearchFilters)
    sort: Optional[SearchSort] = None
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE

    @field_validator("page")
    @classmethod
    def min_page(cls, value: int) -> int:
        return max(value, 1)

    @field_validator("per_page")
    @classmethod
    def clamp_per_page(cls, value: int) -> int:
        if value < 1:
            return DEFAULT_PER_PAGE
        return min(value, MAX_PER_PAGE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class DocumentSummary(BaseModel):
    id: str
    type: str
    title: str
    slug: Optional[str] = None
    vote_score: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthorSummary(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class ScopeSummary(BaseModel):
    id: Optional[str] = None
    slug: Optional[str] = None
    name: Optional[str] = None


class HitSource(BaseModel):
    document: DocumentSummary
    author: AuthorSummary
    scope: ScopeSummary
    tags: list[str] = Field(default_factory=list)
    answer_count: int = 0
    comment_count: int = 0

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "HitSource":
        return cls(
            document=DocumentSummary(
                id=snapshot.id,
                type=snapshot.type.value,
                title=snapshot.title,
                slug=snapshot.slug,
                vote_score=snapshot.vote_score,
                created_at=snapshot.created_at,
                updated_at=snapshot.updated_at,
            ),
            author=AuthorSummary(id=snapshot.author_id, name=snapshot.author_name),
            scope=ScopeSummary(
                id=snapshot.scope_id, slug=snapshot.scope_slug, name=snapshot.scope_name
            ),
            tags=list(snapshot.tags),
            answer_count=snapshot.answer_count,
            comment_count=snapshot.comment_count,
        )


class SearchHit(BaseModel):
    id: str
    type: str
    score: float
    source: HitSource
    keyword_rank: Optional[int] = None
    vector_rank: Optional[int] = None
    vector_score: Optional[float] = None


class SearchResponse(BaseModel):
    hits: list[SearchHit] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    total_pages: int = 0
    mode: SearchMode = SearchMode.NONE
    query: str = ""


class VectorHit(BaseModel):
    type: str
    id: str
    score: float
    chunk_id: Optional[str] = None


class KeywordMatch(BaseModel):
    snapshot: DocumentSnapshot
    rank: float


class Suggestion(BaseModel):
    id: str
    title: str
    slug: Optional[str] = None
    scope_slug: Optional[str] = None
