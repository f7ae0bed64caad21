from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from rag_engine.schemas.chunk import ParentRef


class DocumentType(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"
    ARTICLE = "article"


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    CONTENT_DETECTED = "content_detected"
    DELETED = "deleted"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AnswerSnapshot(BaseModel):
    id: str
    body: str
    vote_score: int = 0
    accepted: bool = False


class DocumentSnapshot(BaseModel):
    """
    Pre-resolved view of a document owned by the surrounding application.

    The retrieval core never loads documents itself; everything it needs for
    indexing, ranking and display travels in this snapshot.
    """

    type: DocumentType
    id: str
    slug: Optional[str] = None
    title: str = ""
    body: str = ""
    content_type: str = "markdown"
    context: Optional[str] = None
    scope_id: Optional[str] = None
    scope_slug: Optional[str] = None
    scope_name: Optional[str] = None
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    vote_score: int = 0
    answer_count: int = 0
    comment_count: int = 0
    answers: list[AnswerSnapshot] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def ref(self) -> ParentRef:
        return ParentRef(self.type.value, self.id)


class ContentChangedEvent(BaseModel):
    id: str
    type: DocumentType
    scope_id: Optional[str] = None
    text: Optional[str] = None
    change_kind: ChangeKind = ChangeKind.UPDATED

    @property
    def ref(self) -> ParentRef:
        return ParentRef(self.type.value, self.id)
