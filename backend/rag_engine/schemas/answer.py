from typing import Optional

from pydantic import BaseModel, Field


class AnswerRequest(BaseModel):
    query: str = ""
    scope_id: Optional[str] = None
    chunk_limit: Optional[int] = Field(None, ge=1, le=100)


class AnswerSource(BaseModel):
    number: int
    type: str
    id: str
    slug: str
    title: Optional[str] = None
    excerpt: Optional[str] = None


class AnswerResult(BaseModel):
    answer: Optional[str] = None
    sources: list[AnswerSource] = Field(default_factory=list)
    chunks_used: int = 0
    from_knowledge_base: bool = False
    query: str = ""

    @classmethod
    def empty(cls, query: str = "") -> "AnswerResult":
        return cls(query=query)
