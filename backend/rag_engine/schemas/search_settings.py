from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SearchSettingsRead(BaseModel):
    scope_id: Optional[str] = None
    rag_chunk_limit: int = 10
    similar_questions_limit: int = 3

    model_config = ConfigDict(from_attributes=True)


class SearchSettingsUpdate(BaseModel):
    rag_chunk_limit: Optional[int] = Field(None, ge=0, le=100)
    similar_questions_limit: Optional[int] = Field(None, ge=0, le=50)
