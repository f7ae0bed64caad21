from typing import Optional

from pydantic import BaseModel, Field

from rag_engine.schemas.document import DocumentSnapshot


class EmbedResult(BaseModel):
    document_type: str
    document_id: str
    success: bool
    chunk_count: int = 0
    error: Optional[str] = None
    skipped: bool = False


class BatchEmbedResult(BaseModel):
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[EmbedResult] = Field(default_factory=list)


class EmbedDocumentRequest(BaseModel):
    document: DocumentSnapshot
    force: bool = False


class RegenerateRequest(BaseModel):
    force: bool = True


class QueuedTask(BaseModel):
    task_id: Optional[str] = None
    status: str = "queued"
