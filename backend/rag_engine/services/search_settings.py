from typing import Optional

from injector import inject

from rag_engine.core.config.settings import settings
from rag_engine.db.models.search import SearchSettingModel
from rag_engine.repositories.search_settings import SearchSettingsRepository
from rag_engine.schemas.search_settings import SearchSettingsRead, SearchSettingsUpdate


@inject
class SearchSettingsService:
    def __init__(self, repository: SearchSettingsRepository):
        self.repository = repository

    async def get(self, scope_id: Optional[str] = None) -> SearchSettingsRead:
        row = await self.repository.get(scope_id)
        if row is None:
            if scope_id is not None:
                return SearchSettingsRead(scope_id=scope_id, rag_chunk_limit=0, similar_questions_limit=0)
            return SearchSettingsRead(
                rag_chunk_limit=settings.RAG_CHUNK_LIMIT,
                similar_questions_limit=settings.SIMILAR_QUESTIONS_LIMIT,
            )
        return SearchSettingsRead.model_validate(row)

    async def update(self, data: SearchSettingsUpdate, scope_id: Optional[str] = None) -> SearchSettingsRead:
        row = await self.repository.get(scope_id)
        if row is None:
            defaults = await self.get(scope_id)
            row = SearchSettingModel(
                scope_id=scope_id,
                rag_chunk_limit=defaults.rag_chunk_limit,
                similar_questions_limit=defaults.similar_questions_limit,
            )
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(row, field, value)
        return SearchSettingsRead.model_validate(await self.repository.save(row))

    async def effective_rag_chunk_limit(self, scope_id: Optional[str] = None) -> int:
        """A positive per-scope override wins over the global limit."""
        if scope_id is not None:
            scoped = await self.repository.get(scope_id)
            if scoped is not None and scoped.rag_chunk_limit and scoped.rag_chunk_limit > 0:
                return scoped.rag_chunk_limit
        return (await self.get(None)).rag_chunk_limit

    async def similar_questions_limit(self) -> int:
        return (await self.get(None)).similar_questions_limit
