from typing import Optional

from injector import inject
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rag_engine.db.models.search import SearchSettingModel


@inject
class SearchSettingsRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, scope_id: Optional[str] = None) -> Optional[SearchSettingModel]:
        stmt = select(SearchSettingModel)
        if scope_id is None:
            stmt = stmt.where(SearchSettingModel.scope_id.is_(None))
        else:
            stmt = stmt.where(SearchSettingModel.scope_id == scope_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def save(self, obj: SearchSettingModel) -> SearchSettingModel:
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj
