from uuid import UUID

from injector import inject
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rag_engine.db.models.providers import LlmProviderModel


@inject
class LlmProviderRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, obj: LlmProviderModel):
        self.db.add(obj)
        await self.db.flush()
        if obj.is_default:
            await self._clear_defaults(except_id=obj.id)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def get_by_id(self, llm_provider_id: UUID):
        return await self.db.get(LlmProviderModel, llm_provider_id)

    async def update(self, obj: LlmProviderModel):
        self.db.add(obj)
        if obj.is_default:
            await self._clear_defaults(except_id=obj.id)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def delete(self, obj: LlmProviderModel):
        await self.db.delete(obj)
        await self.db.commit()

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(LlmProviderModel))
        return result.scalar_one()

    async def get_all(self):
        result = await self.db.execute(
            select(LlmProviderModel)
            .order_by(LlmProviderModel.created_at.asc())
        )
        return result.scalars().all()

    async def _clear_defaults(self, except_id: UUID):
        # same transaction as the save, so two defaults are never committed
        await self.db.execute(
            update(LlmProviderModel)
            .where(LlmProviderModel.is_default.is_(True), LlmProviderModel.id != except_id)
            .values(is_default=False)
        )
