from uuid import UUID

from injector import inject
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rag_engine.db.models.providers import EmbeddingProviderModel


@inject
class EmbeddingProviderRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, obj: EmbeddingProviderModel):
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def get_by_id(self, provider_id: UUID):
        return await self.db.get(EmbeddingProviderModel, provider_id)

    async def update(self, obj: EmbeddingProviderModel):
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def delete(self, obj: EmbeddingProviderModel):
        await self.db.delete(obj)
        await self.db.commit()

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(EmbeddingProviderModel))
        return result.scalar_one()

    async def get_all(self):
        result = await self.db.execute(
            select(EmbeddingProviderModel)
            .order_by(EmbeddingProviderModel.created_at.asc())
        )
        return result.scalars().all()
