import logging
from typing import Optional
from uuid import UUID

from injector import inject

from rag_engine.core.exceptions.error_messages import ErrorKey
from rag_engine.core.exceptions.exception_classes import AppException
from rag_engine.core.utils.encryption_utils import encrypt_key, get_masked_api_key
from rag_engine.db.models.providers import LlmProviderModel
from rag_engine.repositories.llm_providers import LlmProviderRepository
from rag_engine.schemas.provider import LlmProviderConfig, LlmProviderCreate, LlmProviderUpdate
from rag_engine.services.provider_registry import select_default_llm_provider, to_llm_config


logger = logging.getLogger(__name__)


@inject
class LlmProviderService:
    def __init__(self, repository: LlmProviderRepository):
        self.repository = repository

    async def create(self, data: LlmProviderCreate):
        connection_data = {"endpoint": data.endpoint}
        if data.api_key:
            connection_data["api_key"] = encrypt_key(data.api_key)
            connection_data["masked_api_key"] = get_masked_api_key(data.api_key)

        obj = LlmProviderModel(
            **data.model_dump(exclude={"api_key", "endpoint"}),
            connection_data=connection_data,
        )
        if await self.repository.count() == 0:
            obj.is_default = True
        model = await self.repository.create(obj)
        logger.info(f"Created LLM provider {model.name} ({model.provider_type}/{model.model})")
        return model

    async def get_by_id(self, llm_provider_id: UUID):
        obj = await self.repository.get_by_id(llm_provider_id)
        if not obj:
            raise AppException(error_key=ErrorKey.LLM_PROVIDER_NOT_FOUND, status_code=404)
        return obj

    async def get_all(self):
        return await self.repository.get_all()

    async def update(self, llm_provider_id: UUID, data: LlmProviderUpdate):
        obj = await self.get_by_id(llm_provider_id)
        changes = data.model_dump(exclude_unset=True)
        connection_data = dict(obj.connection_data or {})

        api_key = changes.pop("api_key", None)
        if api_key:
            connection_data["api_key"] = encrypt_key(api_key)
            connection_data["masked_api_key"] = get_masked_api_key(api_key)
        if "endpoint" in changes:
            connection_data["endpoint"] = changes.pop("endpoint")

        for field, value in changes.items():
            setattr(obj, field, value)
        obj.connection_data = connection_data
        return await self.repository.update(obj)

    async def delete(self, llm_provider_id: UUID):
        obj = await self.get_by_id(llm_provider_id)
        await self.repository.delete(obj)
        return {"message": f"Deleted LLM Provider with ID {llm_provider_id}"}

    async def get_default(self) -> Optional[LlmProviderConfig]:
        default = select_default_llm_provider(await self.repository.get_all())
        return to_llm_config(default) if default else None
