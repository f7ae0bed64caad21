import logging
from typing import Optional
from uuid import UUID

from injector import inject

from rag_engine.constants.embedding_models import model_dimensions
from rag_engine.core.exceptions.error_messages import ErrorKey
from rag_engine.core.exceptions.exception_classes import AppException
from rag_engine.core.utils.encryption_utils import encrypt_key, get_masked_api_key
from rag_engine.db.models.providers import EmbeddingProviderModel
from rag_engine.repositories.embedding_providers import EmbeddingProviderRepository
from rag_engine.schemas.provider import (
    EmbeddingProviderConfig,
    EmbeddingProviderCreate,
    EmbeddingProviderUpdate,
)
from rag_engine.services.provider_registry import (
    embedding_signature,
    select_embedding_provider,
    to_embedding_config,
)


logger = logging.getLogger(__name__)


def _connection_data(existing: Optional[dict], api_key: Optional[str], endpoint: Optional[str],
                     endpoint_set: bool) -> dict:
    connection_data = dict(existing or {})
    if api_key:
        connection_data["api_key"] = encrypt_key(api_key)
        connection_data["masked_api_key"] = get_masked_api_key(api_key)
    if endpoint_set:
        connection_data["endpoint"] = endpoint
    return connection_data


@inject
class EmbeddingProviderService:
    def __init__(self, repository: EmbeddingProviderRepository):
        self.repository = repository

    async def create(self, data: EmbeddingProviderCreate):
        is_first = await self.repository.count() == 0
        obj = EmbeddingProviderModel(
            **data.model_dump(exclude={"api_key", "endpoint"}),
            connection_data=_connection_data(None, data.api_key, data.endpoint, True),
        )
        if is_first:
            obj.enabled = True
        model = await self.repository.create(obj)
        if model.enabled:
            await self._disable_others(model)
        logger.info(f"Created embedding provider {model.name} ({model.provider_type}/{model.model})")
        return model

    async def get_by_id(self, provider_id: UUID):
        obj = await self.repository.get_by_id(provider_id)
        if not obj:
            raise AppException(error_key=ErrorKey.EMBEDDING_PROVIDER_NOT_FOUND, status_code=404)
        return obj

    async def get_all(self):
        return await self.repository.get_all()

    async def update(self, provider_id: UUID, data: EmbeddingProviderUpdate):
        obj = await self.get_by_id(provider_id)
        changes = data.model_dump(exclude_unset=True)
        api_key = changes.pop("api_key", None)
        endpoint_set = "endpoint" in changes
        endpoint = changes.pop("endpoint", None)

        if "model" in changes and "dimensions" not in changes:
            dimensions = model_dimensions(changes["model"])
            if dimensions:
                changes["dimensions"] = dimensions

        for field, value in changes.items():
            setattr(obj, field, value)
        obj.connection_data = _connection_data(obj.connection_data, api_key, endpoint, endpoint_set)

        model = await self.repository.update(obj)
        if model.enabled:
            await self._disable_others(model)
        return model

    async def delete(self, provider_id: UUID):
        obj = await self.get_by_id(provider_id)
        await self.repository.delete(obj)
        return {"message": f"Deleted embedding provider with ID {provider_id}"}

    async def get_active(self) -> Optional[EmbeddingProviderConfig]:
        active = select_embedding_provider(await self.repository.get_all())
        return to_embedding_config(active) if active else None

    async def active_signature(self) -> Optional[tuple]:
        return embedding_signature(await self.get_active())

    async def _disable_others(self, enabled: EmbeddingProviderModel):
        for other in await self.repository.get_all():
            if other.id != enabled.id and other.enabled:
                other.enabled = False
                await self.repository.update(other)
