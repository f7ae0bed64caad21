from uuid import UUID

from fastapi import APIRouter
from fastapi_injector import Injected

from rag_engine.schemas.provider import LlmProviderCreate, LlmProviderRead, LlmProviderUpdate
from rag_engine.services.llm_providers import LlmProviderService


router = APIRouter()


@router.get("", response_model=list[LlmProviderRead])
async def get_all(service: LlmProviderService = Injected(LlmProviderService)):
    return await service.get_all()


@router.get("/{llm_provider_id}", response_model=LlmProviderRead)
async def get(
    llm_provider_id: UUID, service: LlmProviderService = Injected(LlmProviderService)
):
    return await service.get_by_id(llm_provider_id)


@router.post("", response_model=LlmProviderRead)
async def create(
    data: LlmProviderCreate,
    service: LlmProviderService = Injected(LlmProviderService),
):
    return await service.create(data)


@router.patch("/{llm_provider_id}", response_model=LlmProviderRead)
async def update(
    llm_provider_id: UUID,
    data: LlmProviderUpdate,
    service: LlmProviderService = Injected(LlmProviderService),
):
    return await service.update(llm_provider_id, data)


@router.delete("/{llm_provider_id}")
async def delete(
    llm_provider_id: UUID,
    service: LlmProviderService = Injected(LlmProviderService),
):
    return await service.delete(llm_provider_id)
