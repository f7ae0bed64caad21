from typing import Optional

from fastapi import APIRouter
from fastapi_injector import Injected

from rag_engine.schemas.search_settings import SearchSettingsRead, SearchSettingsUpdate
from rag_engine.services.search_settings import SearchSettingsService


router = APIRouter()


@router.get("", response_model=SearchSettingsRead)
async def get(
    scope_id: Optional[str] = None,
    service: SearchSettingsService = Injected(SearchSettingsService),
):
    return await service.get(scope_id)


@router.patch("", response_model=SearchSettingsRead)
async def update(
    data: SearchSettingsUpdate,
    scope_id: Optional[str] = None,
    service: SearchSettingsService = Injected(SearchSettingsService),
):
    return await service.update(data, scope_id)
