from fastapi import APIRouter

from rag_engine.core.config.settings import settings


router = APIRouter()


@router.get("")
async def health():
    return {
        "status": "ok",
        "version": settings.API_VERSION,
        "vector_store": settings.VECTOR_STORE,
    }
