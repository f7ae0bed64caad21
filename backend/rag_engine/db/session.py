import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from rag_engine.core.config.settings import settings
from rag_engine.db.base import Base
from rag_engine.db import models  # noqa: F401


logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Owns the async engine and the session factory."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            logger.info("Creating database engine")
            self._engine = create_async_engine(
                self.database_url,
                echo=settings.DB_ECHO,
                future=True,
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_pre_ping=True,
            )
        return self._engine

    def get_session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine, expire_on_commit=False
            )
        return self._session_factory

    async def initialize(self):
        if not settings.CREATE_DB:
            return
        async with self.engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured")

    async def close(self):
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None


session_manager = DatabaseSessionManager()
