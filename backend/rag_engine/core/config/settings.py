from typing import Optional
from pydantic import computed_field, ConfigDict, model_validator
from pydantic_settings import BaseSettings


class ProjectSettings(BaseSettings):

    def __init__(self, **values):
        super().__init__(**values)
        if self.REDIS_HOST is None:
            self.REDIS_HOST = "127.0.0.1" if self.DEV else "redis"

    # === Redis / Celery ===
    REDIS_HOST: Optional[str] = None
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # === Security ===
    FERNET_KEY: Optional[str] = None

    # === Database ===
    DB_HOST: Optional[str] = "localhost"
    DB_PORT: int = 5432
    DB_USER: Optional[str] = "postgres"
    DB_PASS: Optional[str] = "postgres"
    DB_NAME: Optional[str] = "rag_engine"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_ECHO: bool = False
    CREATE_DB: bool = False

    # === Storage backend for chunks and the document catalog ===
    # "memory" keeps everything in-process, "pgvector" uses Postgres.
    VECTOR_STORE: str = "memory"

    # === Retrieval defaults ===
    RAG_CHUNK_LIMIT: int = 10
    SIMILAR_QUESTIONS_LIMIT: int = 3
    SEARCH_TIMEOUT_SECONDS: float = 10.0
    ANSWER_TIMEOUT_SECONDS: float = 120.0
    EMBEDDING_MAX_ATTEMPTS: int = 3
    EMBEDDING_RETRY_BASE_DELAY: float = 1.0
    EMBEDDING_CONCURRENCY: int = 4
    EMBEDDING_BATCH_SIZE: int = 96
    EMBEDDING_JOBS_ASYNC: bool = False

    DEBUG: bool = True
    DEV: bool = True
    LOG_LEVEL: str = "DEBUG"
    LOG_JSON: bool = False
    LOG_DIR: Optional[str] = None
    FASTAPI_RUN_PORT: int = 8000
    API_VERSION: Optional[str] = "1.0"
    DEFAULT_LANGUAGE: str = "en"
    SUPPORTED_LANGUAGES: tuple[str, ...] = ("en",)

    @computed_field
    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @computed_field
    @property
    def DATABASE_URL(self) -> str:
        return (
            f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASS}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @model_validator(mode='after')
    def check_jobs_reach_the_store(self):
        """Celery workers run in other processes and cannot see an in-memory store."""
        if self.EMBEDDING_JOBS_ASYNC and self.VECTOR_STORE.lower() == "memory":
            raise ValueError("EMBEDDING_JOBS_ASYNC requires VECTOR_STORE=pgvector")
        return self

    model_config = ConfigDict(
            env_file=".env",
            env_file_encoding="utf-8",
            extra="ignore",  # ignore unknown fields instead of raising an error
            )


settings = ProjectSettings()
