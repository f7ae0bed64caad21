import logging
from contextlib import asynccontextmanager

from celery import Celery
from fastapi import FastAPI
from fastapi_injector import InjectorMiddleware, RequestScopeOptions, attach_injector

from rag_engine.api.v1.routes._routes import register_routers
from rag_engine.core.config.logging import init_logging
from rag_engine.core.config.settings import settings
from rag_engine.core.exceptions.exception_handler import init_error_handlers
from rag_engine.db.session import session_manager
from rag_engine.dependencies.injector import injector


init_logging()
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Application-factory entry-point.
    Only orchestration happens here, all heavy lifting lives in helpers.
    """
    app = FastAPI(
        title="RAG Engine",
        version=settings.API_VERSION or "1.0",
        lifespan=_lifespan,
    )

    app.celery_app = create_celery()

    add_di_middleware(app)
    init_error_handlers(app)
    register_routers(app)

    return app


def add_di_middleware(app):
    app.add_middleware(InjectorMiddleware, injector=injector)
    # fastapi-injector closes the request-scoped AsyncSession on the way out
    options = RequestScopeOptions(enable_cleanup=True)
    attach_injector(app, injector, options)


# --------------------------------------------------------------------------- #
# Lifespan handler                                                            #
# --------------------------------------------------------------------------- #
@asynccontextmanager
async def _lifespan(app: FastAPI):
    logger.debug("Running lifespan startup tasks …")
    logger.info(f"Chunk store backend: {settings.VECTOR_STORE}")

    await session_manager.initialize()
    try:
        yield
    finally:
        await session_manager.close()
        logger.debug("Lifespan shutdown complete.")


def create_celery():
    """
    Create and configure the Celery application.
    """
    logger.debug("Creating new Celery app instance")
    logger.debug(f"Redis URL: {settings.REDIS_URL}")

    celery_app = Celery(
        "rag_engine_celery_tasks",
        broker=settings.REDIS_URL,
        backend=settings.REDIS_URL,
        include=[
            "rag_engine.tasks.embedding_tasks",
        ],
    )

    celery_app.conf.update(
        broker_url=settings.REDIS_URL,
        result_backend=settings.REDIS_URL,
        broker_transport_options={
            "visibility_timeout": 3600,  # 1 hour
        },
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_time_limit=3600,  # regenerating everything can take a while
        task_soft_time_limit=3300,
        worker_max_tasks_per_child=1000,
        worker_prefetch_multiplier=1,
        worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
        worker_task_log_format="[%(asctime)s: %(levelname)s/%(processName)s][%(task_name)s(%(task_id)s)] %(message)s",
    )

    return celery_app
