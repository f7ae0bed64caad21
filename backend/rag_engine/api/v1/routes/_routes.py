from fastapi import FastAPI

from rag_engine.api.v1.routes import router


def register_routers(app: FastAPI):
    app.include_router(router, prefix="/api")
