from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.v1 import fault_studies
from app.core.logging import RequestLoggingMiddleware, setup_logging
from app.services.result_store import InMemoryResultStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    yield
    app.state.result_store.clear()


def create_app() -> FastAPI:
    setup_logging(json_format=settings.log_json)

    application = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.result_store = InMemoryResultStore(max_results=settings.max_stored_results)

    application.add_middleware(RequestLoggingMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(
        fault_studies.router, prefix="/api/v1/fault-studies", tags=["fault-studies"]
    )
    application.include_router(
        fault_studies.standards_router, prefix="/api/v1/standards", tags=["standards"]
    )

    @application.get("/health")
    async def health_check() -> dict:
        return {
            "status": "ok",
            "environment": settings.environment,
            "stored_studies": len(application.state.result_store),
        }

    return application


app = create_app()
