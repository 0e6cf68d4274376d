"""
FastAPI application for the invoice extraction service.

``app`` is the ASGI entry point (``uvicorn src.api.main:app``); tests build
their own instance through ``create_app()`` when they need one.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from src.api.middleware.error_handler import setup_exception_handlers
from src.api.routes import health_router, invoices_router
from src.config import Settings, configure_logging, get_logger, get_settings

logger = get_logger(__name__)


async def _startup(settings: Settings) -> None:
    """Bring the schema up to date and open the pool and upload directory."""
    from src.application.services import get_file_storage
    from src.infrastructure.storage.sqlite import get_pool
    from src.infrastructure.storage.sqlite.migrations import run_migrations

    try:
        results = await run_migrations()
        await get_pool()
    except Exception as e:
        logger.error("database_init_failed", error=str(e))
        raise

    storage = get_file_storage()
    logger.info(
        "storage_ready",
        db_path=str(settings.storage.db_path),
        migrations_applied=len(results),
        upload_dir=str(storage.base_dir),
    )


async def _shutdown() -> None:
    """Release the pool and provider HTTP clients; failures are only logged."""
    from src.infrastructure.llm import close_vision_providers
    from src.infrastructure.storage.sqlite import close_pool

    for name, close in (("sqlite_pool", close_pool), ("llm_clients", close_vision_providers)):
        try:
            await close()
        except Exception as e:
            logger.warning("shutdown_step_failed", step=name, error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging()
    logger.info(
        "application_starting",
        environment=settings.environment,
        llm_provider=settings.llm.provider,
        max_concurrency=settings.processing.max_concurrency,
    )

    await _startup(settings)
    logger.info("application_started")

    yield

    logger.info("application_stopping")
    await _shutdown()
    logger.info("application_stopped")


def create_app() -> FastAPI:
    """Build the application with middleware, error handlers and routes."""
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Invoice extraction, validation and duplicate detection",
        version=settings.app_version,
        docs_url="/docs" if settings.api.debug else None,
        redoc_url="/redoc" if settings.api.debug else None,
        lifespan=lifespan,
    )

    # Last added runs first: request ids are bound before errors are rendered
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)
    if settings.api.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.api.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    setup_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(invoices_router)

    @app.get("/health", include_in_schema=False)
    async def root_health() -> dict[str, str]:
        return {"status": "healthy", "version": settings.app_version}

    return app


app = create_app()


def run() -> None:
    """``billing-api``: serve the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.api.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.debug,
    )


if __name__ == "__main__":
    run()
