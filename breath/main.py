from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from breath.api.dependencies import shutdown_runtime
from breath.api.programs import router as programs_router
from breath.api.sessions import router as sessions_router
from breath.config.settings import settings
from breath.core.logger import setup_logger


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Stop any running session when the process shuts down."""
    logger.info("Breath trainer API starting")
    yield
    shutdown_runtime()
    logger.info("Breath trainer API stopped")


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    setup_logger(
        level=settings.log_level,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    application = FastAPI(
        title="Breath Trainer",
        description="Safety-gated breath-hold training sessions",
        lifespan=lifespan,
    )
    application.include_router(programs_router)
    application.include_router(sessions_router)

    @application.get("/health")
    def health():
        return {"status": "ok"}

    return application


app = create_app()
