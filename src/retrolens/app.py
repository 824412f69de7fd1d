"""FastAPI application factory."""

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from retrolens.api.routes import session
from retrolens.core.config import Settings, configure_logging
from retrolens.core.dependencies import build_generation_session

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown tasks:
    - Startup: Load settings, configure logging, create the generation session
    - Shutdown: Cancel in-flight batch and regeneration tasks
    """
    settings = Settings()  # type: ignore[call-arg]

    configure_logging(settings)

    generation_session = build_generation_session(settings)
    app.state.generation_session = generation_session

    logger.info(
        "application.startup",
        model=settings.gemini_model,
        batch_concurrency=settings.batch_concurrency,
        max_attempts=settings.max_attempts,
    )

    yield

    logger.info("application.shutdown")
    await generation_session.aclose()


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="Retrolens API",
        description="Era-styled portrait generation",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(session.router)  # Session router has prefix="/api/session" in definition

    @app.get("/health")
    async def health_check():
        """Liveness probe."""
        return {"status": "healthy"}

    return app


# Create app instance for uvicorn
app = create_app()


def serve() -> None:
    """Run the API with uvicorn on the configured HOST and PORT."""
    settings = Settings()  # type: ignore[call-arg]
    uvicorn.run(
        "retrolens.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
