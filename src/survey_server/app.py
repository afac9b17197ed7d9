"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that builds the model client, notifier and SDK services once
  - CORS middleware
  - Global exception handlers (SDK exceptions → 400/404/409/502)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``survey-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from survey_db.engine import dispose_engine, get_engine
from survey_engine.controller import InFlightGuard
from survey_engine.llm import OpenRouterGenerator
from survey_engine.notifier import SmtpNotifier
from survey_engine.orchestrator import SurveyOrchestrator
from survey_engine.presets import PresetService
from survey_engine.prompt import PromptManager

from survey_server.config import ServerSettings, load_settings
from survey_server.errors import register_exception_handlers
from survey_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan: runs once at startup and shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Build the OpenRouter client and the SMTP notifier
      2. Build ``SurveyOrchestrator`` and ``PresetService`` sharing one
         prompt manager and one in-flight guard
      3. Stash them on ``app.state`` for dependency injection

    Shutdown:
      1. Close the model client
      2. Dispose the database engine's connection pool
    """
    settings: ServerSettings = app.state.settings

    if not settings.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY is not set; every model call will fail")
    generator = OpenRouterGenerator(
        settings.openrouter_api_key,
        model=settings.openrouter_model,
        base_url=settings.openrouter_base_url,
        site_url=settings.site_url,
        app_title=settings.app_title,
        timeout=settings.model_timeout_seconds,
    )
    prompts = PromptManager()
    notifier = SmtpNotifier.from_env(prompts)
    if not notifier.settings.enabled:
        logger.info("SMTP_HOST not set; completion e-mails are disabled")

    app.state.orchestrator = SurveyOrchestrator(
        generator, prompts=prompts, notifier=notifier, guard=InFlightGuard(),
    )
    app.state.presets = PresetService(generator, prompts=prompts)
    logger.info("Survey services ready (model=%s)", settings.openrouter_model)

    yield

    # --- Shutdown ---
    await generator.aclose()
    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Adaptive Survey API Server",
        description="REST API for the adaptive AI survey engine",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings so the lifespan handler can read them
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies DB connectivity."""
        try:
            engine = get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": "database unavailable"}

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn survey_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``survey-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "survey_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
