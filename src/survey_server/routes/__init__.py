"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from survey_server.routes.admin import router as admin_router
from survey_server.routes.analyses import router as analyses_router
from survey_server.routes.answers import router as answers_router
from survey_server.routes.presets import router as presets_router
from survey_server.routes.questions import router as questions_router
from survey_server.routes.reports import router as reports_router
from survey_server.routes.sessions import router as sessions_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(sessions_router, prefix=API_PREFIX)
    app.include_router(questions_router, prefix=API_PREFIX)
    app.include_router(answers_router, prefix=API_PREFIX)
    app.include_router(analyses_router, prefix=API_PREFIX)
    app.include_router(reports_router, prefix=API_PREFIX)
    app.include_router(presets_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)
