"""FastAPI dependency injection — provides DB sessions and the SDK services.

Each request that touches the database gets a fresh ``AsyncSession`` via
``get_db()``.  The session is committed on success and rolled back on error,
matching the SDK convention where the orchestrator and repository call
``flush()`` but never ``commit()``.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.engine import get_session_factory
from survey_engine.orchestrator import SurveyOrchestrator
from survey_engine.presets import PresetService


# ------------------------------------------------------------------
# Database session: the transaction boundary
# ------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ------------------------------------------------------------------
# Services, stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_orchestrator(request: Request) -> SurveyOrchestrator:
    """Return the orchestrator singleton from ``app.state``."""
    return request.app.state.orchestrator


def get_presets(request: Request) -> PresetService:
    """Return the preset service singleton from ``app.state``."""
    return request.app.state.presets
