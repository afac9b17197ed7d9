"""Global exception handlers — map SDK exceptions to HTTP status codes.

The SDK raises one exception class per failure kind (see
``survey_engine.errors``).  Rather than catching these in every route, we
install one handler per class.  Route handlers stay on the happy path.

  SurveyValidationError -> 400
  SurveyNotFoundError   -> 404
  SurveyConflictError   -> 409
  GenerationError       -> 502  (includes ModelCallError)
  anything else         -> 500
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from survey_engine.errors import (
    GenerationError,
    SurveyConflictError,
    SurveyNotFoundError,
    SurveyValidationError,
)

logger = logging.getLogger(__name__)

# --- Client-safe messages keyed by HTTP status code ---
# Ids, tokens and raw model output stay in the server log.
_SAFE_MESSAGES: dict[int, str] = {
    404: "Resource not found",
    409: "Request conflicts with a concurrent update; retry",
    502: "The language model failed to produce a usable response; retry",
}


async def validation_error_handler(request: Request, exc: SurveyValidationError) -> JSONResponse:
    """Bad caller input → 400.

    The message describes the caller's own input, so it is returned as-is.
    """
    logger.info("Validation error at %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def not_found_handler(request: Request, exc: SurveyNotFoundError) -> JSONResponse:
    # Path may carry an admin token; log the message only.
    logger.info("Not found: %s", exc)
    return JSONResponse(status_code=404, content={"detail": _SAFE_MESSAGES[404]})


async def conflict_handler(request: Request, exc: SurveyConflictError) -> JSONResponse:
    logger.warning("Conflict: %s", exc)
    return JSONResponse(status_code=409, content={"detail": _SAFE_MESSAGES[409]})


async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    """Model failure → 502.  The raw model text is logged, never returned."""
    logger.error("Generation failed: %s", exc)
    if exc.raw:
        logger.debug("Raw model output: %s", exc.raw[:2000])
    return JSONResponse(status_code=502, content={"detail": _SAFE_MESSAGES[502]})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SurveyValidationError, validation_error_handler)
    app.add_exception_handler(SurveyNotFoundError, not_found_handler)
    app.add_exception_handler(SurveyConflictError, conflict_handler)
    app.add_exception_handler(GenerationError, generation_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)
