"""Global exception handlers — map SDK errors to HTTP status codes.

Every SDK failure is an ``AssessmentError`` with a ``reason`` tag, so the
status code is a table lookup rather than message inspection.  Client
errors echo the SDK message; server-side failures return a generic
message and keep the detail in the log.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from trias_assessment.errors import AssessmentError, ErrorReason

logger = logging.getLogger(__name__)

REASON_STATUS: dict[ErrorReason, int] = {
    ErrorReason.NOT_AUTHENTICATED: 401,
    ErrorReason.UNKNOWN_QUESTION: 404,
    ErrorReason.CATALOG_NOT_LOADED: 409,
    ErrorReason.INVALID_STATE: 409,
    ErrorReason.QUESTION_NOT_CURRENT: 409,
    ErrorReason.OPTION_OUT_OF_RANGE: 422,
    ErrorReason.UNSUPPORTED_LANGUAGE: 422,
    ErrorReason.CATALOG_INVALID: 502,
    ErrorReason.REMOTE_FAILURE: 502,
    ErrorReason.MALFORMED_RECORD: 502,
    ErrorReason.CACHE_FAILURE: 500,
}

# Client-safe messages for server-side failures
_SAFE_MESSAGES: dict[int, str] = {
    500: "Internal server error",
    502: "Remote store unavailable",
}


async def assessment_error_handler(request: Request, exc: AssessmentError) -> JSONResponse:
    """Map an ``AssessmentError`` to its status code via :data:`REASON_STATUS`."""
    status = REASON_STATUS.get(exc.reason, 400)
    if status >= 500:
        logger.error("%s [%d] at %s: %s", exc.reason.value, status, request.url, exc.message)
        detail = _SAFE_MESSAGES.get(status, "Internal server error")
    else:
        logger.warning("%s [%d] at %s: %s", exc.reason.value, status, request.url, exc.message)
        detail = exc.message
    return JSONResponse(
        status_code=status,
        content={"detail": detail, "reason": exc.reason.value},
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
