"""Global exception handlers — map SDK exceptions to HTTP status codes.

The SDK raises ``ValueError`` for caller mistakes (unknown review session,
duplicate session, attempt out of range) and ``DataSourceError`` when the
portal backend fails.  Handlers installed once on the app pick the status
code, so route handlers stay on the happy path.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from suivi_engine.interfaces import DataSourceError, ResourceNotFound

logger = logging.getLogger(__name__)

# Keyword in a ValueError message -> HTTP status.  First match wins.
_VALUE_ERROR_PATTERNS: list[tuple[str, int]] = [
    ("already exists", 409),
    ("not found", 404),
    ("no open prompt", 409),
]

# Internal details (user ids, dossier ids) stay in the server log; the
# client receives one of these.
_SAFE_MESSAGES: dict[int, str] = {
    404: "Resource not found",
    409: "Conflict with the current state",
    400: "Invalid request",
}


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map SDK ``ValueError`` to 404, 409 or 400 based on its message."""
    msg = str(exc)
    status = 400
    for pattern, code in _VALUE_ERROR_PATTERNS:
        if pattern in msg.lower():
            status = code
            break

    logger.warning("ValueError [%d] at %s: %s", status, request.url, msg)
    return JSONResponse(
        status_code=status,
        content={"detail": _SAFE_MESSAGES.get(status, "Invalid request")},
    )


async def data_source_error_handler(request: Request, exc: DataSourceError) -> JSONResponse:
    """Backend failures become 502 with a notice the UI may dismiss.

    A 404 from the backend that reached this point (i.e. was not already
    handled as an empty result) is reported as 404.
    """
    if isinstance(exc, ResourceNotFound):
        logger.warning("Backend resource missing at %s: %s", request.url, exc)
        return JSONResponse(status_code=404, content={"detail": "Resource not found"})

    logger.error("Backend error at %s: %s", request.url, exc)
    return JSONResponse(
        status_code=502,
        content={
            "detail": "Backend unavailable",
            "notice": {
                "level": "error",
                "message": "Les données n'ont pas pu être chargées depuis le serveur.",
                "dismissible": True,
            },
        },
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
