# audience_hub/logging/exception_handlers.py

import logging
import traceback

from fastapi import Request
from fastapi.responses import JSONResponse

from audience_hub.core.config import get_settings
from audience_hub.query.errors import (
    AudienceQueryError,
    ConfigurationError,
    ExecutionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    ConfigurationError: 400,
    ValidationError: 422,
    ExecutionError: 502,
}


def status_code_for(exc: AudienceQueryError) -> int:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def audience_query_exception_handler(request: Request, exc: AudienceQueryError):
    """Convert compiler and warehouse errors into JSON error responses."""
    status_code = status_code_for(exc)
    content = {"detail": str(exc), "type": type(exc).__name__}
    if isinstance(exc, ExecutionError):
        content["mode"] = exc.mode
        logger.error(
            "%s %s failed in warehouse (%s): %s",
            request.method,
            request.url.path,
            get_settings().application_id,
            exc,
        )
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=content)


async def general_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions with their traceback and hide details from the client."""
    error_traceback = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error("Unhandled error on %s %s: %s\n%s", request.method, request.url.path, exc, error_traceback)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"},
    )
