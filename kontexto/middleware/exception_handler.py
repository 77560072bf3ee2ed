"""Exception handlers for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..core.logging_config import request_id_var
from ..exceptions import ErrorCode, KontextoException

logger = logging.getLogger(__name__)

# Detail keys promoted to top-level log fields so one job or context can be
# followed across requests.
_CORRELATION_KEYS = ("job_id", "context_id", "resource_id")


async def kontexto_exception_handler(request: Request, exc: KontextoException) -> JSONResponse:
    """Return ``exc.to_dict()`` with its status.

    Refused requests (4xx) log at WARNING, store failures (5xx) at ERROR.
    """
    correlation = {key: exc.details[key] for key in _CORRELATION_KEYS if key in exc.details}
    logger.log(
        logging.WARNING if exc.status_code < 500 else logging.ERROR,
        "%s %s refused with %s: %s",
        request.method, request.url.path, exc.error_code.value, exc.message,
        extra={"error_code": exc.error_code.value, "status_code": exc.status_code, **correlation},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback and return an opaque 500 carrying only the request id."""
    request_id = request_id_var.get()
    logger.error(
        "Unhandled exception on %s %s", request.method, request.url.path,
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": ErrorCode.INTERNAL_ERROR.value,
            "message": "Internal server error",
            "details": {"request_id": request_id},
        },
        headers={"X-Request-ID": request_id},
    )
