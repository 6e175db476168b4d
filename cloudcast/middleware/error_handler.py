"""
Global Error Handler Middleware.

Domain errors map to their HTTP status with the error code and a safe
message. Anything else becomes a generic 500.
NEVER leaks stack traces or internal details to clients.
Every error gets a unique error_id for correlation with server logs.
"""

import traceback
import uuid

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from cloudcast.config import settings
from cloudcast.exceptions import (
    CloudcastError,
    DataNotFoundError,
    DegenerateInputError,
    InvalidAlertTransitionError,
)

logger = structlog.get_logger(__name__)

DOMAIN_STATUS: list[tuple[type[CloudcastError], int]] = [
    (DataNotFoundError, 404),
    (InvalidAlertTransitionError, 409),
    (DegenerateInputError, 422),
]


def status_for(exc: CloudcastError) -> int:
    for error_type, status_code in DOMAIN_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Catches everything raised by the routes beneath it.

    Returns structured error responses:
    {
      "error": "human-readable message",
      "error_id": "uuid for log correlation",
      "status": 404,
      "error_code": "E2000"     # domain errors only
    }
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)

        except CloudcastError as exc:
            error_id = str(uuid.uuid4())
            status_code = status_for(exc)
            logger.warning(
                "domain_error",
                error_id=error_id,
                path=request.url.path,
                method=request.method,
                status=status_code,
                **exc.to_dict(),
            )
            return JSONResponse(
                status_code=status_code,
                content={
                    "error": exc.message,
                    "error_id": error_id,
                    "status": status_code,
                    "error_code": exc.error_code.value,
                },
            )

        except Exception as exc:
            error_id = str(uuid.uuid4())
            logger.error(
                "unhandled_exception",
                error_id=error_id,
                path=request.url.path,
                method=request.method,
                error=str(exc),
                traceback=traceback.format_exc(),
            )

            body: dict = {
                "error": "An internal error occurred. Please try again later.",
                "error_id": error_id,
                "status": 500,
            }
            if settings.debug:
                body["debug_hint"] = type(exc).__name__

            return JSONResponse(status_code=500, content=body)
