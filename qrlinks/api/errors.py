"""
Exception Handlers

Maps service exceptions to HTTP responses. Every body uses FastAPI's
{"detail": ...} envelope; quota denials also carry the limit, the plan
and where to upgrade.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from qrlinks.core.exceptions import (
    AuthenticationError,
    DuplicateEmailError,
    FeatureGatedError,
    GenerationExhaustedError,
    InvalidInputError,
    LinkNotFoundError,
    QuotaExceededError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

UPGRADE_URL = "/pricing"

_STATUS_CODES = {
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    FeatureGatedError: status.HTTP_403_FORBIDDEN,
    LinkNotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateEmailError: status.HTTP_409_CONFLICT,
    GenerationExhaustedError: status.HTTP_503_SERVICE_UNAVAILABLE,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def quota_exceeded_handler(request: Request, exc: QuotaExceededError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "detail": str(exc),
            "limit": exc.limit,
            "plan": exc.plan,
            "upgrade_url": UPGRADE_URL,
        },
    )


async def service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = next(
        code for exc_type, code in _STATUS_CODES.items() if isinstance(exc, exc_type)
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")

    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content={"detail": str(exc)}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(QuotaExceededError, quota_exceeded_handler)
    for exc_type in _STATUS_CODES:
        app.add_exception_handler(exc_type, service_error_handler)
