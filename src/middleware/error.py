from fastapi import Request
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse

from src.api.payments.exceptions import (
    PaymentError,
    PaymentNotFoundError,
    VerificationError,
)
from src.shared.utils import get_logger

logger = get_logger(__name__)


async def http_exception_handler(request: Request, exc: Exception):
    """Global exception handler for HTTP and payment errors."""
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )

    if isinstance(exc, PaymentNotFoundError):
        return JSONResponse(status_code=404, content={"error": exc.message})
    if isinstance(exc, VerificationError):
        return JSONResponse(status_code=502, content={"error": exc.message})
    if isinstance(exc, PaymentError):
        logger.error(f"Payment error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": exc.message})

    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
