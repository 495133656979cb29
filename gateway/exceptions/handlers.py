import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .custom import IngestionError, PaymentError

logger = logging.getLogger(__name__)


async def payment_error_handler(_request: Request, exc: PaymentError) -> JSONResponse:
    logger.error("Payment error: %s (status=%s)", exc.message, exc.status_code)
    content = {"error": exc.message}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


async def ingestion_error_handler(_request: Request, exc: IngestionError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Review ingestion error: %s (status=%s)", exc.message, exc.status_code)
    else:
        logger.warning("Review ingestion rejected: %s (status=%s)", exc.message, exc.status_code)
    content = {"success": False, "error": exc.message}
    if exc.content_preview is not None:
        content["contentPreview"] = exc.content_preview
    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning("Invalid request body: %s", exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": str(exc.errors())},
    )
