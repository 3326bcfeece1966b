"""
Application errors and the handlers that turn them into the
``{status: "error", message}`` envelope.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Domain failure carrying the HTTP status it maps to."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    content = {"status": "error", "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


# ==================== HANDLERS ====================

def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("AppError on %s: %s", request.url.path, exc.message)
        else:
            logger.info("AppError on %s: %s (%s)", request.url.path, exc.message, exc.status_code)
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        response = error_response(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Invalid request data",
            errors=[
                {
                    "field": ".".join(str(loc) for loc in e["loc"] if loc != "body"),
                    "message": e["msg"],
                }
                for e in exc.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
