"""Exception handlers for FastAPI applications using neo-permissions.

Renders ``NeoPermissionsError`` as ``{"error": {code, message, details, type}}``
with the status from the HTTP mapping.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..core.exceptions import (
    NeoPermissionsError,
    PermissionResolutionError,
    create_error_response,
    get_http_status_code,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI, is_production: bool = True) -> None:
    """Register neo-permissions exception handlers on ``app``."""

    @app.exception_handler(NeoPermissionsError)
    async def neo_permissions_exception_handler(request: Request, exc: NeoPermissionsError):
        """Handle package exceptions."""
        status_code = get_http_status_code(exc)
        if isinstance(exc, PermissionResolutionError):
            logger.warning(f"{request.method} {request.url.path} denied: {exc.error_code} {exc.message}")
        return JSONResponse(status_code=status_code, content=create_error_response(exc))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        message = "An unexpected error occurred" if is_production else str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": message,
                    "details": {},
                    "type": type(exc).__name__,
                }
            },
        )
