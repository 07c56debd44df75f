"""Error Handlers: FastAPI exception handlers routed through the FaultTranslator.

Invariants:
    - HTTPException and RequestValidationError → {"message"} (inside the interceptor, encrypted)
    - Exception (catch-all) → last-resort {"message"} 500, outside the interceptor,
      used when the interceptor itself fails
    - Every handler logs the raw fault before responding
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from billing.core.errors import GatewayError
from billing.core.fault_translator import FaultTranslator

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI, translator: FaultTranslator) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_http_error_handler(app, translator)
    _register_validation_error_handler(app, translator)
    _register_last_resort_handler(app, translator)


def _register_http_error_handler(app: FastAPI, translator: FaultTranslator) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        fault = translator.handle(exc)
        logger.warning(
            f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}",
            extra={"path": request.url.path, "status_code": fault.code},
        )
        return JSONResponse(
            status_code=fault.code,
            content=fault.to_response(),
            headers=getattr(exc, "headers", None),
        )


def _register_validation_error_handler(app: FastAPI, translator: FaultTranslator) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        fault = translator.handle(exc)
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
            extra={"path": request.url.path, "status_code": fault.code},
        )
        return JSONResponse(status_code=fault.code, content=fault.to_response())


def _register_last_resort_handler(app: FastAPI, translator: FaultTranslator) -> None:

    @app.exception_handler(Exception)
    async def last_resort_handler(request: Request, exc: Exception):
        """Runs outside every middleware; the body leaves unencrypted."""
        fault = translator.handle(exc)
        extra = exc.to_log_extra() if isinstance(exc, GatewayError) else {}
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
            extra={**extra, "path": request.url.path, "status_code": fault.code},
        )
        return JSONResponse(status_code=fault.code, content=fault.to_response())
