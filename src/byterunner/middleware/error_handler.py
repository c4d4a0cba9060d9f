"""Global exception handlers: every error response is JSON with a ``detail``."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from byterunner.errors import ByteRunnerError

logger = structlog.get_logger()


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(ByteRunnerError)
    async def domain_exception_handler(request: Request, exc: ByteRunnerError) -> JSONResponse:
        """Render domain errors as ``{"detail": reason, "kind": kind}``."""
        logger.info(
            "request_rejected",
            path=request.url.path,
            kind=exc.kind,
            status_code=exc.status_code,
            reason=exc.reason,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.reason, "kind": exc.kind},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "kind": "validation_error", "errors": jsonable_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw ``ctx`` objects, which may not serialise."""
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
