"""Global error handlers.

Every error leaves the API as {"success": false, "error": {"code", "message"}}.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnloop.exceptions import LearnloopError

logger = structlog.get_logger()

# Status codes raised as plain HTTPException (auth dependency, routing).
HTTP_ERROR_CODES = {
    401: "AUTH_001",
    403: "AUTH_002",
    404: "NOT_001",
    405: "SYS_003",
}


def error_body(code: str, message: str, details: object = None) -> dict:
    error: dict = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}


def setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(LearnloopError)
    async def domain_exception_handler(request: Request, exc: LearnloopError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("domain_error", code=exc.code, path=request.url.path, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = HTTP_ERROR_CODES.get(exc.status_code, "SYS_001")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=error_body("VAL_001", "Validation error", jsonable_errors(exc)),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; always JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content=error_body("SYS_001", "Internal server error"))


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")} for err in exc.errors()]
