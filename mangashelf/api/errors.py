import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from mangashelf.core.errors import EntitlementError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Every error body is {"success": false, "code": ..., "message": ...}."""

    @app.exception_handler(EntitlementError)
    async def entitlement_error_handler(request: Request, exc: EntitlementError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "code": exc.code, "message": exc.message},
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "code": "http_error", "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "code": "validation_error",
                "message": "Invalid request",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("storage_error", extra={"path": request.url.path, "method": request.method})
        return JSONResponse(
            status_code=500,
            content={"success": False, "code": "internal_error", "message": "Internal server error"},
        )
