"""
API routers and exception handlers for the Darna authentication service.
"""
import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from ..core.errors import AuthError, AuthErrorType, error_detail
from . import auth, two_factor

logger = logging.getLogger(__name__)


def build_router(prefix: str = "/api/auth") -> APIRouter:
    """Assemble the auth routes under ``prefix``."""
    router = APIRouter(prefix=prefix)
    router.include_router(auth.router)
    router.include_router(two_factor.two_factor_router)
    return router


def _error_body(error_type: AuthErrorType, message: str = None) -> dict:
    detail = error_detail(error_type, message)
    return {"success": False, "message": detail["message"], "error": detail}


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(p) for p in e.get("loc", ())[1:]) for e in exc.errors()} - {""})
    message = f"Invalid or missing fields: {', '.join(fields)}" if fields else "Invalid request body"
    return JSONResponse(status_code=400, content=_error_body(AuthErrorType.REQUIRED_FIELDS_MISSING, message))


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": message,
            "error": {"type": "HTTP_ERROR", "message": message, "statusCode": exc.status_code},
        },
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=_error_body(AuthErrorType.INTERNAL_ERROR))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


__all__ = ["build_router", "register_exception_handlers"]
