"""Translation of service errors into HTTP error responses.

Every error leaves the API in the same shape:

    {"error": {"code": "NOT_FOUND", "message": "Document not found", "details": {...}}}
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.models.errors import ErrorCode, ServiceError

_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    422: ErrorCode.VALIDATION_ERROR,
}


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


def error_response(code: ErrorCode, message: str, status_code: int, details: dict[str, Any] | None = None) -> JSONResponse:
    error_detail = ErrorDetail(code=code.value, message=message, details=details or None)
    return JSONResponse(status_code=status_code, content={"error": error_detail.model_dump(exclude_none=True)})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers that render ServiceError, request validation and HTTP errors."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        logger = request.app.state.logging
        if exc.status_code >= 500:
            logger.error("%s %s failed: [%s] %s %s", request.method, request.url.path, exc.code.value, exc.message, exc.details)
        else:
            logger.info("%s %s rejected: [%s] %s", request.method, request.url.path, exc.code.value, exc.message)
        return error_response(exc.code, exc.message, exc.status_code, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in err.get("loc", [])), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return error_response(ErrorCode.VALIDATION_ERROR, "Invalid request", 400, {"errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _STATUS_CODES.get(exc.status_code, ErrorCode.UPSTREAM_ERROR)
        return error_response(code, str(exc.detail), exc.status_code)
