"""Response envelopes and exception handlers.

Every response body is one of:
- {"data": ...}
- {"error": {"code": "E_...", "message": "...", "request_id": "..."}}

request_id is taken from the logging context, so it matches the
X-Request-ID header and the server-side log lines for the same request.
Handlers never put exception details from unexpected errors into a body.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursevault.errors import ApiError, ApiErrorCode
from coursevault.logging import get_logger, get_request_id

logger = get_logger(__name__)

HTTP_STATUS_TO_CODE: dict[int, ApiErrorCode] = {
    400: ApiErrorCode.E_INVALID_REQUEST,
    401: ApiErrorCode.E_UNAUTHENTICATED,
    403: ApiErrorCode.E_FORBIDDEN,
    404: ApiErrorCode.E_NOT_FOUND,
    405: ApiErrorCode.E_INVALID_REQUEST,
    422: ApiErrorCode.E_INVALID_REQUEST,
}


def success_response(data: Any) -> dict[str, Any]:
    return {"data": data}


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Build the error envelope. request_id defaults to the current request's."""
    error: dict[str, Any] = {"code": code.value, "message": message}
    request_id = request_id or get_request_id()
    if request_id:
        error["request_id"] = request_id
    return {"error": error}


def error_json(code: ApiErrorCode, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_response(code, message))


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("api_error", code=exc.code.value, status_code=exc.status_code)
    return error_json(exc.code, exc.message, exc.status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_STATUS_TO_CODE.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    return error_json(code, str(exc.detail) if exc.detail else "An error occurred", exc.status_code)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Body, path and query validation failures are all 400 E_INVALID_REQUEST."""
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    logger.info("request_validation_failed", fields=fields)
    return error_json(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body", 400)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error_type=type(exc).__name__)
    return error_json(ApiErrorCode.E_INTERNAL, "Internal server error", 500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
