"""Response envelopes and the exception handlers that render them.

Every JSON response body is one of:
- Success: {"data": ...}
- Error: {"error": {"code": "E_...", "message": "...", "request_id": "..."}}

Chat streams are the exception: they answer with text/event-stream once the
turn is accepted, but any rejection before that uses the error envelope.
"""

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blueberry.errors import ApiError, ApiErrorCode
from blueberry.logging import get_logger, get_request_id

logger = get_logger(__name__)

# Framework-raised HTTP errors (unknown route, wrong method) carry no code
HTTP_STATUS_TO_CODE: dict[int, ApiErrorCode] = {
    400: ApiErrorCode.E_INVALID_REQUEST,
    404: ApiErrorCode.E_NOT_FOUND,
    405: ApiErrorCode.E_INVALID_REQUEST,
    409: ApiErrorCode.E_HIGHLIGHT_CONFLICT,
    422: ApiErrorCode.E_INVALID_REQUEST,
}


def success_response(data: Any) -> dict[str, Any]:
    """Wrap a payload in the success envelope."""
    return {"data": data}


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Build the error envelope.

    The request id defaults to the one bound by RequestIDMiddleware and is
    omitted when there is none.
    """
    request_id = request_id or get_request_id()
    error: dict[str, Any] = {"code": code.value, "message": message}
    if request_id:
        error["request_id"] = request_id
    return {"error": error}


def _error_json(status_code: int, code: ApiErrorCode, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_response(code, message))


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return _error_json(exc.status_code, exc.code, exc.message)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = HTTP_STATUS_TO_CODE.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    return _error_json(exc.status_code, code, str(exc.detail or "Request failed"))


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Missing or mistyped fields are a 400, not FastAPI's default 422."""
    fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()]
    logger.info("request_validation_failed", fields=[f for f in fields if f])
    return _error_json(400, ApiErrorCode.E_INVALID_REQUEST, "Invalid request body")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and answer E_INTERNAL without exposing details."""
    logger.exception("unhandled_exception", error_type=type(exc).__name__)
    return _error_json(500, ApiErrorCode.E_INTERNAL, "Internal server error")
