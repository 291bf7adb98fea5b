"""Response envelope builders and exception handlers."""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from customer_intel.api.security import InvalidRequestError
from customer_intel.errors import ErrorCode
from customer_intel.models.api import ApiResponse, ServiceResult
from customer_intel.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DUPLICATE_ERROR: status.HTTP_409_CONFLICT,
    ErrorCode.METHOD_NOT_ALLOWED: status.HTTP_405_METHOD_NOT_ALLOWED,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

BODY_FIELD_CODES: dict[str, str] = {
    "name": "INVALID_NAME",
    "company": "INVALID_COMPANY",
    "email": "INVALID_EMAIL",
    "subscriptionTier": "INVALID_TIER",
    "domains": "INVALID_DOMAINS_FORMAT",
    "healthScore": "INVALID_HEALTH_SCORE",
}

MISSING_FIELD_CODES: dict[str, str] = {
    "name": "MISSING_NAME",
    "company": "MISSING_COMPANY",
}


def success_response(
    data: Any,
    status_code: int = status.HTTP_200_OK,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Wrap ``data`` in a success envelope."""
    envelope = ApiResponse(success=True, data=data)
    return JSONResponse(
        content=envelope.model_dump(mode="json", exclude_none=True),
        status_code=status_code,
        headers=headers,
    )


def error_response(
    message: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    code: str = ErrorCode.VALIDATION_ERROR.value,
    field: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Wrap an error in a failure envelope."""
    envelope = ApiResponse(success=False, error=message, code=code, field=field)
    return JSONResponse(
        content=envelope.model_dump(mode="json", exclude_none=True),
        status_code=status_code,
        headers=headers,
    )


def result_error_response(result: ServiceResult) -> JSONResponse:
    """Translate a failed repository result into an HTTP error."""
    code = result.code or ErrorCode.INTERNAL_ERROR
    return error_response(
        result.error or "Request failed",
        status_code=STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        code=result.reason or code.value,
        field=result.field,
    )


def _describe_validation_error(error: dict[str, Any]) -> tuple[str, str, str | None]:
    """Return (message, code, field) for the first request validation error."""
    loc = tuple(error.get("loc", ()))
    error_type = error.get("type", "")
    msg = error.get("msg", "Invalid value")

    if error_type == "json_invalid":
        return "Invalid JSON in request body", "INVALID_JSON", None

    if loc and loc[0] == "body":
        if len(loc) == 1:
            return "Request body must be a valid JSON object", "INVALID_BODY", None
        field = str(loc[1])
        if error_type == "missing" and field in MISSING_FIELD_CODES:
            return f"{field} is required", MISSING_FIELD_CODES[field], field
        return f"{field}: {msg}", BODY_FIELD_CODES.get(field, "VALIDATION_ERROR"), field

    field = str(loc[-1]) if loc else None
    where = loc[0] if loc else "request"
    return f"Invalid {where} parameter '{field}': {msg}", "VALIDATION_ERROR", field


async def handle_invalid_request(request: Request, exc: InvalidRequestError) -> JSONResponse:
    return error_response(exc.message, exc.status_code, exc.code, exc.field)


async def handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message, code, field = _describe_validation_error(errors[0] if errors else {})
    logger.info(
        "request_rejected",
        path=request.url.path,
        code=code,
        field=field,
        error_count=len(errors),
    )
    return error_response(message, status.HTTP_400_BAD_REQUEST, code, field)


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        code = ErrorCode.NOT_FOUND.value
    elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        code = ErrorCode.METHOD_NOT_ALLOWED.value
    else:
        code = "HTTP_ERROR"
    return error_response(
        str(exc.detail),
        exc.status_code,
        code,
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_error",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=exc,
    )
    return error_response(
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR.value,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope-producing exception handlers on ``app``."""
    app.add_exception_handler(InvalidRequestError, handle_invalid_request)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected_error)
