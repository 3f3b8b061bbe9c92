from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from core.config import settings
from core.errors import AppError, AuthError, ErrorCode, ERROR_HTTP_STATUS
from utils.logging_config import REQUEST_ID_HEADER, get_request_id
import logging

logger = logging.getLogger("daily_diet.errors")

_STATUS_TO_CODE = {status: code for code, status in ERROR_HTTP_STATUS.items()}


def error_response(request: Request, status_code: int, code: str, message: str, details=None) -> JSONResponse:
    request_id = get_request_id(request)
    payload = {"error": {"code": code, "message": message, "request_id": request_id}}
    if details:
        payload["error"]["details"] = details
    response = JSONResponse(status_code=status_code, content=payload)
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, AuthError):
            # the reason is for operators only; the client gets the generic message
            logger.warning(f"Authentication failed at {request.method} {request.url.path}: {exc.reason}")
        elif exc.status_code >= 500:
            logger.error(f"{exc.code.value} at {request.method} {request.url.path}: {exc.message}")
        else:
            logger.warning(f"{exc.code.value} at {request.method} {request.url.path}: {exc.message}")
        return error_response(request, exc.status_code, exc.code.value, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = []
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
            details.append({
                "field": ".".join(loc),
                "message": error.get("msg", "Invalid value"),
                "code": error.get("type", "invalid"),
            })
        logger.warning(f"Validation failed at {request.method} {request.url.path}: {details}")
        return error_response(request, 400, ErrorCode.VALIDATION_ERROR.value, "Validation failed", details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            message = f"Route {request.method} {request.url.path} not found"
        else:
            message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        code = _STATUS_TO_CODE.get(exc.status_code, ErrorCode.VALIDATION_ERROR if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR)
        return error_response(request, exc.status_code, code.value, message)

    # Global exception handler to ensure 500s for unexpected errors
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error at {request.url.path}: {exc}", exc_info=exc)
        message = str(exc) if settings.DEBUG else "An unexpected error occurred"
        return error_response(request, 500, ErrorCode.INTERNAL_ERROR.value, message)
