import logging
import logging.handlers
import contextvars
import time
import uuid
from pathlib import Path
from typing import Optional

from core.config import settings
from core.security import verify_token
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

REQUEST_ID_HEADER = "X-Request-Id"

access_logger = logging.getLogger("daily_diet.access")


def _ensure_log_dir(directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)


def map_log_level(level_name: str) -> int:
    level = getattr(logging, (level_name or "INFO").upper(), None)
    return level if isinstance(level, int) else logging.INFO


request_id_var = contextvars.ContextVar("request_id", default="-")
user_id_var = contextvars.ContextVar("user_id", default="-")
api_var = contextvars.ContextVar("api", default="-")


def get_request_id(request: Optional[Request] = None) -> Optional[str]:
    if request is not None:
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            return request_id
    request_id = request_id_var.get()
    return None if request_id == "-" else request_id


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # Inject per-request context variables
        record.request_id = request_id_var.get()
        record.user_id = user_id_var.get()
        record.api = api_var.get()
        return True


def _build_rotating_file_handler(filename: str, level: int, formatter: logging.Formatter, log_dir: Path) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(log_dir / filename),
        when="midnight",
        interval=1,
        backupCount=max(int(settings.LOG_TTL_DAYS), 0),
        encoding="utf-8",
        utc=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    return handler


def _build_handlers(level: int, log_dir: Optional[Path]) -> dict[str, logging.Handler]:
    formatter = logging.Formatter(
        fmt="%(levelname)s - %(asctime)s - %(request_id)s - %(user_id)s - %(api)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextFilter())

    handlers = {"console": console_handler}
    if log_dir is not None:
        handlers["app"] = _build_rotating_file_handler("app.log", level, formatter, log_dir)
        handlers["access"] = _build_rotating_file_handler("access.log", level, formatter, log_dir)
        handlers["error"] = _build_rotating_file_handler("error.log", logging.WARNING, formatter, log_dir)
    return handlers


def _reset_handlers(target_logger: logging.Logger, handlers: list[logging.Handler], level: int) -> None:
    for h in list(target_logger.handlers):
        target_logger.removeHandler(h)
    for h in handlers:
        target_logger.addHandler(h)
    target_logger.setLevel(level)


def configure_logging(app_logger_name: Optional[str] = None) -> logging.Logger:
    """Configure logging with daily rotation and TTL-based retention.

    - Rotates at midnight; keeps last LOG_TTL_DAYS files
    - File handlers are skipped when LOG_TO_FILE is off (tests, containers)
    - Applies handlers to root, app, access and Uvicorn loggers
    """
    log_dir = None
    if settings.LOG_TO_FILE:
        log_dir = Path(settings.LOG_DIR)
        _ensure_log_dir(log_dir)

    level = map_log_level(settings.LOG_LEVEL)
    handlers = _build_handlers(level, log_dir)
    app_handlers = [handlers[name] for name in ("app", "error", "console") if name in handlers]
    access_handlers = [handlers[name] for name in ("access", "console") if name in handlers]

    root_logger = logging.getLogger()
    _reset_handlers(root_logger, app_handlers, level)

    app_name = app_logger_name or "daily_diet"
    app_logger = logging.getLogger(app_name)
    app_logger.propagate = False
    _reset_handlers(app_logger, app_handlers, level)

    for name in ("uvicorn", "uvicorn.error", "fastapi"):
        lgr = logging.getLogger(name)
        lgr.propagate = False
        _reset_handlers(lgr, app_handlers, level)
    # request lines -> access + console
    for name in ("uvicorn.access", "daily_diet.access"):
        lgr = logging.getLogger(name)
        lgr.propagate = False
        _reset_handlers(lgr, access_handlers, level)

    return app_logger


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and puts request context on log records.

    An incoming X-Request-Id is reused, otherwise a fresh one is generated;
    it is echoed back on the response either way.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        user_id = "-"
        auth_header = request.headers.get("authorization")
        if auth_header and auth_header.startswith("Bearer "):
            payload = verify_token(auth_header.split(" ", 1)[1])
            if payload:
                user_id = payload.get("sub") or "-"

        token_request = request_id_var.set(request_id)
        token_user = user_id_var.set(user_id)
        token_api = api_var.set(f"{request.method} {request.url.path}")
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            elapsed_ms = (time.perf_counter() - started) * 1000
            access_logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
            return response
        finally:
            request_id_var.reset(token_request)
            user_id_var.reset(token_user)
            api_var.reset(token_api)
