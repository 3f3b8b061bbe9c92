import logging
import math
import time
from typing import Callable, Dict, Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from core.errors import AppError
from utils.logging_config import REQUEST_ID_HEADER, get_request_id
from fastapi.responses import JSONResponse

logger = logging.getLogger("daily_diet.rate_limit")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window request counter per client IP.

    Counters live in process memory, so each worker process enforces its
    own limit.
    """

    def __init__(
        self,
        app,
        max_requests: int,
        window_seconds: int,
        exempt_paths: Iterable[str] = (),
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.exempt_paths = frozenset(exempt_paths)
        self.clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}

    def _client_key(self, request: Request) -> str:
        return request.client.host if request.client else "unknown"

    def _prune(self, now: float) -> None:
        expired = [key for key, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for key in expired:
            del self._windows[key]

    def hit(self, key: str) -> Tuple[bool, int, int]:
        """Count one request for ``key``.

        Returns whether it is allowed, how many requests are left in the
        window and the seconds until the window resets.
        """
        now = self.clock()
        start, count = self._windows.get(key, (now, 0))
        if now - start >= self.window_seconds:
            self._prune(now)
            start, count = now, 0
        reset = max(1, math.ceil(start + self.window_seconds - now))
        if count >= self.max_requests:
            return False, 0, reset
        count += 1
        self._windows[key] = (start, count)
        return True, self.max_requests - count, reset

    def _rate_limit_headers(self, remaining: int, reset: int) -> Dict[str, str]:
        return {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(reset),
        }

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        key = self._client_key(request)
        allowed, remaining, reset = self.hit(key)
        if allowed:
            response = await call_next(request)
            response.headers.update(self._rate_limit_headers(remaining, reset))
            return response

        logger.warning(f"Rate limit exceeded for {key} at {request.method} {request.url.path}")
        error = AppError.rate_limited()
        request_id = get_request_id(request)
        headers = self._rate_limit_headers(remaining, reset)
        headers["Retry-After"] = str(reset)
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id
        return JSONResponse(
            status_code=error.status_code,
            content={"error": {"code": error.code.value, "message": error.message, "request_id": request_id}},
            headers=headers,
        )
