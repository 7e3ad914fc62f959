import logging
import time

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("app.http")

_LOCALHOST_HOSTNAMES: set[str] = {"localhost", "127.0.0.1", "testserver"}


class EnforceHTTPSMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, enabled: bool = True, hsts_max_age: int = 31536000):
        super().__init__(app)
        self.enabled = enabled
        self.hsts_max_age = hsts_max_age

    async def dispatch(self, request: Request, call_next):
        if not self.enabled:
            return await call_next(request)
        proto = request.headers.get("x-forwarded-proto", request.url.scheme)
        allow_http_local = request.url.hostname in _LOCALHOST_HOSTNAMES
        if proto != "https" and not allow_http_local:
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": "HTTPS required"})
        response = await call_next(request)
        if proto == "https":
            response.headers["Strict-Transport-Security"] = f"max-age={self.hsts_max_age}; includeSubDomains"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s -> %d (%.0fms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response
