import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from app.core.logger import logger

class LogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        operator = "bearer" if request.headers.get("authorization") else "anonymous"
        line = (
            f"{request.method} {request.url.path} | "
            f"Status: {response.status_code} | "
            f"Caller: {operator} | "
            f"Duration: {elapsed:.4f}s"
        )
        if response.status_code >= 500:
            logger.error(line)
        elif response.status_code >= 400:
            logger.warning(line)
        else:
            logger.info(line)

        return response
