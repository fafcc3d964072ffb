"""
HTTP middleware components for request/response processing.
"""

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn unhandled exceptions into a 500 JSON response."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        try:
            return await call_next(request)

        except Exception as e:
            logger.exception(f"Unhandled error in {request.method} {request.url.path}: {e}")

            return JSONResponse(
                status_code=500,
                content={
                    "error": "internal_error",
                    "message": str(e) if request.app.debug else "An unexpected error occurred",
                    "details": {"request_id": getattr(request.state, "request_id", None)},
                }
            )


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and log its duration."""

    def __init__(self, app: Callable[..., Awaitable[None]], header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get(self.header_name) or uuid.uuid4().hex
        request.state.request_id = request_id

        start_time = time.time()
        with logger.contextualize(request_id=request_id):
            response = await call_next(request)
        duration = time.time() - start_time

        response.headers[self.header_name] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({duration:.3f}s)")
        return response
