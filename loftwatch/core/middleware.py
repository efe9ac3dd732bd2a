"""Request-scoped middleware: request IDs, access logging and request stats."""

import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

CallNext = Callable[[Request], Awaitable[Response]]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request with an ID, reusing the caller's when supplied."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        request.state.request_id = (
            request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        )
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Time each request, log it and feed the request statistics collector.

    The collector lives on ``app.state.monitoring`` and is only present once
    the lifespan has built the monitoring services.
    """

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            # Unhandled endpoint errors surface as a 500 further out.
            self._record(request, (time.perf_counter() - started) * 1000, 500)
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[PROCESS_TIME_HEADER] = f"{elapsed_ms:.2f}ms"
        self._record(request, elapsed_ms, response.status_code)

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "status_code": response.status_code,
                "process_time_ms": round(elapsed_ms, 2),
            },
        )
        return response

    @staticmethod
    def _record(request: Request, elapsed_ms: float, status_code: int) -> None:
        services = getattr(request.app.state, "monitoring", None)
        if services is not None:
            services.request_stats.record(elapsed_ms, status_code)
