"""
Request middleware: correlation ids, request timing and request timeouts.
"""
import time
import uuid
import asyncio
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from fastapi.responses import JSONResponse
from chartpilot.core.errors import ErrorKinds, get_error_response, status_for_kind
from chartpilot.core.logging import correlation_id_var
from chartpilot.core.performance import PerformanceMonitor

logger = logging.getLogger(__name__)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Attach a correlation id to every request, its log records and its response."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)

        start_time = time.perf_counter()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={"method": request.method, "path": request.url.path}
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path} - {e} ({duration:.3f}s)",
                extra={"method": request.method, "path": request.url.path, "duration": duration},
                exc_info=True
            )
            error_info = get_error_response(ErrorKinds.UNKNOWN_ERROR)
            error_info["correlation_id"] = correlation_id
            return JSONResponse(
                status_code=status_for_kind(ErrorKinds.UNKNOWN_ERROR),
                content=error_info,
                headers={"X-Correlation-ID": correlation_id},
            )
        else:
            duration = time.perf_counter() - start_time
            response.headers["X-Correlation-ID"] = correlation_id
            response.headers["X-Response-Time"] = f"{duration:.3f}"

            PerformanceMonitor.record_metric(
                "http_request",
                duration,
                {
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                }
            )
            logger.info(
                f"Request completed: {request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration": duration,
                }
            )
            return response
        finally:
            correlation_id_var.reset(token)


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that run longer than the configured limit."""

    def __init__(self, app, timeout_seconds: float):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            correlation_id = getattr(request.state, "correlation_id", "unknown")
            logger.error(f"Request timeout after {self.timeout_seconds} seconds: {request.url.path}")
            error_info = get_error_response(ErrorKinds.TIMEOUT)
            error_info["correlation_id"] = correlation_id
            return JSONResponse(
                status_code=status_for_kind(ErrorKinds.TIMEOUT),
                content=error_info,
                headers={"X-Correlation-ID": correlation_id},
            )
