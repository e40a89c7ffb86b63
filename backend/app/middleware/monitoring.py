"""
Request logging middleware: request ids, logging context and timing headers
"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.logger import clear_request_context, get_logger, set_request_context

logger = get_logger(__name__)


class MonitoringMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id, binds it to the logging context and logs
    start and completion
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Reuse an upstream id when a proxy already assigned one
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id)

        method = request.method
        path = request.url.path
        start_time = time.time()

        logger.info(
            "request_started",
            method=method,
            path=path,
            client_ip=request.client.host if request.client else "unknown"
        )

        response = None
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_exception",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__
            )
            raise
        finally:
            duration = time.time() - start_time
            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code if response else 500,
                duration=duration
            )
            clear_request_context()

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        return response
