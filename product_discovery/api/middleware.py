"""
Custom middleware for the FastAPI application
"""
import time
import logging
from uuid import uuid4
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a request id (taken from X-Request-ID when the
    caller sends one), logs method, path, status and latency, and returns
    both the id and the latency as response headers.

    The id is stored on request.state so pipeline logs of the same request
    carry it in their `request_id` extra.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id
        log_extra = {"request_id": request_id}

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.url.path} - ERROR: {str(e)} - "
                f"{time.time() - start_time:.3f}s",
                extra=log_extra
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s",
            extra=log_extra
        )
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
