"""
Request logging middleware
请求日志中间件 - 记录每个请求的方法、路径、状态码与耗时
"""

import time
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request/response logging with timing"""

    def __init__(self, app, excluded_paths=None):
        super().__init__(app)
        self.excluded_paths = set(excluded_paths or {"/health", "/api/v1/health"})

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        start_time = time.time()
        client_ip = get_client_ip(request)

        logger.info(f"Request: {request.method} {request.url.path} from {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"Request error: {request.method} {request.url.path} "
                f"from {client_ip} in {process_time:.3f}s - {str(e)}"
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        logger.info(
            f"Response: {response.status_code} "
            f"for {request.method} {request.url.path} "
            f"in {process_time:.3f}s"
        )

        if response.status_code == 401:
            logger.warning(f"Unauthorized access attempt: {client_ip} on {request.url.path}")
        elif response.status_code == 409:
            logger.info(f"Conflict on {request.url.path}: concurrent update lost")
        elif response.status_code >= 400:
            logger.warning(f"Client error {response.status_code}: {client_ip} on {request.url.path}")

        return response


def get_client_ip(request: Request) -> str:
    """Get client IP address from request"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"
