"""
Logging Middleware
Logs all HTTP requests and responses
"""

import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from src.services.audit_service import RequestContext
from src.utils.helpers import get_client_ip
from src.utils.logger import setup_logger

logger = setup_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses"""

    async def dispatch(self, request: Request, call_next):
        """Process request and log details"""
        start_time = time.time()

        client_ip = get_client_ip(request)
        request.state.ip_address = client_ip
        request.state.user_agent = request.headers.get("User-Agent")

        logger.info(
            f"Request: {request.method} {request.url.path} | "
            f"Client: {client_ip}"
        )

        try:
            response = await call_next(request)

            duration = time.time() - start_time
            logger.info(
                f"Response: {request.method} {request.url.path} | "
                f"Status: {response.status_code} | "
                f"Duration: {duration:.3f}s"
            )

            return response

        except Exception:
            duration = time.time() - start_time
            logger.exception(
                f"Error: {request.method} {request.url.path} | "
                f"Duration: {duration:.3f}s"
            )
            raise


def request_context(request: Request) -> RequestContext:
    """Client details for audit entries, as captured by LoggingMiddleware"""
    return RequestContext(
        ip_address=getattr(request.state, "ip_address", None) or get_client_ip(request),
        user_agent=getattr(request.state, "user_agent", None) or request.headers.get("User-Agent")
    )
