import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware

from .observability import correlation_context

CORRELATION_HEADER = "x-request-id"

logger = logging.getLogger("app.requests")


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        client_host = request.client.host if request.client else None
        ip = request.headers.get("x-forwarded-for", client_host)
        user_agent = request.headers.get("user-agent")
        started = time.monotonic()
        with correlation_context(request.headers.get(CORRELATION_HEADER)) as correlation_id:
            response = await call_next(request)
            logger.info(
                "%s %s -> %s in %.3fs | ip=%s | user_agent=%s",
                request.method,
                request.url.path,
                response.status_code,
                time.monotonic() - started,
                ip,
                user_agent,
            )
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
