"""Request correlation ids for log records and traces."""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ridehail.core.correlation import with_correlation

HEADER = "X-Request-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, and echo it on the response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = request.headers.get(HEADER)
        if incoming and len(incoming) > 64:
            incoming = None
        with with_correlation(incoming) as correlation_id:
            response = await call_next(request)
        response.headers[HEADER] = correlation_id
        return response
