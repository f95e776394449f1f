# src/scorekeep/middleware/public_api.py

"""CORS and rate limit headers for the public scoring API."""

from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

PUBLIC_PREFIX = "/v1"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-API-Key",
}


class PublicApiMiddleware(BaseHTTPMiddleware):
    """Decorates responses under ``/v1`` for browser-based game clients.

    Answers CORS preflight requests with an empty 204 before routing.
    Adds the CORS headers to every public response, plus the rate limit
    headers that authentication left on ``request.state``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not request.url.path.startswith(PUBLIC_PREFIX):
            return await call_next(request)  # type: ignore[no-any-return]

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)

        response = await call_next(request)
        response.headers.update(CORS_HEADERS)

        rate_limit_headers = getattr(request.state, "rate_limit_headers", None)
        if rate_limit_headers:
            for name, value in rate_limit_headers.items():
                # 429 responses already carry their own values
                response.headers.setdefault(name, value)

        return response  # type: ignore[no-any-return]
