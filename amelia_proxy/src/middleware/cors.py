"""
CORS middleware with fixed, permissive headers.

Unlike Starlette's CORSMiddleware, headers are attached to every response
whether or not the browser sent an Origin header, and every OPTIONS
request is answered directly with an empty 200.
"""

from typing import Dict

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from amelia_proxy.src.config import Settings


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add CORS headers and answer preflight requests."""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.headers: Dict[str, str] = settings.cors_headers

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_200_OK, headers=self.headers)

        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers[name] = value
        return response
