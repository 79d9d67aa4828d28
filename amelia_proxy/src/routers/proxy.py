"""
Proxy router exposing the single forwarding endpoint.

The route accepts every method so that non-POST calls get the JSON 405
envelope instead of the framework's default response. OPTIONS never
reaches it: the CORS middleware answers preflight requests first.
"""

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from amelia_proxy.src.services.proxy_service import ProxyService

logger = structlog.get_logger(__name__)

ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


def get_proxy_service(request: Request) -> ProxyService:
    """Dependency returning the service built at application startup."""
    return request.app.state.proxy_service


async def proxy(
    request: Request,
    service: ProxyService = Depends(get_proxy_service),
) -> JSONResponse:
    """
    Forward a described call to the Amelia API and wrap the reply.

    **Request body:** `{baseUrl, apiKey, call|endpoint, method, body, queryParams|params, transport}`

    **Response:** `{success, data?, error?, message?, hint?, rawResponse?, status?}`
    """
    raw_body = await request.body()
    logger.info("proxy_request_received", method=request.method, body_size=len(raw_body))

    status_code, envelope = await service.handle(request.method, raw_body)
    return JSONResponse(status_code=status_code, content=envelope.to_content())


def create_proxy_router(path: str) -> APIRouter:
    """Build a router with the proxy endpoint mounted at ``path``."""
    router = APIRouter(tags=["Proxy"])
    router.add_api_route(
        path,
        proxy,
        methods=ROUTE_METHODS,
        response_class=JSONResponse,
        summary="Amelia API proxy",
    )
    return router
