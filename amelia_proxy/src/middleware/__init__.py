"""FastAPI middleware components.

This package contains custom middleware for CORS headers, request
logging, correlation IDs and request metrics.
"""

from amelia_proxy.src.middleware.cors import CORSHeadersMiddleware
from amelia_proxy.src.middleware.logging import RequestLoggingMiddleware

__all__ = [
    "CORSHeadersMiddleware",
    "RequestLoggingMiddleware",
]
