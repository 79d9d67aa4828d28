"""Data models for the FastAPI service.

This package contains Pydantic models for request/response validation.
"""

from amelia_proxy.src.models.proxy import ProxyEnvelope, ProxyRequest, Transport

__all__ = ["ProxyEnvelope", "ProxyRequest", "Transport"]
