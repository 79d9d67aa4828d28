"""
Error taxonomy for the proxy endpoint.

Every failure that ends a proxy request is raised as a ``ProxyError``
subclass carrying the HTTP status and the envelope fields returned to the
caller. Upstream protocol mismatches (empty, HTML or non-JSON replies) and
upstream application errors are not exceptions: they are classification
outcomes built by the proxy service.
"""

from typing import Any, Dict, Optional

from fastapi import status


class ProxyError(Exception):
    """Base class for terminal proxy failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Proxy request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        hint: Optional[str] = None,
        error: Optional[str] = None,
    ):
        super().__init__(error or message or self.error)
        if error:
            self.error = error
        self.message = message
        self.hint = hint

    def to_envelope(self) -> Dict[str, Any]:
        """Render the caller-facing JSON envelope."""
        envelope: Dict[str, Any] = {"success": False, "error": self.error}
        if self.message is not None:
            envelope["message"] = self.message
        if self.hint is not None:
            envelope["hint"] = self.hint
        return envelope


class MethodNotAllowedError(ProxyError):
    """Inbound method is neither OPTIONS nor POST."""

    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    error = "Method not allowed"


class ValidationError(ProxyError):
    """Malformed inbound request; no upstream call is attempted."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid request"


class MissingFieldsError(ValidationError):
    error = "Missing required fields: baseUrl and apiKey"


class InvalidBodyError(ValidationError):
    error = "Invalid request body"


class InvalidBaseUrlError(ValidationError):
    error = "Invalid baseUrl format"

    def __init__(self, base_url: str):
        super().__init__(
            message=f"Could not build a valid URL from: {base_url!r}",
            hint="Use your WordPress site address, e.g. https://example.com",
        )
        self.base_url = base_url


class UpstreamUnreachableError(ProxyError):
    """DNS resolution, connection refused or another transport failure."""

    error = "Cannot reach site"


class UpstreamTimeoutError(ProxyError):
    """Upstream did not answer within the configured timeout."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    error = "Upstream request timed out"
