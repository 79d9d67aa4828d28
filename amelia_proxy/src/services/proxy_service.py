"""
Proxy service forwarding browser requests to the Amelia API.

Provides:
- Inbound body parsing and validation
- Upstream URL construction for the ajax and REST transports
- A single outbound call per request (no retries)
- Classification of the upstream reply into the caller-facing envelope
"""

import json
import time
from typing import Dict, Optional, Tuple

import httpx
import structlog
from fastapi import status
from pydantic import ValidationError as PydanticValidationError

from amelia_proxy.src.config import Settings, get_settings
from amelia_proxy.src.models.proxy import ProxyEnvelope, ProxyRequest, Transport
from amelia_proxy.src.services.errors import (
    InvalidBodyError,
    MethodNotAllowedError,
    MissingFieldsError,
    ProxyError,
    UpstreamTimeoutError,
    UpstreamUnreachableError,
)
from amelia_proxy.src.services.url_builder import (
    build_call_path,
    build_upstream_url,
    normalize_base_url,
)
from shared.logging import mask_secret
from shared.metrics import ProxyMetrics

logger = structlog.get_logger(__name__)

BODY_METHODS = {"POST", "PUT", "PATCH"}

EMPTY_RESPONSE_ERROR = "Empty response from WordPress"
EMPTY_RESPONSE_HINT = "This usually means: invalid API key, API not enabled, or wrong endpoint"
HTML_RESPONSE_ERROR = "WordPress returned HTML instead of JSON"
HTML_RESPONSE_HINT = "Check that Amelia Pro/Elite is installed with API enabled"
INVALID_JSON_ERROR = "Invalid JSON response"
REQUEST_FAILED_ERROR = "Request failed"


def _reject_constant(token: str):
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {token}")


def _has_body(body) -> bool:
    """Truthiness as a browser client sees it: empty objects and arrays still count."""
    if isinstance(body, (dict, list)):
        return True
    return bool(body)


def classify_response(
    status_code: int,
    text: str,
    settings: Optional[Settings] = None,
) -> Tuple[int, ProxyEnvelope, str]:
    """
    Map an upstream reply onto the outgoing envelope.

    Checks run in order: empty or "0" body (WordPress' answer to an
    unhandled ajax action), HTML page, unparseable JSON, non-2xx status,
    success. Only the non-2xx case changes the outer status code.

    Args:
        status_code: Upstream HTTP status
        text: Full upstream body decoded as text
        settings: Settings holding the rawResponse truncation lengths

    Returns:
        Tuple of (outer status code, envelope, outcome label)
    """
    settings = settings or get_settings()
    trimmed = text.strip()

    if not trimmed or trimmed == "0":
        return status.HTTP_200_OK, ProxyEnvelope(
            success=False,
            error=EMPTY_RESPONSE_ERROR,
            hint=EMPTY_RESPONSE_HINT,
            raw_response=text,
        ), "empty_response"

    if trimmed.startswith("<!") or trimmed.lower().startswith("<html"):
        return status.HTTP_200_OK, ProxyEnvelope(
            success=False,
            error=HTML_RESPONSE_ERROR,
            hint=HTML_RESPONSE_HINT,
            raw_response=text[:settings.html_preview_length],
        ), "html_response"

    try:
        data = json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return status.HTTP_200_OK, ProxyEnvelope(
            success=False,
            error=INVALID_JSON_ERROR,
            raw_response=text[:settings.invalid_json_preview_length],
        ), "invalid_json"

    if not 200 <= status_code < 300:
        return status_code, ProxyEnvelope(
            success=False,
            error=REQUEST_FAILED_ERROR,
            status=status_code,
            data=data,
        ), "upstream_error"

    return status.HTTP_200_OK, ProxyEnvelope(success=True, data=data), "success"


class ProxyService:
    """Service handling one proxy round-trip per call."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        metrics: Optional[ProxyMetrics] = None,
    ):
        """
        Initialize proxy service.

        Args:
            settings: Application settings (cached settings if omitted)
            metrics: Metrics sink; upstream metrics are skipped if None
        """
        self.settings = settings or get_settings()
        self.metrics = metrics

    def parse_request(self, raw_body: bytes) -> ProxyRequest:
        """
        Parse and validate the inbound JSON body.

        An empty body is treated as an empty object so that the caller gets
        the missing-fields error rather than a parse error.

        Raises:
            InvalidBodyError: Body is not a JSON object or has mistyped fields
            MissingFieldsError: baseUrl or apiKey is missing or blank
        """
        if raw_body and raw_body.strip():
            try:
                payload = json.loads(raw_body, parse_constant=_reject_constant)
            except ValueError as e:
                raise InvalidBodyError(
                    message=f"Request body is not valid JSON: {e}",
                    error="Invalid JSON body",
                )
        else:
            payload = {}

        if not isinstance(payload, dict):
            raise InvalidBodyError(message="Request body must be a JSON object")

        try:
            request = ProxyRequest.model_validate(payload)
        except PydanticValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidBodyError(message=details)

        if not request.has_credentials:
            missing = [
                name for name, value in (("baseUrl", request.base_url), ("apiKey", request.api_key))
                if not value or not value.strip()
            ]
            raise MissingFieldsError(message=f"Missing: {', '.join(missing)}")

        return request

    def build_request(self, request: ProxyRequest) -> Tuple[Transport, str, Dict[str, str], Optional[bytes]]:
        """
        Turn a validated request into the outbound call description.

        Returns:
            Tuple of (transport, url, headers, content)
        """
        api_key = request.api_key.strip()
        base_url = normalize_base_url(request.base_url)
        call_path = build_call_path(
            request.call,
            prefix=self.settings.api_version_prefix,
            default=self.settings.default_call,
        )
        transport = request.transport or Transport(self.settings.transport)

        url = build_upstream_url(
            base_url,
            call_path,
            transport,
            self.settings,
            api_key=api_key,
            query_params=request.query_params,
        )

        headers: Dict[str, str] = {}
        if transport == Transport.AJAX:
            headers[self.settings.api_key_header] = api_key

        content = None
        if _has_body(request.body) and request.method in BODY_METHODS:
            headers["Content-Type"] = "application/json"
            content = json.dumps(request.body).encode("utf-8")

        logger.info(
            "upstream_request_prepared",
            base_url=base_url,
            call=call_path,
            method=request.method,
            transport=transport.value,
            api_key=mask_secret(api_key),
            has_body=content is not None,
        )
        return transport, url, headers, content

    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        content: Optional[bytes],
        transport: Transport,
    ) -> httpx.Response:
        """
        Perform the single outbound request.

        Raises:
            UpstreamTimeoutError: No answer within the configured timeout
            UpstreamUnreachableError: DNS, connection or other transport failure
        """
        start_time = time.time()
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.upstream_timeout,
                verify=self.settings.upstream_verify_ssl,
                follow_redirects=False,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    content=content,
                )
        except httpx.TimeoutException as e:
            self._record_upstream(transport, "timeout", time.time() - start_time)
            logger.warning("upstream_timeout", timeout=self.settings.upstream_timeout, error=str(e))
            raise UpstreamTimeoutError(
                message=str(e) or f"No response within {self.settings.upstream_timeout}s",
                hint="The site is slow or unreachable; try again or check the site status",
            ) from e
        except httpx.TransportError as e:
            self._record_upstream(transport, "unreachable", time.time() - start_time)
            logger.warning("upstream_unreachable", error=str(e), error_type=type(e).__name__)
            host = httpx.URL(url).host
            raise UpstreamUnreachableError(
                message=str(e) or type(e).__name__,
                hint=f"Check that {host} is online and the address is correct",
            ) from e

        duration = time.time() - start_time
        if self.metrics:
            self.metrics.upstream_request_duration.labels(transport=transport.value).observe(duration)

        logger.info(
            "upstream_response_received",
            status_code=response.status_code,
            duration=f"{duration:.3f}s",
            preview=response.text[:200],
        )
        return response

    async def handle(self, method: str, raw_body: bytes) -> Tuple[int, ProxyEnvelope]:
        """
        Run one proxy round-trip.

        Args:
            method: Inbound HTTP method
            raw_body: Inbound request body

        Returns:
            Tuple of (outer status code, envelope)

        Raises:
            ProxyError: Any terminal failure, already mapped to a status code
        """
        if method.upper() != "POST":
            raise MethodNotAllowedError()

        try:
            request = self.parse_request(raw_body)
            transport, url, headers, content = self.build_request(request)
            response = await self.send(request.method, url, headers, content, transport)

            status_code, envelope, outcome = classify_response(
                response.status_code, response.text, self.settings
            )
            self._record_upstream(transport, outcome)

            if not envelope.success:
                logger.warning(
                    "upstream_reply_rejected",
                    outcome=outcome,
                    upstream_status=response.status_code,
                    status_code=status_code,
                )
            return status_code, envelope

        except ProxyError:
            raise
        except Exception as e:
            logger.error("proxy_request_failed", error=str(e), exc_info=True)
            raise ProxyError(message=str(e)) from e

    def _record_upstream(self, transport: Transport, outcome: str, duration: Optional[float] = None) -> None:
        if not self.metrics:
            return
        self.metrics.upstream_requests.labels(transport=transport.value, outcome=outcome).inc()
        if duration is not None:
            self.metrics.upstream_request_duration.labels(transport=transport.value).observe(duration)
