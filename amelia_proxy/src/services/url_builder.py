"""
Pure helpers that turn a proxy request into an upstream URL.

Nothing here performs I/O. All functions are idempotent on their own
output, so normalizing an already normalized value is a no-op.
"""

import re
from typing import Any, Mapping, Optional
from urllib.parse import quote, urlsplit

from amelia_proxy.src.config import Settings
from amelia_proxy.src.models.proxy import Transport
from amelia_proxy.src.services.errors import InvalidBaseUrlError

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_HOST_RE = re.compile(r"^[\w.:%-]+$")

# A site address pasted together with the plugin endpoint, e.g.
# https://example.com/wp-admin/admin-ajax.php?action=wpamelia_api&call=...
_PLUGIN_SUFFIX_RE = re.compile(
    r"/(?:wp-admin/admin-ajax\.php|wp-json)(?:[/?#].*)?$",
    re.IGNORECASE,
)


def normalize_base_url(base_url: str) -> str:
    """
    Normalize a caller-supplied site address to ``scheme://host[/path]``.

    Trims whitespace, strips trailing slashes, defaults the scheme to
    https and drops an already-appended admin-ajax or wp-json segment.
    A WordPress install living in a sub-directory keeps its path.

    Args:
        base_url: Raw ``baseUrl`` value from the request

    Returns:
        Normalized base URL without a trailing slash

    Raises:
        InvalidBaseUrlError: If the result is not a well-formed http(s) URL
    """
    clean = base_url.strip().rstrip("/")
    if not _SCHEME_RE.match(clean):
        clean = "https://" + clean

    clean = _PLUGIN_SUFFIX_RE.sub("", clean).rstrip("/")

    try:
        parts = urlsplit(clean)
        hostname = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        raise InvalidBaseUrlError(base_url)

    if (
        parts.scheme.lower() not in ("http", "https")
        or not hostname
        or not _HOST_RE.match(hostname)
        or parts.netloc.endswith(":")
        or any(ch.isspace() for ch in clean)
        or parts.query
        or parts.fragment
    ):
        raise InvalidBaseUrlError(base_url)

    return clean


def build_call_path(
    call: Optional[str],
    prefix: str = "/api/v1",
    default: str = "/api/v1/entities",
) -> str:
    """
    Ensure an Amelia call path carries the API version prefix.

    ``appointments`` and ``/appointments`` both become
    ``/api/v1/appointments``; a missing call falls back to ``default``.
    """
    if not call or not call.strip():
        return default

    call = call.strip()
    if call.startswith(prefix):
        return call
    return f"{prefix}/{call.lstrip('/')}"


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_query_params(params: Optional[Mapping[str, Any]]) -> str:
    """Encode ``params`` as ``k=v&k=v`` with keys and values quoted independently."""
    if not params:
        return ""
    return "&".join(
        f"{quote(_stringify(key), safe='')}={quote(_stringify(value), safe='')}"
        for key, value in params.items()
    )


def build_upstream_url(
    base_url: str,
    call_path: str,
    transport: Transport,
    settings: Settings,
    api_key: Optional[str] = None,
    query_params: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Assemble the full upstream URL for the chosen transport.

    ajax: ``{base}/wp-admin/admin-ajax.php?action=wpamelia_api&call={call}``
    rest: ``{base}/wp-json/amelia/v1/{call without /api/v1}?ameliaApiKey={key}``

    Caller query parameters are appended to either form.

    Args:
        base_url: Output of ``normalize_base_url``
        call_path: Output of ``build_call_path``
        transport: Upstream access pattern
        settings: Application settings holding the fixed paths and names
        api_key: API key, embedded in the URL for the REST transport only
        query_params: Extra query parameters

    Returns:
        Fully qualified upstream URL
    """
    if transport == Transport.REST:
        route = call_path
        if route.startswith(settings.api_version_prefix):
            route = route[len(settings.api_version_prefix):]
        route = "/" + route.lstrip("/") if route.strip("/") else ""
        url = (
            f"{base_url}{settings.rest_prefix}{route}"
            f"?{quote(settings.rest_api_key_param, safe='')}={quote(api_key or '', safe='')}"
        )
    else:
        url = (
            f"{base_url}{settings.ajax_path}"
            f"?action={quote(settings.ajax_action, safe='')}"
            f"&call={quote(call_path, safe='')}"
        )

    extra = encode_query_params(query_params)
    if extra:
        url = f"{url}&{extra}"
    return url
