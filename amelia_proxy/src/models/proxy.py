"""
Request and response schemas for the proxy endpoint.

The inbound body mirrors what the browser client sends (camelCase keys,
with ``call``/``endpoint`` and ``queryParams``/``params`` accepted as
synonyms). The outbound envelope has the same shape for every outcome.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Transport(str, Enum):
    """
    Upstream access pattern.

    - AJAX: WordPress admin-ajax bridge, API key in a header
    - REST: Amelia REST path, API key in the query string
    """
    AJAX = "ajax"
    REST = "rest"


class ProxyRequest(BaseModel):
    """Inbound proxy request body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    base_url: Optional[str] = Field(
        None,
        alias="baseUrl",
        description="WordPress site address, with or without scheme"
    )
    api_key: Optional[str] = Field(
        None,
        alias="apiKey",
        description="Amelia API key"
    )
    call: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("call", "endpoint"),
        description="Amelia call path, e.g. /api/v1/appointments"
    )
    method: str = Field(
        "GET",
        description="HTTP method used against the upstream"
    )
    body: Optional[Any] = Field(
        None,
        description="JSON body forwarded for POST, PUT and PATCH"
    )
    query_params: Optional[Dict[str, Any]] = Field(
        None,
        validation_alias=AliasChoices("queryParams", "params"),
        description="Extra query parameters appended to the upstream URL"
    )
    transport: Optional[Transport] = Field(
        None,
        description="Overrides the configured transport for this request"
    )

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "GET"
        if not isinstance(v, str):
            raise ValueError("method must be a string")
        return v.strip().upper()

    @field_validator("call", mode="before")
    @classmethod
    def blank_call_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def has_credentials(self) -> bool:
        """True when both baseUrl and apiKey are present and non-blank."""
        return bool(
            self.base_url and self.base_url.strip()
            and self.api_key and self.api_key.strip()
        )


class ProxyEnvelope(BaseModel):
    """
    Uniform response wrapper.

    Optional fields are omitted from the serialized JSON when unset, so
    callers only see keys relevant to the outcome.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None
    hint: Optional[str] = None
    raw_response: Optional[str] = Field(None, alias="rawResponse")
    status: Optional[int] = None

    def to_content(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, dropping unset fields."""
        content = self.model_dump(by_alias=True, exclude_none=True)
        # a parsed upstream reply may legitimately be JSON null
        if (self.success or self.status is not None) and "data" not in content:
            content["data"] = None
        return content
