"""
FastAPI application configuration using Pydantic Settings.

Provides centralized configuration for:
- API settings (bind address, proxy endpoint path)
- Upstream transport (admin-ajax bridge or REST path, timeouts)
- CORS headers sent on every response
- Response classification limits
- Logging and monitoring

All settings support environment variable overrides and .env file loading.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables with the
    prefix "AMELIA_PROXY_" (e.g., AMELIA_PROXY_TRANSPORT=rest).

    Environment variables are loaded from:
    1. System environment
    2. .env file in the current directory
    3. Default values defined below
    """

    # =========================================================================
    # API Settings
    # =========================================================================

    app_name: str = Field(
        default="Amelia API Proxy",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="API version"
    )
    proxy_path: str = Field(
        default="/api/amelia-proxy",
        description="Path of the proxy endpoint"
    )

    debug: bool = Field(
        default=False,
        description="Debug mode - enables verbose logging and auto-reload"
    )
    environment: str = Field(
        default="production",
        description="Environment: development|staging|production"
    )

    host: str = Field(
        default="0.0.0.0",
        description="API bind host"
    )
    port: int = Field(
        default=8000,
        description="API bind port",
        gt=0,
        lt=65536
    )

    # =========================================================================
    # Upstream Transport Settings
    # =========================================================================

    transport: str = Field(
        default="ajax",
        description="Default upstream transport: ajax|rest"
    )
    upstream_timeout: float = Field(
        default=30.0,
        description="Outbound request timeout (seconds)",
        gt=0
    )
    upstream_verify_ssl: bool = Field(
        default=True,
        description="Verify TLS certificates of upstream sites"
    )

    ajax_path: str = Field(
        default="/wp-admin/admin-ajax.php",
        description="WordPress admin-ajax bridge path"
    )
    ajax_action: str = Field(
        default="wpamelia_api",
        description="admin-ajax action routing to the Amelia API"
    )
    api_key_header: str = Field(
        default="Amelia",
        description="Header carrying the API key (ajax transport)"
    )

    rest_prefix: str = Field(
        default="/wp-json/amelia/v1",
        description="Path prefix of the Amelia REST routes (rest transport)"
    )
    rest_api_key_param: str = Field(
        default="ameliaApiKey",
        description="Query parameter carrying the API key (rest transport)"
    )

    api_version_prefix: str = Field(
        default="/api/v1",
        description="Prefix every Amelia call path must start with"
    )
    default_call: str = Field(
        default="/api/v1/entities",
        description="Call path used when the caller supplies none"
    )

    # =========================================================================
    # CORS Settings
    # =========================================================================

    cors_allowed_origin: str = Field(
        default="*",
        description="Value of Access-Control-Allow-Origin"
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Send Access-Control-Allow-Credentials: true"
    )
    cors_allow_methods: List[str] = Field(
        default=["GET", "OPTIONS", "PATCH", "DELETE", "POST", "PUT"],
        description="Allowed HTTP methods"
    )
    cors_allow_headers: List[str] = Field(
        default=[
            "X-CSRF-Token",
            "X-Requested-With",
            "Accept",
            "Accept-Version",
            "Content-Length",
            "Content-MD5",
            "Content-Type",
            "Date",
            "X-Api-Version",
        ],
        description="Allowed request headers"
    )

    # =========================================================================
    # Response Classification Settings
    # =========================================================================

    html_preview_length: int = Field(
        default=300,
        description="Characters of an HTML reply echoed back as rawResponse",
        gt=0
    )
    invalid_json_preview_length: int = Field(
        default=500,
        description="Characters of a non-JSON reply echoed back as rawResponse",
        gt=0
    )

    # =========================================================================
    # Logging and Monitoring
    # =========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL"
    )
    log_format: str = Field(
        default="json",
        description="Log format: json|text"
    )

    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics"
    )
    metrics_endpoint: str = Field(
        default="/metrics",
        description="Metrics endpoint path"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = ["development", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("transport")
    @classmethod
    def validate_transport(cls, v: str) -> str:
        """Validate transport is ajax or rest."""
        allowed = ["ajax", "rest"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"transport must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("proxy_path", "ajax_path", "rest_prefix", "api_version_prefix", "default_call")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Paths start with a single slash and carry no trailing slash."""
        return "/" + v.strip().strip("/")

    @field_validator("cors_allow_methods")
    @classmethod
    def validate_cors_methods(cls, v: List[str]) -> List[str]:
        return [method.upper() for method in v]

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def cors_headers(self) -> dict:
        """Fixed CORS headers attached to every response."""
        headers = {
            "Access-Control-Allow-Origin": self.cors_allowed_origin,
            "Access-Control-Allow-Methods": ",".join(self.cors_allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.cors_allow_headers),
        }
        if self.cors_allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        return headers

    # =========================================================================
    # Model Config
    # =========================================================================

    model_config = SettingsConfigDict(
        env_prefix="AMELIA_PROXY_",  # Environment variable prefix
        env_file=".env",              # Load from .env file
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",               # Ignore extra environment variables
        validate_default=True,        # Validate default values
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once and shared
    across the application. Settings are loaded from:
    1. Environment variables with AMELIA_PROXY_ prefix
    2. .env file in the current directory
    3. Default values

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from amelia_proxy.src.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.transport)
        ajax
    """
    return Settings()


# Convenience function to clear settings cache (useful for testing)
def clear_settings_cache():
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.

    Example:
        >>> from amelia_proxy.src.config import get_settings, clear_settings_cache
        >>> os.environ['AMELIA_PROXY_TRANSPORT'] = 'rest'
        >>> clear_settings_cache()
        >>> settings = get_settings()  # Will reload with new env vars
    """
    get_settings.cache_clear()
