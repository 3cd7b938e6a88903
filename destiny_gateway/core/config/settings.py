"""
Application Settings

Configuration classes using Pydantic for validation.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV = dict(
    env_file=".env",
    env_file_encoding="utf-8",
    case_sensitive=False,
    populate_by_name=True,
    extra="ignore",
)


class APIConfig(BaseSettings):
    """Bungie API configuration settings."""

    model_config = SettingsConfigDict(**_ENV)

    api_key: str = Field(
        default="",
        validation_alias="BUNGIE_API_KEY",
        description="Bungie application API key"
    )
    base_url: str = Field(
        default="https://www.bungie.net/Platform",
        validation_alias="BUNGIE_BASE_URL",
        description="Bungie platform base URL"
    )
    timeout: float = Field(
        default=30.0,
        validation_alias="BUNGIE_TIMEOUT",
        description="Request timeout in seconds"
    )
    max_attempts: int = Field(
        default=3,
        validation_alias="BUNGIE_MAX_ATTEMPTS",
        description="Attempts per call when the network fails"
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URL."""
        return v.rstrip("/")

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        """At least one attempt is always made."""
        if v < 1:
            raise ValueError("max_attempts must be at least 1")
        return v


class OAuthConfig(BaseSettings):
    """OAuth2 client configuration settings."""

    model_config = SettingsConfigDict(**_ENV)

    client_id: str = Field(default="", validation_alias="BUNGIE_CLIENT_ID")
    client_secret: str = Field(default="", validation_alias="BUNGIE_CLIENT_SECRET")
    authorize_url: str = Field(
        default="https://www.bungie.net/en/OAuth/Authorize",
        validation_alias="BUNGIE_OAUTH_AUTHORIZE_URL"
    )
    token_url: str = Field(
        default="https://www.bungie.net/Platform/App/OAuth/token/",
        validation_alias="BUNGIE_OAUTH_TOKEN_URL"
    )


class RateLimitConfig(BaseSettings):
    """Sliding-window rate limit settings."""

    model_config = SettingsConfigDict(**_ENV)

    max_requests: int = Field(
        default=25,
        validation_alias="RATE_LIMIT_MAX_REQUESTS",
        description="Max admissions per window"
    )
    window_ms: int = Field(
        default=10000,
        validation_alias="RATE_LIMIT_WINDOW_MS",
        description="Window length in milliseconds"
    )

    @field_validator("max_requests", "window_ms")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Limits must be positive."""
        if v <= 0:
            raise ValueError("rate limit values must be positive")
        return v


class ServerConfig(BaseSettings):
    """WebSocket server settings."""

    model_config = SettingsConfigDict(**_ENV)

    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3000, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Invalid port number: {v}. Must be between 1 and 65535")
        return v


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(**_ENV)

    # Application info
    app_name: str = Field(default="bungie-destiny-server")
    app_version: str = Field(default="1.0.0")

    api: APIConfig
    oauth: OAuthConfig
    rate_limit: RateLimitConfig
    server: ServerConfig

    def __init__(self, **kwargs):
        # Sub-configs read their own aliases from the environment
        kwargs.setdefault("api", APIConfig())
        kwargs.setdefault("oauth", OAuthConfig())
        kwargs.setdefault("rate_limit", RateLimitConfig())
        kwargs.setdefault("server", ServerConfig())

        super().__init__(**kwargs)

    def has_oauth_client(self) -> bool:
        """Check whether OAuth client credentials are configured."""
        return bool(self.oauth.client_id and self.oauth.client_secret)
