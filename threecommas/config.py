"""
Configuration management for 3Commas client.

Loads settings from environment variables with validation.
"""

from typing import Literal, Optional
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ThreeCommasSettings(BaseSettings):
    """
    3Commas client settings.

    Loads from environment variables with THREECOMMAS_ prefix.
    """
    model_config = SettingsConfigDict(
        env_prefix="THREECOMMAS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # API URLs
    api_url: str = Field(
        default="https://api.3commas.io",
        description="REST API origin"
    )
    v1_prefix: str = Field(default="/public/api/ver1", description="API version 1 path prefix")
    v2_prefix: str = Field(default="/public/api/v2", description="API version 2 path prefix")
    ws_url: str = Field(
        default="wss://ws.3commas.io/websocket",
        description="Streaming WebSocket URL"
    )

    # Credentials (explicit constructor arguments take precedence)
    api_key: Optional[str] = Field(None, description="3Commas API key")
    api_secret: Optional[SecretStr] = Field(None, description="3Commas API secret")

    # Requests
    request_timeout: float = Field(default=30.0, gt=0, description="Request timeout (seconds)")
    forced_mode: Optional[Literal["paper", "real"]] = Field(
        None,
        description="Forced-Mode header sent with every request"
    )
    send_secret_in_body: bool = Field(
        default=True,
        description="Include the API secret in signed request bodies"
    )

    # Connection pooling
    pool_connections: int = Field(default=10, ge=1, le=200,
                                  description="HTTP connection pool size")
    pool_maxsize: int = Field(default=20, ge=1, le=500,
                              description="Max connections per pool")

    # WebSocket
    ws_reconnect_delay: float = Field(
        default=0.0,
        ge=0.0,
        description="Pause before reopening after an abnormal closure (seconds)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_requests: bool = Field(default=False, description="Log all HTTP requests")

    # Metrics
    enable_metrics: bool = Field(default=False, description="Enable Prometheus metrics")
    metrics_port: int = Field(default=9090, ge=1024, le=65535, description="Metrics server port")

    def __repr__(self) -> str:
        """Safe repr without sensitive data."""
        return (
            f"ThreeCommasSettings("
            f"api_url={self.api_url}, "
            f"ws_url={self.ws_url}, "
            f"forced_mode={self.forced_mode}"
            ")"
        )


def get_settings() -> ThreeCommasSettings:
    """
    Get 3Commas settings.

    Returns:
        Validated settings instance
    """
    return ThreeCommasSettings()
