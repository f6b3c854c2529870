"""
Centralized configuration management using Pydantic Settings.

Configuration is loaded from environment variables with sensible defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MDNSConfig(BaseSettings):
    """mDNS / DNS-SD advertisement configuration."""

    model_config = SettingsConfigDict(env_prefix="HA_BEACON_MDNS_", env_file=".env", extra="ignore")

    enabled: bool = Field(default=True, description="Advertise the hub via mDNS on startup")
    service_type: str = Field(
        default="_connectbase._tcp.local.",
        description="DNS-SD service type (the '.local.' suffix is optional)",
    )
    instance_name: str = Field(default="CONNECTbase", description="Advertised instance name")
    attributes: dict[str, str] = Field(
        default={"path": "/", "proto": "ws"},
        description="TXT record attributes",
    )


class HubConfig(BaseSettings):
    """WebSocket broadcast hub configuration."""

    model_config = SettingsConfigDict(env_prefix="HA_BEACON_HUB_", env_file=".env", extra="ignore")

    host: str = Field(default="0.0.0.0", description="Listen address (all IPv4 interfaces)")
    port: int = Field(default=8090, ge=0, le=65535, description="Listen port")
    keepalive_interval: float = Field(
        default=15.0, gt=0.0, le=600.0,
        description="Seconds between keepalive pings to each client",
    )
    server_name: str = Field(
        default="CONNECTbase WS",
        description="Value of the HTTP Server header on the WebSocket handshake",
    )


class BroadcastConfig(BaseSettings):
    """Status broadcast throttling configuration."""

    model_config = SettingsConfigDict(env_prefix="HA_BEACON_BROADCAST_", env_file=".env", extra="ignore")

    min_interval_ms: int = Field(
        default=150, ge=0, le=60000,
        description="Minimum milliseconds between two non-forced status broadcasts",
    )


class Settings(BaseSettings):
    """Application-wide settings."""

    model_config = SettingsConfigDict(
        env_prefix="HA_BEACON_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # General
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Nested configs
    mdns: MDNSConfig = Field(default_factory=MDNSConfig)
    hub: HubConfig = Field(default_factory=HubConfig)
    broadcast: BroadcastConfig = Field(default_factory=BroadcastConfig)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()


# Singleton settings instance
settings = Settings()
