"""Application settings and configuration management."""

import socket
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from boundary_meter.meters.models import Credentials, Endpoint


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Boundary API Configuration
    boundary_api_key: str = Field(
        default="",
        description="Boundary API key (sent as the Basic-Auth username)",
    )
    boundary_api_hostname: str = Field(
        default="api.boundary.com",
        description="Boundary API hostname",
    )
    boundary_org_id: str = Field(
        default="",
        description="Boundary organization ID",
    )
    boundary_ca_file: str = Field(
        default="cacert.pem",
        description="CA bundle used to verify the Boundary API certificate",
    )
    boundary_request_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for each Boundary API request",
    )

    # Meter Configuration
    boundary_meter_name: str = Field(
        default_factory=socket.getfqdn,
        description="Meter name, defaults to this host's FQDN",
    )
    boundary_meter_tags: list[str] = Field(
        default_factory=list,
        description="Static tags applied to the meter (JSON list in the environment)",
    )

    # Node state
    boundary_persist_meter_id: bool = Field(
        default=True,
        description="Persist the resolved meter id. Disable for solo runs without a node store.",
    )
    boundary_state_file: str = Field(
        default=".boundary_meter_state.json",
        description="JSON file holding persisted node attributes",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    # OpenTelemetry Configuration
    otel_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    otel_service_name: str = Field(
        default="boundary_meter",
        description="Service name for OpenTelemetry traces",
    )
    otel_exporter_otlp_endpoint: str = Field(
        default="http://localhost:4317",
        description="OTLP exporter endpoint (gRPC)",
    )
    otel_exporter_otlp_http_endpoint: str = Field(
        default="http://localhost:4318",
        description="OTLP exporter endpoint (HTTP)",
    )
    otel_exporter_type: Literal["otlp", "otlp-http", "console"] = Field(
        default="console",
        description="Telemetry exporter type",
    )
    otel_traces_sampler: Literal["always_on", "always_off", "traceidratio"] = Field(
        default="always_on",
        description="Trace sampling strategy",
    )
    otel_traces_sampler_arg: float = Field(
        default=1.0,
        description="Sampler argument (ratio for traceidratio)",
    )

    @property
    def endpoint(self) -> Endpoint:
        """Get the Boundary API endpoint."""
        return Endpoint(hostname=self.boundary_api_hostname, org_id=self.boundary_org_id)

    @property
    def credentials(self) -> Credentials:
        """Get the Boundary API credentials."""
        return Credentials(api_key=self.boundary_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
