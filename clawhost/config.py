"""Configuration with pydantic-settings.

All process-wide configuration lives on one Settings object that is read once
and passed explicitly to clients, the orchestrator and the command proxy.

Usage:
    from clawhost.config import get_settings

    settings = get_settings()
    fly = FlyClient(settings=settings)
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["fly", "render", "railway"]


class Settings(BaseSettings):
    """Control plane settings.

    Provider credentials are optional here; each provider client fails fast
    at construction when the credential it needs is missing.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    service_name: str = Field(
        default="clawhost",
        description="Service name for structured logging",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/clawhost",
        description="Database connection URL",
        examples=["postgresql+asyncpg://user:pass@db:5432/dbname"],
    )

    # Deployment target
    deploy_provider: ProviderName = Field(
        default="fly",
        description="Cloud provider new instances are deployed to",
    )
    openclaw_image: str = Field(
        default="ghcr.io/openclaw/openclaw:latest",
        description="Container image reference of the OpenClaw gateway",
    )
    gateway_port: int = Field(default=18789, description="Port the gateway listens on")
    port_range_start: int = Field(
        default=20000,
        ge=1,
        description="First logical port handed out to instances",
    )

    # Fly.io
    fly_api_token: str | None = Field(default=None, description="Fly.io API token")
    fly_org_slug: str | None = Field(default=None, description="Fly.io organization slug")
    fly_region: str = Field(default="iad", description="Fly.io region for new machines")
    flyctl_path: str = Field(default="flyctl", description="flyctl binary used by the SSH proxy")

    # Render
    render_api_key: str | None = Field(default=None, description="Render API key")
    render_owner_id: str | None = Field(default=None, description="Render workspace owner id")
    render_region: str = Field(default="oregon", description="Render region for new services")
    render_plan: str = Field(default="starter", description="Render instance plan")

    # Railway
    railway_api_token: str | None = Field(default=None, description="Railway API token")
    railway_project_id: str | None = Field(default=None, description="Railway project id")
    railway_environment_id: str | None = Field(
        default=None,
        description="Railway environment id (defaults to the production environment)",
    )
    railway_region: str | None = Field(default=None, description="Railway deployment region")

    # Deployment timings, in seconds
    machine_start_timeout: int = Field(default=120, ge=1)
    deploy_timeout: int = Field(default=300, ge=1)
    poll_interval: float = Field(default=5.0, ge=0)
    dns_propagation_delay: float = Field(default=10.0, ge=0)
    health_warmup_delay: float = Field(default=15.0, ge=0)
    render_initial_delay: float = Field(default=10.0, ge=0)
    health_check_timeout: float = Field(default=10.0, gt=0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
